import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rosapilot.clients.terraform import TerraformRunner
from rosapilot.core.command_runner import CommandRunner
from rosapilot.core.template_loader import TemplateLoader, template_loader
from rosapilot.exceptions import MalformedOutputError, ValidationError
from rosapilot.utils import setup_logger, strip_quotes

VPC_FILE_NAME = 'setup-vpc.tf'
HCP_VPC_TEMPLATE = 'setup-hcp-vpc.tf'
PRIVATE_LINK_VPC_TEMPLATE = 'setup-private-link-vpc.tf'
DEFAULT_VPC_CIDR = '10.0.0.0/16'

TerraformFactory = Callable[[Path], TerraformRunner]


@dataclass(frozen=True)
class NetworkStack:
    private_subnet: str
    public_subnet: str
    node_private_subnet: str = ''
    private_link: bool = False

    @property
    def subnet_ids(self) -> str:
        # private link clusters must only be handed private subnets
        if self.private_link:
            return self.private_subnet

        return f'{self.private_subnet},{self.public_subnet}'


class NetworkStackProvisioner:
    """
    Terraform-managed VPC for hosted control plane and private link clusters.

    The state file kept in ``working_dir`` is what ``delete`` destroys, so create and delete of
    the same stack must be given the same directory.
    """

    def __init__(
            self,
            runner: CommandRunner,
            loader: TemplateLoader = template_loader,
            terraform_factory: TerraformFactory | None = None,
            logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or setup_logger('Vpc')

        self._loader = loader
        self._terraform_factory = terraform_factory or (lambda working_dir: TerraformRunner(working_dir, runner))

    @staticmethod
    def _variables(cluster_name: str, region: str) -> dict[str, str]:
        return {'aws_region': region, 'cluster_name': cluster_name}

    @staticmethod
    def _check_parameters(cluster_name: str, region: str, working_dir: Path | None) -> None:
        if not cluster_name or not region or not working_dir:
            raise ValidationError('vpc parameters', ['cluster name, aws region and working directory are required'])

    async def create(
            self,
            cluster_name: str,
            region: str,
            working_dir: Path,
            hosted_cp: bool,
            private_link: bool,
            vpc_cidr: str = DEFAULT_VPC_CIDR,
            on_create: Callable[[], None] | None = None,
    ) -> NetworkStack:
        self._check_parameters(cluster_name, region, working_dir)

        if hosted_cp:
            template_name = HCP_VPC_TEMPLATE
        elif private_link:
            template_name = PRIVATE_LINK_VPC_TEMPLATE
        else:
            raise ValidationError('vpc parameters', [f'unsupported cluster flavor, {hosted_cp=}, {private_link=}'])

        self._logger.info(f'Creating aws vpc, {cluster_name=}, aws_region={region}, {working_dir=}')

        self._loader.render_to_file(
            template_name, working_dir / VPC_FILE_NAME, values={'vpc_cidr': vpc_cidr}, template_module='terraform'
        )

        terraform = self._terraform_factory(working_dir)

        await terraform.init()
        await terraform.plan(self._variables(cluster_name, region))

        # tracked before apply, a failed apply can leave resources behind
        if on_create is not None:
            on_create()

        await terraform.apply()

        outputs = await terraform.output()

        def subnet(name: str) -> str:
            output = outputs.get(name)
            return strip_quotes(output.value) if output is not None and output.value is not None else ''

        stack = NetworkStack(
            private_subnet=subnet('cluster-private-subnet'),
            public_subnet=subnet('cluster-public-subnet'),
            node_private_subnet=subnet('node-private-subnet') if hosted_cp else '',
            private_link=private_link and not hosted_cp,
        )

        if not stack.private_subnet or not stack.public_subnet:
            raise MalformedOutputError('terraform output', f'missing subnet ids, got {sorted(outputs)}')

        self._logger.info(f'AWS vpc created, {cluster_name=}, subnet_ids={stack.subnet_ids}')

        return stack

    async def delete(self, cluster_name: str, region: str, working_dir: Path) -> None:
        self._check_parameters(cluster_name, region, working_dir)

        self._logger.info(f'Deleting aws vpc, {cluster_name=}, aws_region={region}, {working_dir=}')

        terraform = self._terraform_factory(working_dir)

        await terraform.init()
        await terraform.destroy(self._variables(cluster_name, region))

        self._logger.info(f'AWS vpc deleted, {cluster_name=}')
