from pathlib import Path
from typing import Any

from pydantic import BaseModel

from rosapilot.config import TERRAFORM_BINARY
from rosapilot.core.command_runner import CommandRunner
from rosapilot.schemas import parse_json
from rosapilot.utils import setup_logger

PLAN_FILE = 'rosapilot.tfplan'


class TerraformOutput(BaseModel):
    value: Any = None
    type: Any = None
    sensitive: bool = False


class TerraformRunner:
    def __init__(self, working_dir: Path, runner: CommandRunner, binary: str = TERRAFORM_BINARY) -> None:
        self._logger = setup_logger('Terraform')

        self.working_dir = working_dir
        self._binary = binary
        self._runner = runner.with_env(TF_IN_AUTOMATION='1')

    @staticmethod
    def _var_args(variables: dict[str, str]) -> list[str]:
        args = []
        for key, value in variables.items():
            args.extend(['-var', f'{key}={value}'])

        return args

    async def _run(self, *args: str) -> str:
        result = await self._runner.run(self._binary, *args, cwd=self.working_dir)
        return result.stdout

    async def init(self) -> None:
        self.working_dir.mkdir(parents=True, exist_ok=True)

        self._logger.info(f'terraform init in {self.working_dir}')
        await self._run('init', '-input=false', '-no-color')

    async def plan(self, variables: dict[str, str]) -> None:
        await self._run('plan', '-input=false', '-no-color', f'-out={PLAN_FILE}', *self._var_args(variables))

    async def apply(self) -> None:
        await self._run('apply', '-input=false', '-no-color', '-auto-approve', PLAN_FILE)

    async def destroy(self, variables: dict[str, str]) -> None:
        await self._run('destroy', '-input=false', '-no-color', '-auto-approve', *self._var_args(variables))

    async def output(self) -> dict[str, TerraformOutput]:
        stdout = await self._run('output', '-json', '-no-color')

        return parse_json(dict[str, TerraformOutput], stdout or '{}', 'terraform output')
