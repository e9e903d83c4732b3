"""Command line entry point."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, TypeVar

import typer
import yaml
from rich.console import Console
from rich.table import Table

from rosapilot.exceptions import RosaPilotError, ValidationError
from rosapilot.providers.provider_factory import ProviderFactory
from rosapilot.providers.rosa.options import CreateClusterOptions, DeleteClusterOptions
from rosapilot.providers.rosa.provider import RosaConfig, RosaProvider

app = typer.Typer(
    name='rosapilot',
    help='Create, delete and upgrade ROSA clusters.',
    no_args_is_help=True,
    rich_markup_mode='rich',
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar('T')
OptionsT = TypeVar('OptionsT', CreateClusterOptions, DeleteClusterOptions)

# yaml files give durations in minutes
_DURATION_FIELDS = frozenset({'expiration', 'install_timeout', 'health_check_timeout', 'uninstall_timeout'})
_PATH_FIELDS = frozenset({'artifact_dir', 'working_dir'})


def load_options(path: Path, options_type: type[OptionsT]) -> OptionsT:
    """Build create or delete options from a yaml mapping of field names to values."""
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError('option files', [f'{path}: {e}']) from e

    if not isinstance(data, dict):
        raise ValidationError('option files', [f'{path}: expected a mapping of option names to values'])

    field_types = {f.name: f.type for f in fields(options_type) if f.name != 'defaulted'}
    unknown = sorted(set(data) - field_types.keys())
    if unknown:
        raise ValidationError('option files', [f'{path}: unknown option {name!r}' for name in unknown])

    values: dict[str, Any] = {}
    errors = []
    for name, value in data.items():
        if value is not None and name in _DURATION_FIELDS:
            value = timedelta(minutes=float(value))
        elif value is not None and name in _PATH_FIELDS:
            value = Path(value)
        elif field_types[name] is str and isinstance(value, (int, float)):
            # yaml reads a bare 4.10 as the float 4.1
            errors.append(f'{path}: {name} must be text, quote its value')
            continue
        values[name] = value

    if errors:
        raise ValidationError('option files', errors)

    return options_type(**values)


def parse_properties(properties: list[str]) -> dict[str, str]:
    parsed = {}
    errors = []

    for item in properties:
        key, sep, value = item.partition(':')
        if not sep or not key:
            errors.append(f'{item!r} is not in key:value form')
            continue
        parsed[key] = value

    if errors:
        raise ValidationError('cluster properties', errors)

    return parsed


def _provider(region: str | None, ocm_environment: str | None) -> RosaProvider:
    config = RosaConfig.from_env()

    if region:
        config.aws_credentials = config.aws_credentials.with_region(region)
    if ocm_environment:
        config = replace(config, ocm_environment=ocm_environment)

    return ProviderFactory.get_provider('rosa', config)


def _run(region: str | None, ocm_environment: str | None, action: Callable[[RosaProvider], Awaitable[T]]) -> T:
    async def run() -> T:
        async with _provider(region, ocm_environment) as provider:
            return await action(provider)

    try:
        return asyncio.run(run())
    except (RosaPilotError, ValueError) as e:
        error_console.print(f'[red]Error:[/red] {e}')
        cluster_id = getattr(e, 'cluster_id', '')
        if cluster_id:
            error_console.print(f'Cluster {cluster_id} was created and is left in place, delete it to clean up.')
        raise typer.Exit(1) from None


@app.command()
def create(
    cluster_name: str = typer.Option('', '--cluster-name', '-n', help='Cluster name'),
    version: str = typer.Option('', '--version', help='OpenShift version, e.g. 4.14.3'),
    channel_group: str = typer.Option('', '--channel-group', help='Channel group (stable, candidate, nightly)'),
    hosted_cp: bool = typer.Option(False, '--hosted-cp', help='Hosted control plane cluster'),
    sts: bool = typer.Option(False, '--sts', help='Use AWS STS'),
    multi_az: bool = typer.Option(False, '--multi-az', help='Deploy to multiple availability zones'),
    private_link: bool = typer.Option(False, '--private-link', help='Private link cluster'),
    fips: bool = typer.Option(False, '--fips', help='Enable FIPS mode'),
    compute_machine_type: str = typer.Option('', '--compute-machine-type', help='Worker instance type'),
    replicas: int = typer.Option(0, '--replicas', help='Worker node count'),
    min_replicas: int = typer.Option(0, '--min-replicas', help='Autoscaling minimum'),
    max_replicas: int = typer.Option(0, '--max-replicas', help='Autoscaling maximum'),
    machine_cidr: str = typer.Option('', '--machine-cidr', help='Machine network CIDR'),
    properties: list[str] = typer.Option([], '--property', help='Cluster property as key:value, repeatable'),
    expiration_hours: float = typer.Option(0, '--expiration-hours', help='Expire the cluster after N hours'),
    use_default_account_roles_prefix: bool = typer.Option(
        False, '--default-account-roles', help='Reuse the shared ManagedOpenShift account roles'
    ),
    oidc_config_id: str = typer.Option('', '--oidc-config-id', help='Existing oidc config id'),
    subnet_ids: str = typer.Option('', '--subnet-ids', help='Existing subnet ids, comma separated'),
    skip_health_check: bool = typer.Option(False, '--skip-health-check', help='Do not wait for health checks'),
    artifact_dir: Path | None = typer.Option(None, '--artifact-dir', help='Directory for collected logs'),
    working_dir: Path | None = typer.Option(None, '--working-dir', help='Directory for terraform state'),
    from_file: Path | None = typer.Option(None, '--from-file', '-f', help='Read options from a yaml file'),
    region: str | None = typer.Option(None, '--region', help='AWS region, or "random" to pick an enabled one'),
    ocm_environment: str | None = typer.Option(None, '--ocm-env', help='OCM environment name or api url'),
) -> None:
    """Create a cluster and wait until it is installed and healthy."""
    try:
        if from_file is not None:
            options = load_options(from_file, CreateClusterOptions)
        else:
            options = CreateClusterOptions(
                cluster_name=cluster_name,
                version=version,
                channel_group=channel_group,
                hosted_cp=hosted_cp,
                sts=sts,
                multi_az=multi_az,
                private_link=private_link,
                fips=fips,
                compute_machine_type=compute_machine_type,
                replicas=replicas,
                min_replicas=min_replicas,
                max_replicas=max_replicas,
                machine_cidr=machine_cidr,
                properties=parse_properties(properties),
                expiration=timedelta(hours=expiration_hours) if expiration_hours else None,
                use_default_account_roles_prefix=use_default_account_roles_prefix,
                oidc_config_id=oidc_config_id,
                subnet_ids=subnet_ids,
                skip_health_check=skip_health_check,
                artifact_dir=artifact_dir,
                working_dir=working_dir,
            )
    except ValidationError as e:
        error_console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1) from None

    cluster_id = _run(region, ocm_environment, lambda provider: provider.create_cluster(options))

    console.print(cluster_id)


@app.command()
def delete(
    cluster_name: str = typer.Option('', '--cluster-name', '-n', help='Cluster name or id'),
    hosted_cp: bool = typer.Option(False, '--hosted-cp', help='Hosted control plane cluster'),
    sts: bool = typer.Option(False, '--sts', help='Cluster uses AWS STS'),
    private_link: bool = typer.Option(False, '--private-link', help='Private link cluster'),
    delete_vpc: bool = typer.Option(False, '--delete-vpc', help='Destroy the terraform managed vpc'),
    keep_vpc: bool = typer.Option(False, '--keep-vpc', help='Keep the terraform managed vpc'),
    delete_oidc_config: bool = typer.Option(False, '--delete-oidc-config', help='Delete the cluster oidc config'),
    artifact_dir: Path | None = typer.Option(None, '--artifact-dir', help='Directory for collected logs'),
    working_dir: Path | None = typer.Option(None, '--working-dir', help='Directory holding terraform state'),
    from_file: Path | None = typer.Option(None, '--from-file', '-f', help='Read options from a yaml file'),
    region: str | None = typer.Option(None, '--region', help='AWS region, or "random" to pick an enabled one'),
    ocm_environment: str | None = typer.Option(None, '--ocm-env', help='OCM environment name or api url'),
) -> None:
    """Delete a cluster and the resources created for it."""
    try:
        if from_file is not None:
            options = load_options(from_file, DeleteClusterOptions)
        else:
            options = DeleteClusterOptions(
                cluster_name=cluster_name,
                hosted_cp=hosted_cp,
                sts=sts,
                private_link=private_link,
                delete_hosted_vpc=False if keep_vpc else (True if delete_vpc else None),
                delete_oidc_config=delete_oidc_config,
                artifact_dir=artifact_dir,
                working_dir=working_dir,
            )
    except ValidationError as e:
        error_console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1) from None

    if not options.cluster_name:
        error_console.print('[red]Error:[/red] --cluster-name is required')
        raise typer.Exit(1)

    _run(region, ocm_environment, lambda provider: provider.delete_cluster(options))

    console.print(f'Cluster {options.cluster_name} deleted')


@app.command()
def versions(
    channel_group: str = typer.Option('stable', '--channel-group', help='Channel group to list'),
    hosted_cp: bool = typer.Option(False, '--hosted-cp', help='Only versions available for hosted control plane'),
    constraints: list[str] = typer.Option([], '--constraint', '-c', help='Semantic version range, repeatable'),
    region: str | None = typer.Option(None, '--region', help='AWS region, or "random" to pick an enabled one'),
    ocm_environment: str | None = typer.Option(None, '--ocm-env', help='OCM environment name or api url'),
) -> None:
    """List the versions available in a channel group."""
    available = _run(
        region, ocm_environment, lambda provider: provider.versions(channel_group, hosted_cp, tuple(constraints))
    )

    table = Table(title=f'{channel_group} versions', show_header=True, header_style='bold')
    table.add_column('Version')
    table.add_column('Default')
    table.add_column('Available upgrades')

    for item in available:
        table.add_row(item.raw_id, 'yes' if item.default else '', ', '.join(item.available_upgrades))

    console.print(table)


@app.command()
def upgrade(
    cluster_name: str = typer.Option(..., '--cluster-name', '-n', help='Cluster name or id'),
    version: str = typer.Option(..., '--version', help='Version to upgrade to'),
    region: str | None = typer.Option(None, '--region', help='AWS region, or "random" to pick an enabled one'),
    ocm_environment: str | None = typer.Option(None, '--ocm-env', help='OCM environment name or api url'),
) -> None:
    """Accept the version gate if needed and schedule an upgrade."""
    policy = _run(region, ocm_environment, lambda provider: provider.schedule_upgrade(cluster_name, version))

    console.print(f'Upgrade of {cluster_name} to {policy.version} scheduled for {policy.next_run}')
