import re
from collections.abc import Iterable

from semantic_version import NpmSpec, Version

from rosapilot.config import DEFAULT_POLL_INTERVAL, NIGHTLY_VERSION_WAIT
from rosapilot.core.poller import wait_for
from rosapilot.exceptions import VersionError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.schemas import OpenShiftVersion
from rosapilot.utils import setup_logger

NIGHTLY_CHANNEL_GROUP = 'nightly'
_VERSION_ID_PREFIX = 'openshift-v'
_OPERATOR_SPACE = re.compile(r'(>=|<=|!=|>|<|=|~|\^)\s+')


def parse_version(version: str) -> Version:
    try:
        return Version(version.removeprefix(_VERSION_ID_PREFIX))
    except ValueError as e:
        raise VersionError('parse', e) from e


def major_minor(version: str) -> str:
    try:
        parsed = Version.coerce(version.removeprefix(_VERSION_ID_PREFIX))
    except ValueError as e:
        raise VersionError('parse', e) from e

    return f'{parsed.major}.{parsed.minor}'


class VersionConstraint:
    """
    A version constraint such as ``>= 4.13, < 4.15 || ~4.16``.

    ``||`` separates alternatives; inside one alternative requirements are joined by commas or
    spaces, operators may be followed by a space and ``!=`` excludes a version.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._alternatives = [self._parse_alternative(alternative) for alternative in text.split('||')]

    def _parse_alternative(self, alternative: str) -> tuple[NpmSpec, list[NpmSpec]]:
        blocks = _OPERATOR_SPACE.sub(r'\1', alternative.replace(',', ' ')).split()
        if not blocks:
            raise ValueError(f'empty requirement in {self.text!r}')

        required = [block for block in blocks if not block.startswith('!=')]
        excluded = [NpmSpec(block.removeprefix('!=')) for block in blocks if block.startswith('!=')]

        return NpmSpec(' '.join(required) or '*'), excluded

    def __contains__(self, version: Version) -> bool:
        return any(
            version in required and not any(version in spec for spec in excluded)
            for required, excluded in self._alternatives
        )


def filter_versions(versions: Iterable[OpenShiftVersion], constraints: Iterable[str]) -> list[OpenShiftVersion]:
    """
    Keep the versions whose raw id satisfies any of the constraints (``~4.13``, ``>= 4.14, < 4.16``).

    Constraints are OR-ed: the result is the union of the matches of every constraint, without
    duplicates and in the input order. No constraints means no filtering. An unparseable
    constraint or candidate version aborts the whole call.
    """
    versions = list(versions)
    constraints = list(constraints)

    if not constraints:
        return versions

    try:
        specs = [VersionConstraint(constraint) for constraint in constraints]
    except ValueError as e:
        raise VersionError('filter', f'invalid constraint: {e}') from e

    parsed = [(version, parse_version(version.raw_id)) for version in versions]

    return [version for version, semver in parsed if any(semver in spec for spec in specs)]


class VersionSelector:
    def __init__(self, rosa: RosaCli, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._logger = setup_logger('Versions')

        self._rosa = rosa
        self._poll_interval = poll_interval

    async def list_versions(self, channel_group: str, hosted_cp: bool = False) -> list[OpenShiftVersion]:
        args = ['list', 'versions', '--channel-group', channel_group, '--output', 'json']

        if hosted_cp:
            args.append('--hosted-cp')

        return await self._rosa.run_json(list[OpenShiftVersion], *args)

    async def versions(
            self, channel_group: str, hosted_cp: bool = False, constraints: Iterable[str] = ()
    ) -> list[OpenShiftVersion]:
        return filter_versions(await self.list_versions(channel_group, hosted_cp), constraints)

    async def wait_for_version(
            self, version: str, channel_group: str, hosted_cp: bool = False, timeout: float = NIGHTLY_VERSION_WAIT
    ) -> None:
        self._logger.info(f'Waiting for version {version} to be available in channel group {channel_group}')

        async def available() -> bool:
            listed = await self.list_versions(channel_group, hosted_cp)
            return any(version in (v.raw_id, v.id) or v.raw_id.startswith(version) for v in listed)

        await wait_for(available, timeout, self._poll_interval, f'version {version} in {channel_group}')
