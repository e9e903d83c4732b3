from collections.abc import Sequence


class RosaPilotError(Exception):
    pass


class ValidationError(RosaPilotError):
    def __init__(self, subject: str, errors: Sequence[str]) -> None:
        self.subject = subject
        self.errors = list(errors)

        super().__init__(f'one or more {subject} are invalid: {"; ".join(self.errors)}')


class RemoteCallError(RosaPilotError):
    pass


class CommandError(RemoteCallError):
    def __init__(self, args: Sequence[str], returncode: int, stdout: str = '', stderr: str = '') -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

        details = stderr.strip() or stdout.strip() or 'no output'
        super().__init__(f'command {" ".join(self.command[:3])!r} exited with code {returncode}: {details}')


class OcmApiError(RemoteCallError):
    def __init__(self, message: str, status_code: int | None = None, body: str = '') -> None:
        self.status_code = status_code
        self.body = body

        super().__init__(message if status_code is None else f'{message} (status {status_code}): {body}')


class ClusterNotFoundError(OcmApiError):
    def __init__(self, name_or_id: str) -> None:
        self.name_or_id = name_or_id

        super().__init__(f'cluster {name_or_id!r} not found')


class MalformedOutputError(RemoteCallError):
    def __init__(self, source: str, reason: object) -> None:
        self.source = source

        super().__init__(f'malformed output from {source}: {reason}')


class PollTimeoutError(RosaPilotError):
    def __init__(self, description: str, timeout: float) -> None:
        self.description = description
        self.timeout = timeout

        super().__init__(f'timed out after {timeout:g}s waiting for {description}')


class InconsistentStateError(RosaPilotError):
    pass


class RegionError(InconsistentStateError):
    def __init__(self, region: str, reason: str) -> None:
        self.region = region

        super().__init__(f'region {region!r} {reason}')


class PhaseError(RosaPilotError):
    """Failure of one action against one kind of resource, chaining the underlying cause."""

    resource: str = 'resource'

    def __init__(self, action: str, error: BaseException | str) -> None:
        self.action = action
        self.error = error

        super().__init__(f'{action} {self.resource} failed: {error}')


class ProviderError(PhaseError):
    resource = 'rosa provider'

    def __init__(self, error: BaseException | str) -> None:
        super().__init__('construct', error)


class AccountRolesError(PhaseError):
    resource = 'account roles'


class OidcConfigError(PhaseError):
    resource = 'oidc config'


class OperatorRolesError(PhaseError):
    resource = 'operator roles'


class VpcError(PhaseError):
    resource = 'vpc'


class VersionError(PhaseError):
    resource = 'version'


class ClusterError(PhaseError):
    resource = 'cluster'

    def __init__(self, action: str, error: BaseException | str, cluster_id: str = '') -> None:
        # set once the cluster exists, so callers can still clean it up
        self.cluster_id = cluster_id

        super().__init__(action, error)


class UpgradeError(PhaseError):
    resource = 'cluster upgrade'
