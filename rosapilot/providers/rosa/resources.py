import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

Undo = Callable[[], Awaitable[None]]


class ResourceKind(StrEnum):
    ACCOUNT_ROLES = 'account roles'
    OIDC_CONFIG = 'oidc config'
    NETWORK_STACK = 'network stack'


@dataclass(frozen=True)
class CompensationAction:
    kind: ResourceKind
    identifier: str
    undo: Undo

    def __str__(self) -> str:
        return f'{self.kind} {self.identifier}'


class CreatedResourcesTracker:
    """
    Append-only record of the resources created by one cluster creation attempt.

    Reused resources are never recorded. ``rollback`` undoes the recorded ones in reverse
    creation order and keeps going when an undo fails.
    """

    def __init__(self) -> None:
        self._actions: list[CompensationAction] = []

    def record(self, kind: ResourceKind, identifier: str, undo: Undo) -> None:
        if any(action.kind == kind for action in self._actions):
            raise ValueError(f'{kind} already recorded for this attempt')

        self._actions.append(CompensationAction(kind, identifier, undo))

    @property
    def actions(self) -> tuple[CompensationAction, ...]:
        return tuple(self._actions)

    def __contains__(self, kind: ResourceKind) -> bool:
        return any(action.kind == kind for action in self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    async def rollback(self, logger: logging.Logger) -> list[CompensationAction]:
        """Run every undo, newest first; returns the actions whose undo failed."""
        failed = []

        for action in reversed(self._actions):
            logger.info(f'Rolling back {action}')

            try:
                await action.undo()
            except Exception as e:
                logger.exception(f'Rollback of {action} failed: {e}', exc_info=True)
                failed.append(action)
            else:
                logger.info(f'Rolled back {action}')

        return failed
