import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from rosapilot.exceptions import CommandError
from rosapilot.utils import setup_logger

_SECRET_FLAGS = frozenset({'--token', '--client-secret'})


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str = ''
    stderr: str = ''


def mask_secrets(args: list[str] | tuple[str, ...]) -> list[str]:
    masked = []
    hide_next = False

    for arg in args:
        flag, sep, _ = arg.partition('=')

        if hide_next:
            masked.append('***')
            hide_next = False
        elif sep and flag in _SECRET_FLAGS:
            masked.append(f'{flag}=***')
        else:
            masked.append(arg)
            hide_next = arg in _SECRET_FLAGS

    return masked


@dataclass
class CommandRunner:
    """Runs external binaries with the cloud credentials injected into their environment."""

    env: Mapping[str, str] = field(default_factory=dict)
    logger: logging.Logger = field(default_factory=lambda: setup_logger('CommandRunner'))

    def with_env(self, **extra: str) -> 'CommandRunner':
        return CommandRunner(env={**self.env, **extra}, logger=self.logger)

    async def run(self, *args: str, cwd: Path | None = None, check: bool = True) -> CommandResult:
        self.logger.info(f'Running: {" ".join(mask_secrets(args))}')

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env={**os.environ, **self.env},
            )
        except OSError as e:
            raise CommandError(args, -1, stderr=str(e)) from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        result = CommandResult(
            args=tuple(args),
            returncode=process.returncode,
            stdout=stdout.decode() if stdout else '',
            stderr=stderr.decode() if stderr else '',
        )

        if check and result.returncode != 0:
            raise CommandError(args, result.returncode, result.stdout, result.stderr)

        return result
