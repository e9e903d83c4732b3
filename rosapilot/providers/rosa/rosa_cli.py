from typing import Any, TypeVar

from rosapilot.config import ROSA_BINARY
from rosapilot.core.command_runner import CommandResult, CommandRunner
from rosapilot.schemas import parse_json

T = TypeVar('T')


class RosaCli:
    def __init__(self, runner: CommandRunner, binary: str = ROSA_BINARY) -> None:
        self.runner = runner
        self.binary = binary

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        return await self.runner.run(self.binary, *args, check=check)

    async def run_json(self, schema: type[T] | Any, *args: str) -> T:
        result = await self.run(*args)
        return parse_json(schema, result.stdout, f'{self.binary} {" ".join(args[:2])}')
