import asyncio
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rosapilot.core.command_runner import CommandRunner, mask_secrets
from rosapilot.exceptions import CommandError


class TestMaskSecrets:
    @pytest.mark.parametrize(
        "args, expected",
        [
            (["rosa", "login", "--token", "abc"], ["rosa", "login", "--token", "***"]),
            (["rosa", "login", "--token=abc"], ["rosa", "login", "--token=***"]),
            (
                ["rosa", "login", "--client-id", "id", "--client-secret", "s3cr3t"],
                ["rosa", "login", "--client-id", "id", "--client-secret", "***"],
            ),
            (["rosa", "whoami"], ["rosa", "whoami"]),
        ],
    )
    def test_mask_secrets(self, args, expected):
        assert mask_secrets(args) == expected


class TestCommandRunner:
    def test_captures_output(self):
        runner = CommandRunner(logger=MagicMock())

        result = asyncio.run(runner.run(sys.executable, "-c", "print('hello')"))

        assert result.returncode == 0
        assert result.stdout.strip() == "hello"

    def test_injects_environment(self):
        runner = CommandRunner(logger=MagicMock()).with_env(ROSAPILOT_TEST_VALUE="injected")

        result = asyncio.run(runner.run(
            sys.executable, "-c", "import os; print(os.environ['ROSAPILOT_TEST_VALUE'])"
        ))

        assert result.stdout.strip() == "injected"

    def test_with_env_returns_new_runner(self):
        runner = CommandRunner(env={"A": "1"}, logger=MagicMock())

        extended = runner.with_env(B="2")

        assert runner.env == {"A": "1"}
        assert extended.env == {"A": "1", "B": "2"}

    def test_non_zero_exit_raises(self):
        runner = CommandRunner(logger=MagicMock())

        with pytest.raises(CommandError) as exc_info:
            asyncio.run(runner.run(sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"))

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == "boom"

    def test_non_zero_exit_without_check(self):
        runner = CommandRunner(logger=MagicMock())

        result = asyncio.run(runner.run(sys.executable, "-c", "import sys; sys.exit(2)", check=False))

        assert result.returncode == 2

    def test_missing_binary(self):
        runner = CommandRunner(logger=MagicMock())

        with pytest.raises(CommandError) as exc_info:
            asyncio.run(runner.run("rosapilot-binary-that-does-not-exist"))

        assert exc_info.value.returncode == -1

    def test_secrets_are_not_logged(self):
        logger = MagicMock()
        runner = CommandRunner(logger=logger)

        asyncio.run(runner.run(sys.executable, "-c", "pass", "--token", "abc"))

        logged = logger.info.call_args[0][0]
        assert "abc" not in logged
        assert "--token ***" in logged

    def test_cancellation_kills_running_process(self):
        runner = CommandRunner(logger=MagicMock())

        async def scenario():
            task = asyncio.create_task(runner.run(sys.executable, "-c", "import time; time.sleep(30)"))
            await asyncio.sleep(0.5)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())

    def test_cancellation_after_process_exit_is_not_masked(self):
        process = MagicMock(returncode=0)
        process.communicate = AsyncMock(side_effect=asyncio.CancelledError())
        process.kill.side_effect = ProcessLookupError()

        with patch("rosapilot.core.command_runner.asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(asyncio.CancelledError):
                asyncio.run(CommandRunner(logger=MagicMock()).run("rosa", "whoami"))

        process.kill.assert_not_called()
