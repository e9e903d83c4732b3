import asyncio
from pathlib import Path

import pytest

from rosapilot.providers.rosa.logs import ClusterLogs, ClusterLogType


class TestClusterLogs:
    @pytest.mark.parametrize("log_type", [ClusterLogType.INSTALL, "uninstall"])
    def test_collect_writes_report(self, runner, rosa, tmp_path: Path, log_type):
        runner.on("logs", stdout="log line\n")

        log_file = asyncio.run(ClusterLogs(rosa).collect(log_type, "demo", tmp_path / "reports"))

        assert log_file == tmp_path / "reports" / f"demo-{log_type}.log"
        assert log_file.read_text() == "log line\n"
        assert runner.calls == [("rosa", "logs", str(log_type), "--cluster", "demo")]

    def test_unknown_log_type(self, runner, rosa, tmp_path: Path):
        with pytest.raises(ValueError):
            asyncio.run(ClusterLogs(rosa).collect("debug", "demo", tmp_path))

        assert runner.calls == []
