import asyncio
from pathlib import Path

import pytest

from rosapilot.clients.terraform import PLAN_FILE, TerraformRunner
from rosapilot.exceptions import MalformedOutputError


class TestTerraformRunner:
    def test_plan_and_apply(self, runner, tmp_path: Path):
        terraform = TerraformRunner(tmp_path / "work", runner, binary="tofu")

        asyncio.run(terraform.init())
        asyncio.run(terraform.plan({"aws_region": "us-east-1", "cluster_name": "demo"}))
        asyncio.run(terraform.apply())

        assert (tmp_path / "work").is_dir()
        assert runner.calls == [
            ("tofu", "init", "-input=false", "-no-color"),
            ("tofu", "plan", "-input=false", "-no-color", f"-out={PLAN_FILE}",
             "-var", "aws_region=us-east-1", "-var", "cluster_name=demo"),
            ("tofu", "apply", "-input=false", "-no-color", "-auto-approve", PLAN_FILE),
        ]

    def test_output(self, runner, tmp_path: Path):
        runner.on("output", stdout={"vpc-id": {"value": "vpc-1", "type": "string", "sensitive": False}})

        outputs = asyncio.run(TerraformRunner(tmp_path, runner).output())

        assert outputs["vpc-id"].value == "vpc-1"

    def test_empty_output(self, runner, tmp_path: Path):
        assert asyncio.run(TerraformRunner(tmp_path, runner).output()) == {}

    def test_malformed_output(self, runner, tmp_path: Path):
        runner.on("output", stdout="not json")

        with pytest.raises(MalformedOutputError):
            asyncio.run(TerraformRunner(tmp_path, runner).output())
