"""Tests for the operator CLI."""

import json

import pytest
from click.testing import CliRunner
from rich.console import Console

from reviewflow import cli as cli_module
from reviewflow.application.session import OrchestrationSession
from reviewflow.cli import cli
from reviewflow.domain.models import AgentRole, FlowState
from reviewflow.domain.tool_actions import AskUserAction, RequestReviewAction
from reviewflow.infrastructure.persistence.filesystem import (
    FilesystemLogStore,
    get_log_path,
)
from reviewflow.infrastructure.plan_store import FilesystemPlanStore


@pytest.fixture(autouse=True)
def wide_console(monkeypatch) -> None:  # noqa: ANN001
    """Keep table cells on one line so output can be matched."""
    monkeypatch.setattr(cli_module, "console", Console(width=200))


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _open(plan_file) -> OrchestrationSession:  # noqa: ANN001
    return OrchestrationSession.open(
        str(plan_file), FilesystemPlanStore(), FilesystemLogStore()
    )


class TestStatus:
    def test_fresh_plan(self, runner, plan_file) -> None:  # noqa: ANN001
        result = runner.invoke(cli, ["status", str(plan_file)], obj={})

        assert result.exit_code == 0, result.output
        assert "fresh start" in result.output
        assert "coder_active" in result.output
        assert "0/3" in result.output

    def test_status_does_not_write_log(
        self, runner, plan_file  # noqa: ANN001
    ) -> None:
        runner.invoke(cli, ["status", str(plan_file)], obj={})

        assert not get_log_path(str(plan_file)).exists()

    def test_resumed_plan(self, runner, plan_file) -> None:  # noqa: ANN001
        _open(plan_file).apply(RequestReviewAction(), AgentRole.CODER)

        result = runner.invoke(cli, ["status", str(plan_file)], obj={})

        assert result.exit_code == 0, result.output
        assert "reviewer_active" in result.output

    def test_corrupt_log_warns(self, runner, plan_file) -> None:  # noqa: ANN001
        log_path = get_log_path(str(plan_file))
        log_path.parent.mkdir()
        log_path.write_text("{")

        result = runner.invoke(cli, ["status", str(plan_file)], obj={})

        assert result.exit_code == 0, result.output
        assert "Warning:" in result.output

    def test_config_file_sets_guard(
        self, runner, plan_file, tmp_path  # noqa: ANN001
    ) -> None:
        config = tmp_path / "reviewflow.json"
        config.write_text(json.dumps({"max_change_requests": 5}))

        result = runner.invoke(
            cli, ["--config", str(config), "status", str(plan_file)], obj={}
        )

        assert "0/5" in result.output

    def test_invalid_config_is_reported(
        self, runner, plan_file, tmp_path  # noqa: ANN001
    ) -> None:
        config = tmp_path / "reviewflow.json"
        config.write_text(json.dumps({"max_change_requests": 0}))

        result = runner.invoke(
            cli, ["--config", str(config), "status", str(plan_file)], obj={}
        )

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestHistory:
    def test_no_log(self, runner, plan_file) -> None:  # noqa: ANN001
        result = runner.invoke(cli, ["history", str(plan_file)], obj={})

        assert result.exit_code == 0
        assert "No orchestration log" in result.output

    def test_lists_entries(self, runner, plan_file) -> None:  # noqa: ANN001
        _open(plan_file).apply(RequestReviewAction(), AgentRole.CODER)

        result = runner.invoke(cli, ["history", str(plan_file)], obj={})

        assert result.exit_code == 0, result.output
        assert "lifecycle" in result.output
        assert "state_transition" in result.output

    def test_limit(self, runner, plan_file) -> None:  # noqa: ANN001
        _open(plan_file).apply(RequestReviewAction(), AgentRole.CODER)

        result = runner.invoke(
            cli, ["history", str(plan_file), "--limit", "1"], obj={}
        )

        assert "lifecycle" not in result.output
        assert "state_transition" in result.output

    def test_corrupt_log(self, runner, plan_file) -> None:  # noqa: ANN001
        log_path = get_log_path(str(plan_file))
        log_path.parent.mkdir()
        log_path.write_text("[]")

        result = runner.invoke(cli, ["history", str(plan_file)], obj={})

        assert result.exit_code == 1
        assert "Log is corrupt" in result.output

    def test_undecodable_log(self, runner, plan_file) -> None:  # noqa: ANN001
        log_path = get_log_path(str(plan_file))
        log_path.parent.mkdir()
        log_path.write_bytes(b"\xff\xfe{")

        result = runner.invoke(cli, ["history", str(plan_file)], obj={})

        assert result.exit_code == 1
        assert "Log is corrupt" in result.output


class TestReply:
    def test_answers_open_question(
        self, runner, plan_file  # noqa: ANN001
    ) -> None:
        _open(plan_file).apply(
            AskUserAction(message="Which cache?", requester=AgentRole.CODER),
            AgentRole.CODER,
        )

        result = runner.invoke(cli, ["reply", str(plan_file), "redis"], obj={})

        assert result.exit_code == 0, result.output
        assert "Reply recorded" in result.output
        session = _open(plan_file)
        assert session.get_state() == FlowState.CODER_ACTIVE

    def test_not_waiting(self, runner, plan_file) -> None:  # noqa: ANN001
        result = runner.invoke(cli, ["reply", str(plan_file), "hello"], obj={})

        assert result.exit_code == 1
        assert "Not waiting for input" in result.output


class TestReset:
    def test_no_log(self, runner, plan_file) -> None:  # noqa: ANN001
        result = runner.invoke(cli, ["reset", str(plan_file), "--yes"], obj={})

        assert result.exit_code == 0
        assert "No orchestration log" in result.output

    def test_deletes_log(self, runner, plan_file) -> None:  # noqa: ANN001
        _open(plan_file)

        result = runner.invoke(cli, ["reset", str(plan_file), "--yes"], obj={})

        assert result.exit_code == 0, result.output
        assert not get_log_path(str(plan_file)).exists()

    def test_declined_confirmation_keeps_log(
        self, runner, plan_file  # noqa: ANN001
    ) -> None:
        _open(plan_file)

        result = runner.invoke(cli, ["reset", str(plan_file)], input="n\n", obj={})

        assert result.exit_code == 1
        assert get_log_path(str(plan_file)).exists()
