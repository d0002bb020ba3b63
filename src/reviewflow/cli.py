"""
Operator CLI for inspecting and steering an orchestration.

Usage:
    reviewflow status plans/feature.md
    reviewflow history plans/feature.md --limit 20
    reviewflow reply plans/feature.md "Go with option B"
    reviewflow reset plans/feature.md --yes
"""

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from reviewflow.application.config import OrchestrationConfig, load_config
from reviewflow.application.resume_service import resume_orchestration
from reviewflow.application.session import OrchestrationSession
from reviewflow.domain.event_log import (
    AskUserEntry,
    ErrorEntry,
    LifecycleEntry,
    LogEntry,
    StateTransitionEntry,
    StepChangeEntry,
    ToolCallEntry,
    get_log_summary,
)
from reviewflow.domain.exceptions import (
    ConfigurationError,
    LogParseError,
    PlanLoadError,
)
from reviewflow.domain.models import FlowState
from reviewflow.domain.step_resolver import PlanBodyStepResolver
from reviewflow.infrastructure.persistence.filesystem import (
    FilesystemLogStore,
    get_log_path,
)
from reviewflow.infrastructure.plan_store import FilesystemPlanStore
from reviewflow.logging_setup import setup_logging

console = Console()

STATE_STYLES = {
    FlowState.CODER_ACTIVE: "cyan",
    FlowState.REVIEWER_ACTIVE: "magenta",
    FlowState.AWAITING_USER_INPUT: "yellow",
    FlowState.ERROR: "red",
}


def _config(ctx: click.Context) -> OrchestrationConfig:
    config: OrchestrationConfig = ctx.obj["config"]
    return config


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _describe(entry: LogEntry) -> str:
    match entry:
        case StateTransitionEntry():
            return (
                f"{entry.from_state.value} -> {entry.to_state.value} "
                f"({entry.event.type})"
            )
        case ToolCallEntry():
            detail = f"{entry.agent.value}: {entry.tool_name}"
            if entry.transcript_path:
                detail += f" [transcript {entry.transcript_path}]"
            return detail
        case AskUserEntry():
            answer = entry.response if entry.response is not None else "(open)"
            return f"{entry.agent.value} asked: {entry.message} -> {answer}"
        case ErrorEntry():
            suffix = " (recovered)" if entry.recovered else ""
            return f"{entry.error}{suffix}"
        case StepChangeEntry():
            return f"{entry.from_step} -> {entry.to_step} ({entry.reason})"
        case LifecycleEntry():
            return entry.action.value
    return ""


def _styled_state(state: FlowState) -> str:
    return f"[{STATE_STYLES[state]}]{state.value}[/{STATE_STYLES[state]}]"


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a JSON config file",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Path to log file",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose (DEBUG) logging to console",
)
@click.pass_context
def cli(
    ctx: click.Context, config_path: str | None, log_file: str | None, verbose: bool
) -> None:
    """Coder/reviewer plan orchestration."""
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(log_file=log_file, verbose=verbose, level=config.log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def status(ctx: click.Context, plan: str) -> None:
    """Show where the orchestration of PLAN stands."""
    config = _config(ctx)
    plan_store = FilesystemPlanStore()
    try:
        resumed = resume_orchestration(
            plan,
            plan_store,
            FilesystemLogStore(),
            {"max_change_requests": config.max_change_requests},
        )
        steps = PlanBodyStepResolver(plan_store.load_plan(plan).body).steps
    except PlanLoadError as e:
        raise click.ClickException(str(e)) from e

    if resumed.error:
        console.print(f"[yellow]Warning:[/yellow] {resumed.error}")

    context = resumed.flow_machine.get_context()
    summary = get_log_summary(resumed.log)

    table = Table(title=f"Orchestration: {plan}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Log", str(get_log_path(plan)))
    resumed_label = "no (fresh start)" if resumed.is_fresh_start else "yes"
    table.add_row("Resumed", resumed_label)
    table.add_row("Active step", context.active_step)
    table.add_row("Steps", ", ".join(steps) or "(none found)")
    table.add_row("State", _styled_state(context.state))
    table.add_row(
        "Change requests",
        f"{context.change_request_count}/{config.max_change_requests}",
    )
    if context.user_prompt:
        table.add_row("Waiting on", context.user_prompt)
    if context.error_message:
        table.add_row("Error", f"[red]{context.error_message}[/red]")
    table.add_row(
        "Entries",
        f"{summary.total_transitions} transitions, "
        f"{summary.total_tool_calls} tool calls, "
        f"{summary.total_ask_user} questions, "
        f"{summary.total_errors} errors",
    )
    console.print(table)


@cli.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--limit",
    default=None,
    type=click.IntRange(min=1),
    help="Show only the most recent N entries",
)
def history(plan: str, limit: int | None) -> None:
    """List the event log entries for PLAN."""
    try:
        log = FilesystemLogStore().load_log(plan)
    except LogParseError as e:
        raise click.ClickException(f"Log is corrupt: {e}") from e

    if log is None:
        console.print(f"No orchestration log for {plan}")
        return

    entries = log.entries[-limit:] if limit else log.entries
    table = Table(title=f"History: {plan}")
    table.add_column("Time")
    table.add_column("Step")
    table.add_column("Type")
    table.add_column("Details")
    for entry in entries:
        table.add_row(
            _format_time(entry.timestamp),
            entry.active_step,
            entry.type.value,
            _describe(entry),
        )
    console.print(table)


@cli.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False))
@click.argument("response")
@click.pass_context
def reply(ctx: click.Context, plan: str, response: str) -> None:
    """Answer the pending question for PLAN with RESPONSE."""
    try:
        session = OrchestrationSession.open(
            plan, FilesystemPlanStore(), FilesystemLogStore(), _config(ctx)
        )
    except PlanLoadError as e:
        raise click.ClickException(str(e)) from e

    if not session.executor.is_awaiting_user():
        raise click.ClickException(
            f"Not waiting for input (state: {session.get_state().value})"
        )

    result = session.reply(response)
    if not result.success:
        raise click.ClickException(result.blocked_reason or "Reply rejected")

    resumes = "reviewer" if result.trigger_reviewer else "coder"
    console.print(
        f"Reply recorded. The [bold]{resumes}[/bold] resumes "
        f"({_styled_state(result.new_state)})."
    )


@cli.command()
@click.argument("plan", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def reset(plan: str, yes: bool) -> None:
    """Discard the orchestration log for PLAN."""
    log_path = get_log_path(plan)
    if not log_path.exists():
        console.print(f"No orchestration log for {plan}")
        return
    if not yes:
        click.confirm(f"Delete {log_path}?", abort=True)
    FilesystemLogStore().delete_log(plan)
    console.print(f"Deleted {log_path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
