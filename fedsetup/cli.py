"""Command line interface for running the federation setup."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from .constants import StepStatus
from .context import get_context
from .errors import StepNotFoundError
from .workflow import SetupWorkflow

T = TypeVar("T")

app = typer.Typer(help="CLI for Google Workspace and Microsoft Entra ID federation setup")

# Command groups
steps_app = typer.Typer(help="Commands for inspecting the step catalogue")

app.add_typer(steps_app, name="steps")

DomainOption = typer.Option(None, "--domain", envvar="FEDSETUP_DOMAIN", help="Primary domain")
TenantOption = typer.Option(
    None, "--tenant-id", envvar="FEDSETUP_TENANT_ID", help="Microsoft Entra tenant ID"
)

_STATUS_COLORS = {
    StepStatus.COMPLETED: typer.colors.GREEN,
    StepStatus.FAILED: typer.colors.RED,
    StepStatus.IN_PROGRESS: typer.colors.YELLOW,
    StepStatus.BLOCKED: typer.colors.MAGENTA,
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    """Federation setup CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ----------------------------------------------------------------------
# Helpers
def _run(
    domain: Optional[str],
    tenant_id: Optional[str],
    operation: Callable[[SetupWorkflow], Awaitable[T]],
    save: bool = True,
) -> tuple[SetupWorkflow, T]:
    if not domain or not tenant_id:
        typer.secho("Both --domain and --tenant-id are required", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _main() -> tuple[SetupWorkflow, T]:
        async with SetupWorkflow(get_context()) as workflow:
            await workflow.configure(domain, tenant_id)
            result = await operation(workflow)
            if save:
                await workflow.save()
            return workflow, result

    try:
        return asyncio.run(_main())
    except StepNotFoundError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _print_status(workflow: SetupWorkflow) -> None:
    state = workflow.state
    for step in workflow.registry:
        info = state.step_status(step.id)
        status = StepStatus(info.status)
        label = status.value
        if info.completion_type:
            label += f" ({info.completion_type.value})"
        typer.secho(f"{step.id:<5} {label:<28}", fg=_STATUS_COLORS.get(status), nl=False)
        typer.echo(f" {step.title}")
        detail = info.error or info.message
        if detail:
            typer.echo(f"      {detail}")


def _print_active_error(workflow: SetupWorkflow) -> bool:
    error = workflow.state.active_error
    if error is None:
        return False
    typer.secho(f"{error.title}: {error.message}", fg=typer.colors.RED)
    for action in error.actions:
        if action.url:
            typer.echo(f"  {action.label}: {action.url}")
    return True


# ----------------------------------------------------------------------
# Step catalogue
@steps_app.command("list")
def steps_list() -> None:
    """List every step in workflow order."""

    workflow = SetupWorkflow(get_context())
    try:
        for step in workflow.registry:
            flags = []
            if not step.automatable:
                flags.append("manual")
            typer.echo(
                f"{step.id:<5} {step.provider.value:<10} {step.automatability.value:<11}"
                f" {step.title}" + (f" [{', '.join(flags)}]" if flags else "")
            )
    finally:
        asyncio.run(workflow.aclose())


@steps_app.command("show")
def steps_show(step_id: str) -> None:
    """Show the definition of a single step as JSON."""

    workflow = SetupWorkflow(get_context())
    try:
        step = workflow.registry.get_step(step_id)
        if step is None:
            typer.secho(f"Step {step_id} not found", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.echo(json.dumps(step.describe(), indent=2))
    finally:
        asyncio.run(workflow.aclose())


# ----------------------------------------------------------------------
# Progress
@app.command("status")
def status(domain: Optional[str] = DomainOption, tenant_id: Optional[str] = TenantOption) -> None:
    """Show the recorded status of every step."""

    async def _noop(workflow: SetupWorkflow) -> None:
        return None

    workflow, _ = _run(domain, tenant_id, _noop, save=False)
    _print_status(workflow)


@app.command("check")
def check(
    domain: Optional[str] = DomainOption,
    tenant_id: Optional[str] = TenantOption,
    include_manual: bool = typer.Option(
        False, "--all", help="Also check steps that are not automatable"
    ),
) -> None:
    """Verify the real-world state of every checkable step."""

    async def _check(workflow: SetupWorkflow):
        return await workflow.check_all(include_manual=include_manual)

    workflow, _ = _run(domain, tenant_id, _check)
    _print_status(workflow)
    _print_active_error(workflow)


@app.command("run")
def run(domain: Optional[str] = DomainOption, tenant_id: Optional[str] = TenantOption) -> None:
    """Check every step, then execute the pending automatable ones in order.

    Stops at the first step that fails.

    Example:
        fedsetup run --domain example.com --tenant-id 0000-1111
    """

    async def _run_all(workflow: SetupWorkflow):
        await workflow.check_all()
        return await workflow.run_all_pending()

    workflow, attempted = _run(domain, tenant_id, _run_all)
    typer.echo(f"Executed {len(attempted)} step(s)")
    _print_status(workflow)
    if _print_active_error(workflow):
        raise typer.Exit(code=1)


@app.command("execute")
def execute(
    step_id: str,
    domain: Optional[str] = DomainOption,
    tenant_id: Optional[str] = TenantOption,
) -> None:
    """Execute a single step."""

    async def _execute(workflow: SetupWorkflow):
        return await workflow.execute(step_id)

    workflow, allowed = _run(domain, tenant_id, _execute)
    info = workflow.state.step_status(step_id)
    if allowed and info.status == StepStatus.COMPLETED:
        typer.secho(f"{step_id}: {info.message or 'completed'}", fg=typer.colors.GREEN)
        resource_url = info.metadata.get("resourceUrl")
        if resource_url:
            typer.echo(f"  {resource_url}")
        return
    _print_active_error(workflow)
    raise typer.Exit(code=1)


@app.command("mark-complete")
def mark_complete(
    step_id: str,
    domain: Optional[str] = DomainOption,
    tenant_id: Optional[str] = TenantOption,
) -> None:
    """Attest that a step was completed by hand."""

    async def _mark(workflow: SetupWorkflow) -> None:
        workflow.mark_complete(step_id)

    _run(domain, tenant_id, _mark)
    typer.echo(f"{step_id} marked complete")


@app.command("mark-incomplete")
def mark_incomplete(
    step_id: str,
    domain: Optional[str] = DomainOption,
    tenant_id: Optional[str] = TenantOption,
) -> None:
    """Revert a step to pending."""

    async def _mark(workflow: SetupWorkflow) -> None:
        workflow.mark_incomplete(step_id)

    _run(domain, tenant_id, _mark)
    typer.echo(f"{step_id} marked incomplete")


@app.command("reset")
def reset(domain: Optional[str] = DomainOption, tenant_id: Optional[str] = TenantOption) -> None:
    """Delete all stored progress for the domain."""

    async def _reset(workflow: SetupWorkflow) -> None:
        await workflow.reset()

    _run(domain, tenant_id, _reset, save=False)
    typer.echo(f"Progress for {domain} cleared")


if __name__ == "__main__":
    app()
