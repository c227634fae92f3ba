"""Subcommands of the ``vsphere-provisioner`` CLI.

Every command loads the YAML config, calls into :mod:`vsphere_provisioner.config`
and renders the result. Errors are turned into one stderr line and exit code 1.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from vsphere_provisioner.cli import app
from vsphere_provisioner.cli.errors import handle_error

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.progress import Progress, TaskID

    from vsphere_provisioner.config.schema import Config
    from vsphere_provisioner.engine.types import ApplyResult, Plan, ResourceChange

_DEFAULT_CONFIG = Path("vsphere-provisioner.yaml")

ConfigFile = Annotated[
    Path,
    typer.Option("--config", "-c", help="YAML file declaring provider and overrides."),
]
Plain = Annotated[bool, typer.Option("--no-color", help="Print without ANSI colors.")]
Yes = Annotated[bool, typer.Option("--auto-approve", help="Do not ask for confirmation.")]
SkipRefresh = Annotated[
    bool,
    typer.Option("--no-refresh", help="Plan against the state file without reading vCenter."),
]


def _colored(no_color: bool) -> bool:
    return not no_color and not os.environ.get("NO_COLOR")


@contextmanager
def _reported(color: bool) -> Iterator[None]:
    """Convert any failure inside the block into a clean CLI exit."""
    try:
        yield
    except typer.Exit:
        raise
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc


def _ask(question: str, *, canceled: str) -> None:
    try:
        typer.confirm(question, abort=True)
    except typer.Abort as e:
        typer.echo(canceled, err=True)
        raise typer.Exit(1) from e


def _show_changes(
    changes: list[ResourceChange], summary: dict[str, int], *, color: bool, header: str
) -> None:
    from vsphere_provisioner.cli.formatting import format_changes, format_plan_summary

    typer.echo(format_changes(changes, color=color))
    typer.echo()
    typer.echo(format_plan_summary(summary, color=color, header=header))


class _ApplyReporter:
    """Feeds engine progress events into a rich progress bar."""

    def __init__(self, progress: Progress, task: TaskID) -> None:
        self._progress = progress
        self._task = task

    def __call__(self, change: ResourceChange, event: Literal["start", "done"]) -> None:
        from vsphere_provisioner.cli.formatting import _ACTION_STYLES

        verbs = _ACTION_STYLES[change.action.value]
        if event == "start":
            label = f"{change.address}: {verbs.progress_verb}..."
            self._progress.update(self._task, description=label)
            return
        self._progress.console.print(f"  {change.address}: {verbs.done_verb}")
        self._progress.advance(self._task)


def _run_apply(plan_obj: Plan, cfg: Config, *, color: bool) -> ApplyResult:
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

    from vsphere_provisioner.config import apply

    pending = sum(1 for c in plan_obj.changes if c.action.value != "no-op")
    columns = (
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
    )
    with Progress(*columns, console=Console(no_color=not color)) as bar:
        reporter = _ApplyReporter(bar, bar.add_task("Applying", total=pending))
        return apply(plan_obj, cfg, progress=reporter)


def _execute(
    plan_obj: Plan,
    cfg: Config,
    *,
    color: bool,
    auto_approve: bool,
    question: str,
    nothing_to_do: str,
) -> None:
    """Print the plan, ask for approval and apply it."""
    from vsphere_provisioner.cli.formatting import format_apply_summary, has_actionable_changes

    if not has_actionable_changes(plan_obj):
        typer.echo(nothing_to_do)
        raise typer.Exit(0)

    _show_changes(plan_obj.changes, plan_obj.summary(), color=color, header="Plan")
    typer.echo()
    if not auto_approve:
        _ask(question, canceled="Apply canceled.")

    with _reported(color):
        result = _run_apply(plan_obj, cfg, color=color)
    typer.echo()
    typer.echo(format_apply_summary(result.summary(), color=color))


@app.command()
def plan(
    config: ConfigFile = _DEFAULT_CONFIG,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Write the plan to this file for a later apply."),
    ] = None,
    no_color: Plain = False,
    no_refresh: SkipRefresh = False,
) -> None:
    """Show what apply would change. Exits with 2 when there are changes."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.cli.formatting import has_actionable_changes

    color = _colored(no_color)
    with _reported(color):
        plan_obj = api.plan(api.load(config), refresh=not no_refresh)

    _show_changes(plan_obj.changes, plan_obj.summary(), color=color, header="Plan")
    if out is not None:
        plan_obj.save(out)
        typer.echo(f"\nPlan saved to {out}")
    if has_actionable_changes(plan_obj):
        raise typer.Exit(2)


@app.command(name="apply")
def apply_cmd(
    plan_file: Annotated[
        Path | None,
        typer.Argument(help="Plan written by 'plan --out'. Planned fresh when omitted."),
    ] = None,
    config: ConfigFile = _DEFAULT_CONFIG,
    auto_approve: Yes = False,
    no_color: Plain = False,
    no_refresh: SkipRefresh = False,
) -> None:
    """Create, update, replace or delete overrides to match the config."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.engine.types import Plan

    color = _colored(no_color)
    with _reported(color):
        cfg = api.load(config)
        if plan_file is None:
            plan_obj = api.plan(cfg, refresh=not no_refresh)
        else:
            plan_obj = Plan.load(plan_file)

    _execute(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        question="Do you want to apply these changes?",
        nothing_to_do="No changes. Resources are up-to-date.",
    )


@app.command()
def destroy(
    config: ConfigFile = _DEFAULT_CONFIG,
    auto_approve: Yes = False,
    no_color: Plain = False,
) -> None:
    """Remove every override recorded in the state file."""
    from vsphere_provisioner import config as api

    color = _colored(no_color)
    with _reported(color):
        cfg = api.load(config)
        plan_obj = api.plan(cfg, destroy=True)

    _execute(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        question="Do you really want to destroy all resources?",
        nothing_to_do="No resources to destroy.",
    )


@app.command(name="refresh")
def refresh_cmd(
    config: ConfigFile = _DEFAULT_CONFIG,
    auto_approve: Yes = False,
    no_color: Plain = False,
) -> None:
    """Rewrite the state file from what vCenter currently reports."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.cli.formatting import changes_summary

    color = _colored(no_color)
    with _reported(color):
        cfg = api.load(config)
        changes, state = api.refresh(cfg)

    if not changes:
        typer.echo("No changes. State is up-to-date with vCenter.")
        raise typer.Exit(0)

    _show_changes(changes, changes_summary(changes), color=color, header="Refresh")
    typer.echo()
    if not auto_approve:
        _ask("Do you want to update the state file?", canceled="Refresh canceled.")

    with _reported(color):
        api.save_state(cfg, state)
    tracked = len(state.resources)
    typer.echo(f"State refreshed. {tracked} resource{'' if tracked == 1 else 's'} tracked.")


@app.command()
def drift(
    config: ConfigFile = _DEFAULT_CONFIG,
    no_color: Plain = False,
) -> None:
    """List differences between the state file and vCenter without saving them."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.cli.formatting import format_changes

    color = _colored(no_color)
    with _reported(color):
        changes = api.drift(api.load(config))

    if changes:
        typer.echo("Drift detected:\n")
        typer.echo(format_changes(changes, color=color))
    else:
        typer.echo("No drift detected. State is up-to-date with vCenter.")


@app.command(name="import")
def import_cmd(
    address: Annotated[
        str,
        typer.Argument(help="Declared address, e.g. vsphere_ha_vm_override.web01."),
    ],
    import_input: Annotated[
        str,
        typer.Argument(
            metavar="INPUT",
            help="JSON object with compute_cluster_path and virtual_machine_path.",
        ),
    ],
    config: ConfigFile = _DEFAULT_CONFIG,
    no_color: Plain = False,
) -> None:
    """Adopt an override that already exists in vCenter."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.cli.formatting import styler

    color = _colored(no_color)
    with _reported(color):
        inst = api.import_resource(api.load(config), address, import_input)

    typer.echo(styler(color)(f"{address}: Import prepared! (id={inst.id})", fg="green"))


@app.command()
def validate(
    config: ConfigFile = _DEFAULT_CONFIG,
    no_color: Plain = False,
) -> None:
    """Check the config offline: schema, addresses and handler rules."""
    from vsphere_provisioner import config as api
    from vsphere_provisioner.cli.formatting import styler

    color = _colored(no_color)
    with _reported(color):
        api.validate(api.load(config))

    typer.echo(styler(color)("Configuration is valid.", fg="green"))
