"""Terraform-style rendering of plans, drift and apply results."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

import typer

from vsphere_provisioner.engine.types import Action

if TYPE_CHECKING:
    from collections.abc import Callable

    from vsphere_provisioner.engine.types import Plan, ResourceChange


class _ActionStyle(NamedTuple):
    color: str
    symbol: str
    description: str
    progress_verb: str
    done_verb: str


_ACTION_STYLES: dict[str, _ActionStyle] = {
    Action.CREATE.value: _ActionStyle(
        "green", "+", "will be created", "Creating", "Creation complete"
    ),
    Action.UPDATE.value: _ActionStyle(
        "yellow", "~", "will be updated in-place", "Modifying", "Modifications complete"
    ),
    Action.REPLACE.value: _ActionStyle(
        "magenta", "-/+", "must be replaced", "Replacing", "Replacement complete"
    ),
    Action.DELETE.value: _ActionStyle(
        "red", "-", "will be destroyed", "Destroying", "Destruction complete"
    ),
    Action.NOOP.value: _ActionStyle("bright_black", " ", "is up-to-date", "", ""),
}

_NO_CHANGES = "No changes. Resources are up-to-date."


def styler(color: bool) -> Callable[..., str]:
    """``typer.style``, or an identity function when color is off."""
    if not color:
        return lambda text, **_kw: text
    return typer.style


def has_actionable_changes(plan: Plan) -> bool:
    return any(c.action != Action.NOOP for c in plan.changes)


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def _shown_attributes(change: ResourceChange) -> dict[str, str]:
    if change.action in (Action.UPDATE, Action.REPLACE):
        diff = change.diff or {}
        return {k: f"{_literal(d['from'])} -> {_literal(d['to'])}" for k, d in diff.items()}
    source = {Action.CREATE: change.planned, Action.DELETE: change.prior}.get(change.action)
    return {k: _literal(v) for k, v in (source or {}).items()}


def format_change(change: ResourceChange, *, color: bool = True) -> str:
    """One ``resource "<type>" "<name>" { ... }`` block with aligned ``=``."""
    paint = styler(color)
    look = _ACTION_STYLES[change.action.value]
    name = change.address.partition(".")[2] or change.address
    attrs = _shown_attributes(change)
    width = max(map(len, attrs), default=0)

    lines = [
        paint(f"  # {change.address} {look.description}", fg=look.color, bold=True),
        paint(f'  {look.symbol} resource "{change.resource_type}" "{name}" {{', fg=look.color),
    ]
    lines += [
        paint(f"      {look.symbol} {key.ljust(width)} = {value}", fg=look.color)
        for key, value in attrs.items()
    ]
    lines.append(paint("    }", fg=look.color))
    return "\n".join(lines)


def format_changes(changes: list[ResourceChange], *, color: bool = True) -> str:
    blocks = [format_change(c, color=color) for c in changes if c.action != Action.NOOP]
    return "\n\n".join(blocks) if blocks else _NO_CHANGES


def format_plan(plan: Plan, *, color: bool = True) -> str:
    return format_changes(plan.changes, color=color)


def changes_summary(changes: list[ResourceChange]) -> dict[str, int]:
    """Per-action counts, without no-ops."""
    summary = dict.fromkeys(
        (Action.CREATE.value, Action.UPDATE.value, Action.REPLACE.value, Action.DELETE.value), 0
    )
    for change in changes:
        if change.action != Action.NOOP:
            summary[change.action.value] += 1
    return summary


def _counts(summary: dict[str, int], verbs: tuple[str, str, str], *, color: bool) -> str:
    # A replace is one destroy plus one add.
    replaced = summary.get("replace", 0)
    rows = (
        (summary.get("create", 0) + replaced, verbs[0], "green"),
        (summary.get("update", 0), verbs[1], "yellow"),
        (summary.get("delete", 0) + replaced, verbs[2], "red"),
    )
    paint = styler(color)
    return ", ".join(paint(f"{n} {verb}", fg=fg) if n else f"{n} {verb}" for n, verb, fg in rows)


def format_plan_summary(
    summary: dict[str, int], *, color: bool = True, header: str = "Plan"
) -> str:
    """``Plan: 2 to add, 1 to change, 0 to destroy.``"""
    counts = _counts(summary, ("to add", "to change", "to destroy"), color=color)
    return f"{header}: {counts}."


def format_apply_summary(summary: dict[str, int], *, color: bool = True) -> str:
    """``Apply complete! Resources: 2 added, 0 changed, 0 destroyed.``"""
    head = styler(color)("Apply complete!", fg="green", bold=True)
    counts = _counts(summary, ("added", "changed", "destroyed"), color=color)
    return f"{head} Resources: {counts}."
