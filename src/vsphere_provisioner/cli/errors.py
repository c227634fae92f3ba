"""Translate exceptions into one-line stderr messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

if TYPE_CHECKING:
    from vsphere_provisioner.engine.errors import ApplyError


def _partial_result(exc: ApplyError) -> str | None:
    summary = exc.result.summary()
    done = [
        f"{summary[key]} {verb}"
        for key, verb in (
            ("create", "added"),
            ("update", "changed"),
            ("replace", "replaced"),
            ("delete", "destroyed"),
        )
        if summary[key]
    ]
    return f"  Partial result: {', '.join(done)}." if done else None


def _messages(exc: Exception) -> list[str]:
    from vsphere_provisioner.config.loader import ConfigError
    from vsphere_provisioner.engine.errors import (
        ApplyCanceled,
        ApplyError,
        ResourceImportError,
        StalePlanError,
        StateLockError,
        StateWorkspaceMismatchError,
        ValidationError,
    )
    from vsphere_provisioner.vsphere.errors import VSphereError

    if isinstance(exc, ValidationError):
        return ["Validation failed:", *(f"  - {e}" for e in exc.errors)]
    if isinstance(exc, ApplyError):
        partial = _partial_result(exc)
        return [f"Apply failed: {exc}", *([partial] if partial else [])]
    if isinstance(exc, ApplyCanceled):
        return ["Apply canceled."]

    prefixes: tuple[tuple[type[Exception], str], ...] = (
        (ConfigError, "Configuration error"),
        (StalePlanError, "Plan is stale"),
        (StateWorkspaceMismatchError, "State mismatch"),
        (StateLockError, "State lock error"),
        (ResourceImportError, "Import failed"),
        (VSphereError, "vSphere error"),
    )
    for exc_type, prefix in prefixes:
        if isinstance(exc, exc_type):
            return [f"{prefix}: {exc}"]
    return [f"Error: {exc}"]


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Report *exc* on stderr without a traceback and return exit code 1."""
    fg = typer.colors.RED if color else None
    for line in _messages(exc):
        typer.echo(typer.style(line, fg=fg), err=True)
    return 1
