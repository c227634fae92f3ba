"""Typer application behind the ``vsphere-provisioner`` command."""

from __future__ import annotations

import logging
import os
import sys

import typer

from vsphere_provisioner import __version__

app = typer.Typer(
    name="vsphere-provisioner",
    help="Manage per-VM DRS overrides on vSphere clusters from YAML.",
    no_args_is_help=True,
    add_completion=False,
)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
_LOG_ENV = "VSPHERE_LOG"
_LEVELS_BY_NAME = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}
_LEVELS_BY_VERBOSITY = (None, logging.INFO, logging.DEBUG)


def _level_from_env(raw: str) -> int:
    name = raw.upper()
    if name in _LEVELS_BY_NAME:
        return _LEVELS_BY_NAME[name]
    print(
        f"WARNING: invalid {_LOG_ENV} level '{name}', "
        f"expected one of {', '.join(sorted(_LEVELS_BY_NAME))}; defaulting to INFO",
        file=sys.stderr,
    )
    return logging.INFO


def _configure_logging(verbose: int) -> None:
    """Route package logs to stderr.

    ``VSPHERE_LOG`` wins over ``-v``/``-vv``. Without either, logging is left
    alone so library users keep their own setup.
    """
    raw = os.environ.get(_LOG_ENV, "")
    if raw:
        level = _level_from_env(raw)
    else:
        level = _LEVELS_BY_VERBOSITY[min(verbose, 2)]
        if level is None:
            return
    # Root stays at WARNING so pyVmomi and urllib3 chatter is not amplified.
    logging.basicConfig(level=logging.WARNING, format=_LOG_FORMAT, stream=sys.stderr, force=True)
    logging.getLogger("vsphere_provisioner").setLevel(level)


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"vsphere-provisioner {__version__}")
    raise typer.Exit


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=_print_version,
        is_eager=True,
        help="Print the version and exit.",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Log to stderr: -v for INFO, -vv for DEBUG.",
    ),
) -> None:
    """Terraform-style plan/apply for vSphere DRS VM overrides."""
    _ = version
    _configure_logging(verbose)


# Commands import ``app`` from this module, so they register last.
from vsphere_provisioner.cli import commands as _commands  # noqa: E402, F401
