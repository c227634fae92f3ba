"""Python API over the YAML config: load it, then plan, apply or inspect drift."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import SecretStr

from vsphere_provisioner.config.loader import ConfigError, load_config
from vsphere_provisioner.config.registry import default_registry
from vsphere_provisioner.config.schema import Config, ProviderConfig
from vsphere_provisioner.core.provider import PasswordAuth, VSphereProvider
from vsphere_provisioner.core.state import State
from vsphere_provisioner.engine.engine import ProgressCallback, VSphereEngine
from vsphere_provisioner.engine.lock import StateLock
from vsphere_provisioner.engine.types import Action, ResourceChange

if TYPE_CHECKING:
    from pathlib import Path

    from vsphere_provisioner.core.state import ResourceInstance
    from vsphere_provisioner.engine.types import ApplyResult, Plan

__all__ = [
    "Config",
    "ConfigError",
    "ProviderConfig",
    "State",
    "apply",
    "drift",
    "import_resource",
    "load",
    "load_config",
    "plan",
    "plan_and_apply",
    "refresh",
    "save_state",
    "validate",
]

_REQUIRED_CONNECTION_FIELDS = (
    ("server", "set in YAML or VSPHERE_SERVER env var"),
    ("user", "set in YAML or VSPHERE_USER env var"),
    ("password", "set VSPHERE_PASSWORD env var"),
)


def load(path: Path | str) -> Config:
    return load_config(path)


def _engine_from_config(config: Config) -> VSphereEngine:
    p = config.provider
    conn: dict[str, str] = {}
    for field, hint in _REQUIRED_CONNECTION_FIELDS:
        conn[field] = getattr(p, field)
        if not conn[field]:
            raise ConfigError(f"provider.{field} is required ({hint})")
    return VSphereEngine(
        provider=VSphereProvider(
            server=conn["server"],
            port=p.port,
            auth=PasswordAuth(user=conn["user"], password=SecretStr(conn["password"])),
            allow_unverified_ssl=p.allow_unverified_ssl,
        ),
        workspace=p.workspace,
        state_path=config.state_path,
        registry=default_registry(),
    )


def validate(config: Config) -> None:
    """Check the declared resources offline; no connection settings needed."""
    engine = VSphereEngine(
        provider=VSphereProvider(),
        workspace=config.provider.workspace,
        state_path=config.state_path,
        registry=default_registry(),
    )
    engine.validate(config.resources)


def plan(config: Config, *, destroy: bool = False, refresh: bool = True) -> Plan:
    return _engine_from_config(config).plan(config.resources, destroy=destroy, refresh=refresh)


def apply(
    plan_obj: Plan, config: Config, *, progress: ProgressCallback | None = None
) -> ApplyResult:
    return _engine_from_config(config).apply(plan_obj, progress=progress)


def plan_and_apply(config: Config, *, destroy: bool = False, refresh: bool = True) -> ApplyResult:
    return apply(plan(config, destroy=destroy, refresh=refresh), config)


def refresh(config: Config) -> tuple[list[ResourceChange], State]:
    """Read every tracked override back from vCenter without saving.

    Returns what changed relative to the state file, and the refreshed state
    to hand to :func:`save_state` if the caller accepts it.
    """
    before, after = _engine_from_config(config).compare()
    return _build_drift_changes(before, after), after


def save_state(config: Config, state: State) -> None:
    with StateLock(config.state_path):
        state.commit(config.state_path)


def drift(config: Config) -> list[ResourceChange]:
    return refresh(config)[0]


def import_resource(config: Config, address: str, import_input: str) -> ResourceInstance:
    """Adopt an existing remote object for an address declared in *config*."""
    if all(r.address != address for r in config.resources):
        raise ConfigError(f"Resource {address} is not declared in the configuration")
    return _engine_from_config(config).import_resource(address, import_input)


def _drift_for(before: ResourceInstance, after: ResourceInstance | None) -> ResourceChange | None:
    if after is None:
        return ResourceChange(
            address=before.address,
            resource_type=before.resource_type,
            action=Action.DELETE,
            prior=dict(before.attributes),
        )
    old, new = before.attributes, after.attributes
    diff = {
        key: {"from": old.get(key), "to": new.get(key)}
        for key in sorted(old.keys() | new.keys())
        if old.get(key) != new.get(key)
    }
    if not diff:
        return None
    return ResourceChange(
        address=after.address,
        resource_type=after.resource_type,
        action=Action.UPDATE,
        prior=dict(old),
        planned=dict(new),
        diff=diff,
    )


def _build_drift_changes(before: State, after: State) -> list[ResourceChange]:
    """Removed overrides become deletes, changed ones updates."""
    changes = (
        _drift_for(inst, after.resources.get(address))
        for address, inst in before.resources.items()
    )
    return [c for c in changes if c is not None]
