"""Plan/apply engine.

The engine owns the state file. Every public entry point takes the state
lock, loads the state, optionally reconciles it with vCenter through the
handlers, and writes it back after each successful remote change.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal

from vsphere_provisioner import __version__
from vsphere_provisioner.core.state import ResourceInstance, State, compute_state_digest
from vsphere_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    DuplicateAddressError,
    ResourceImportError,
    StalePlanError,
    StateWorkspaceMismatchError,
    ValidationError,
)
from vsphere_provisioner.engine.handlers import EngineContext, PlanContext
from vsphere_provisioner.engine.lock import StateLock
from vsphere_provisioner.engine.operations import OPERATIONS
from vsphere_provisioner.engine.types import Action, ApplyResult, Plan, PlanMetadata, ResourceChange

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from vsphere_provisioner.core import VSphereProvider
    from vsphere_provisioner.engine.registry import ResourceTypeRegistry
    from vsphere_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ResourceChange, Literal["start", "done"]], None]


def compute_config_digest(resources: Iterable[Resource]) -> str:
    """Order-independent digest of the desired configuration."""
    entries = sorted(
        [r.address, r.resource_type, r.model_dump(exclude={"address"})] for r in resources
    )
    canonical = json.dumps(entries, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _attribute_diff(prior: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
    return {
        key: {"from": prior.get(key), "to": value}
        for key, value in desired.items()
        if prior.get(key) != value
    }


def _ensure_current(plan: Plan, state: State) -> None:
    meta = plan.metadata
    checks = (
        ("lineage", state.lineage, meta.state_lineage),
        ("serial", state.serial, meta.state_serial),
        ("digest", compute_state_digest(state), meta.state_digest),
    )
    for what, actual, planned in checks:
        if actual != planned:
            raise StalePlanError(f"State {what} changed; re-run plan")


class VSphereEngine:
    """Terraform-like plan/apply over a local JSON state file."""

    def __init__(
        self,
        *,
        provider: VSphereProvider,
        workspace: str,
        state_path: Path,
        registry: ResourceTypeRegistry,
    ) -> None:
        self._provider = provider
        self._workspace = workspace
        self._state_path = state_path
        self._registry = registry

    @property
    def workspace(self) -> str:
        return self._workspace

    @property
    def state_path(self) -> Path:
        return self._state_path

    def _context(self) -> EngineContext:
        return EngineContext(provider=self._provider, workspace=self._workspace)

    def _check_workspace(self, state: State) -> State:
        if state.workspace != self._workspace:
            raise StateWorkspaceMismatchError(self._workspace, state.workspace)
        return state

    def _open_state(self) -> State:
        state = self._check_workspace(State.load_or_create(self._state_path, self._workspace))
        logger.debug("Tracking %d resources at serial %d", len(state.resources), state.serial)
        return state

    def _state_for(self, plan: Plan) -> State:
        if self._state_path.exists():
            return self._open_state()
        # A saved plan made before the first apply: start from the plan's lineage.
        return State(
            workspace=self._workspace,
            lineage=plan.metadata.state_lineage,
            serial=plan.metadata.state_serial,
        )

    def _reconcile(self, state: State) -> bool:
        """Re-read every tracked resource; drop the ones vCenter no longer has."""
        ctx = self._context()
        changed = False
        for address, inst in list(state.resources.items()):
            attrs = self._registry.get(inst.resource_type).handler.read(ctx, inst)
            if attrs is None:
                logger.info("%s is gone from vCenter, dropping it from state", address)
                state.forget(address)
                changed = True
            elif inst.observe(attrs):
                logger.debug("%s changed remotely", address)
                changed = True
        return changed

    def refresh(self, *, persist: bool = False) -> State:
        """Reconcile the state with vCenter and return it.

        The state file is only rewritten when ``persist`` is set and something
        changed.
        """
        return self.compare(persist=persist)[1]

    def compare(self, *, persist: bool = False) -> tuple[State, State]:
        """Like :meth:`refresh`, but also return the state as it was before.

        Both snapshots are taken under one lock hold.
        """
        with StateLock(self._state_path):
            state = self._open_state()
            before = state.model_copy(deep=True)
            if self._reconcile(state) and persist:
                state.commit(self._state_path)
            return before, state

    def _index(self, resources: Sequence[Resource]) -> dict[str, Resource]:
        by_address: dict[str, Resource] = {}
        for resource in resources:
            if resource.address in by_address:
                raise DuplicateAddressError(resource.address)
            self._registry.get(resource.resource_type)
            by_address[resource.address] = resource
        return by_address

    def _validate(self, desired: dict[str, Resource]) -> None:
        ctx = self._context()
        plan_ctx = PlanContext(desired)
        errors: list[str] = []
        for resource in desired.values():
            handler = self._registry.get(resource.resource_type).handler
            errors += handler.validate(ctx, resource)
            errors += handler.validate_plan(ctx, resource, plan_ctx)
        if errors:
            raise ValidationError(errors)

    def validate(self, resources: Sequence[Resource]) -> None:
        """Check *resources* without reading vCenter or the state file."""
        self._validate(self._index(resources))

    def _deletions(self, state: State, addresses: Iterable[str]) -> list[ResourceChange]:
        changes = []
        for address in sorted(addresses):
            inst = state.resources[address]
            self._registry.get(inst.resource_type)
            changes.append(
                ResourceChange(
                    address=address,
                    resource_type=inst.resource_type,
                    action=Action.DELETE,
                    prior=dict(inst.attributes),
                )
            )
        return changes

    def _change_for(self, resource: Resource, state: State) -> ResourceChange:
        desired = resource.model_dump(exclude={"address"})
        change = ResourceChange(
            address=resource.address,
            resource_type=resource.resource_type,
            action=Action.CREATE,
            desired=desired,
            planned=dict(desired),
        )
        inst = state.resources.get(resource.address)
        if inst is not None:
            change.prior = dict(inst.attributes)
            diff = _attribute_diff(change.prior, desired)
            if not diff:
                change.action = Action.NOOP
            elif diff.keys() & resource.force_new_fields():
                change.action = Action.REPLACE
            else:
                change.action = Action.UPDATE
            change.diff = diff or None
        logger.debug("%s: %s", resource.address, change.action.value)
        return change

    def plan(
        self, resources: Sequence[Resource], *, destroy: bool = False, refresh: bool = True
    ) -> Plan:
        logger.info(
            "Planning %d resources (destroy=%s refresh=%s)", len(resources), destroy, refresh
        )
        with StateLock(self._state_path):
            state = self._open_state()
            if refresh and self._reconcile(state):
                state.commit(self._state_path)

            desired = self._index(resources)
            if destroy:
                changes = self._deletions(state, state.resources)
            else:
                self._validate(desired)
                # Overrides are keyed remotely by (cluster, VM): release stale
                # entries before any create can claim the same key.
                changes = self._deletions(state, state.resources.keys() - desired.keys())
                changes += [self._change_for(r, state) for r in desired.values()]

            return Plan(
                metadata=PlanMetadata(
                    workspace=self._workspace,
                    destroy=destroy,
                    refresh=refresh,
                    state_lineage=state.lineage,
                    state_serial=state.serial,
                    state_digest=compute_state_digest(state),
                    config_digest=compute_config_digest([] if destroy else resources),
                    engine_version=__version__,
                ),
                changes=changes,
            )

    def apply(self, plan: Plan, *, progress: ProgressCallback | None = None) -> ApplyResult:
        with StateLock(self._state_path):
            state = self._check_workspace(self._state_for(plan))
            _ensure_current(plan, state)

            ctx = self._context()
            operations = [OPERATIONS[c.action](c) for c in plan.changes if c.action != Action.NOOP]
            logger.info("Applying %d changes", len(operations))

            applied: list[ResourceChange] = []
            for op in operations:
                change = op.change
                logger.debug("%s: running %s", change.address, change.action.value)
                if progress is not None:
                    progress(change, "start")
                try:
                    op.run(ctx=ctx, state=state, registry=self._registry)
                except KeyboardInterrupt as e:  # pragma: no cover
                    raise ApplyCanceled("Apply canceled") from e
                except Exception as e:
                    raise ApplyError(applied=applied, address=change.address, message=str(e)) from e
                state.commit(self._state_path)
                applied.append(change)
                if progress is not None:
                    progress(change, "done")

            return ApplyResult(applied=applied)

    def import_resource(self, address: str, import_input: str) -> ResourceInstance:
        """Adopt an existing remote object at *address*.

        The handler turns *import_input* into the remote ``id``; the object is
        then read back and its attributes recorded as the new state entry.
        """
        registration, name = self._registry.for_address(address)
        ctx = self._context()

        with StateLock(self._state_path):
            state = self._open_state()
            if address in state.resources:
                raise ResourceImportError(f"Resource already managed: {address}")
            try:
                remote_id = registration.handler.import_id(ctx, import_input)
            except NotImplementedError as e:
                raise ResourceImportError(
                    f"Resource type {registration.resource_type} does not support import"
                ) from e

            candidate = ResourceInstance(
                address=address,
                resource_type=registration.resource_type,
                name=name,
                attributes={"id": remote_id},
            )
            attrs = registration.handler.read(ctx, candidate)
            if attrs is None:
                raise ResourceImportError(
                    f"Cannot import non-existent remote object {remote_id!r} to {address}"
                )

            inst = state.record(address, registration.resource_type, name, attrs)
            state.commit(self._state_path)
            logger.info("Imported %s as %s", address, remote_id)
            return inst
