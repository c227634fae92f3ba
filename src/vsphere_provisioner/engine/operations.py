"""One runnable operation per planned change.

An operation calls the handler and mirrors the outcome into the in-memory
state. The engine persists the state after each operation returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from vsphere_provisioner.engine.types import Action

if TYPE_CHECKING:
    from vsphere_provisioner.core.state import State
    from vsphere_provisioner.engine.handlers import EngineContext
    from vsphere_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
    from vsphere_provisioner.engine.types import ResourceChange
    from vsphere_provisioner.resources.base import Resource


@dataclass
class Operation:
    change: ResourceChange

    verb: ClassVar[str] = ""

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> None:
        self._run(ctx, state, registry.get(self.change.resource_type))

    def _run(self, ctx: EngineContext, state: State, reg: ResourceTypeRegistration) -> None:
        raise NotImplementedError

    def _desired(self, reg: ResourceTypeRegistration) -> Resource:
        if self.change.desired is None:
            raise ValueError(f"Cannot {self.verb} {self.change.address}: no desired values")
        resource = reg.model.model_validate(self.change.desired)
        if resource.address != self.change.address:
            raise ValueError(
                f"Cannot {self.verb} {self.change.address}: "
                f"desired values describe {resource.address}"
            )
        return resource

    def _record(self, state: State, resource: Resource, attrs: dict[str, Any]) -> None:
        state.record(self.change.address, self.change.resource_type, resource.name, attrs)


class CreateOperation(Operation):
    verb = "create"

    def _run(self, ctx: EngineContext, state: State, reg: ResourceTypeRegistration) -> None:
        resource = self._desired(reg)
        self._record(state, resource, reg.handler.create(ctx, resource))


class UpdateOperation(Operation):
    verb = "update"

    def _run(self, ctx: EngineContext, state: State, reg: ResourceTypeRegistration) -> None:
        resource = self._desired(reg)
        prior = state.resources[self.change.address]
        prior.observe(reg.handler.update(ctx, resource, prior))


class ReplaceOperation(Operation):
    """Delete first, then create, so the remote key is free for the new entry."""

    verb = "replace"

    def _run(self, ctx: EngineContext, state: State, reg: ResourceTypeRegistration) -> None:
        resource = self._desired(reg)
        reg.handler.delete(ctx, state.resources[self.change.address])
        state.forget(self.change.address)
        self._record(state, resource, reg.handler.create(ctx, resource))


class DeleteOperation(Operation):
    verb = "delete"

    def _run(self, ctx: EngineContext, state: State, reg: ResourceTypeRegistration) -> None:
        reg.handler.delete(ctx, state.resources[self.change.address])
        state.forget(self.change.address)


OPERATIONS: dict[Action, type[Operation]] = {
    Action.CREATE: CreateOperation,
    Action.UPDATE: UpdateOperation,
    Action.REPLACE: ReplaceOperation,
    Action.DELETE: DeleteOperation,
}
