"""What the engine expects from a resource handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from vsphere_provisioner.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from vsphere_provisioner.core import VSphereProvider
    from vsphere_provisioner.core.state import ResourceInstance

R = TypeVar("R", bound=Resource)


@dataclass(frozen=True)
class EngineContext:
    """Everything a handler call may use; there is no global client."""

    provider: VSphereProvider
    workspace: str


class PlanContext:
    """The full desired configuration, for checks that span resources."""

    def __init__(self, all_desired: Mapping[str, Resource]) -> None:
        self._by_address = dict(all_desired)

    def address_exists(self, address: str) -> bool:
        return address in self._by_address

    def of_type(self, resource_type: str) -> Iterator[Resource]:
        for resource in self._by_address.values():
            if resource.resource_type == resource_type:
                yield resource


class ResourceHandler(Generic[R]):
    """Translates one resource type into vCenter calls.

    ``create``, ``update`` and ``read`` return the attributes to store in
    state, which must include the remote ``id``. ``read`` returns ``None``
    when the remote object is gone. The validation hooks return error
    messages; an empty list means valid.
    """

    def validate(self, ctx: EngineContext, desired: R) -> list[str]:
        _ = ctx, desired
        return []

    def validate_plan(self, ctx: EngineContext, desired: R, plan_ctx: PlanContext) -> list[str]:
        _ = ctx, desired, plan_ctx
        return []

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        raise NotImplementedError

    def create(self, ctx: EngineContext, desired: R) -> dict[str, Any]:
        raise NotImplementedError

    def update(self, ctx: EngineContext, desired: R, prior: ResourceInstance) -> dict[str, Any]:
        raise NotImplementedError

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        raise NotImplementedError

    def import_id(self, ctx: EngineContext, import_input: str) -> str:
        """Map user import input to the remote ``id``; unsupported by default."""
        _ = ctx, import_input
        raise NotImplementedError
