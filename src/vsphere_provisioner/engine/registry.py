"""Dispatch from ``resource_type`` to model class and handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from vsphere_provisioner.engine.errors import UnknownResourceTypeError

if TYPE_CHECKING:
    from vsphere_provisioner.engine.handlers import ResourceHandler
    from vsphere_provisioner.resources.base import Resource


@dataclass(frozen=True)
class ResourceTypeRegistration:
    resource_type: str
    model: type[Resource]
    handler: ResourceHandler[Any]


class ResourceTypeRegistry:
    def __init__(self) -> None:
        self._registrations: dict[str, ResourceTypeRegistration] = {}

    def register(self, model: type[Resource], handler: ResourceHandler[Any]) -> None:
        resource_type = getattr(model, "resource_type", "")
        if not resource_type or not isinstance(resource_type, str):
            raise ValueError(f"{model.__name__} must set a non-empty `resource_type` classvar")
        if resource_type in self._registrations:
            raise ValueError(f"Resource type already registered: {resource_type}")
        self._registrations[resource_type] = ResourceTypeRegistration(
            resource_type=resource_type, model=model, handler=handler
        )

    def get(self, resource_type: str) -> ResourceTypeRegistration:
        registration = self._registrations.get(resource_type)
        if registration is None:
            raise UnknownResourceTypeError(resource_type)
        return registration

    def for_address(self, address: str) -> tuple[ResourceTypeRegistration, str]:
        """Resolve ``<type>.<name>`` to its registration and the bare name."""
        resource_type, _, name = address.partition(".")
        if not resource_type or not name:
            raise ValueError(f"Invalid resource address {address!r}, expected <type>.<name>")
        return self.get(resource_type), name

    def resource_types(self) -> list[str]:
        return sorted(self._registrations)
