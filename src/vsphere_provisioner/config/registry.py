"""Resource types known to the YAML front end."""

from __future__ import annotations

from vsphere_provisioner.engine.ha_vm_override_handler import HaVmOverrideHandler
from vsphere_provisioner.engine.registry import ResourceTypeRegistry
from vsphere_provisioner.resources.ha_vm_override import HaVmOverrideResource


def default_registry() -> ResourceTypeRegistry:
    registry = ResourceTypeRegistry()
    registry.register(HaVmOverrideResource, HaVmOverrideHandler())
    return registry
