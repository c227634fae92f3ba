"""Virtual machine lookups."""

from __future__ import annotations

from pyVmomi import vim

from vsphere_provisioner.vsphere.errors import ObjectNotFoundError, VSphereError


def from_uuid(si: vim.ServiceInstance, uuid: str) -> vim.VirtualMachine:
    """Locate a VM by its BIOS UUID (``config.uuid``)."""
    vm = si.content.searchIndex.FindByUuid(None, uuid, True, False)
    if vm is None:
        raise ObjectNotFoundError(f"virtual machine with UUID {uuid!r} not found")
    return vm


def from_path(si: vim.ServiceInstance, path: str) -> vim.VirtualMachine:
    """Locate a VM by inventory path (e.g. ``/dc1/vm/web01``)."""
    obj = si.content.searchIndex.FindByInventoryPath(path.lstrip("/"))
    if obj is None:
        raise ObjectNotFoundError(f"no object found at path {path!r}")
    if not isinstance(obj, vim.VirtualMachine):
        raise ObjectNotFoundError(f"object at path {path!r} is not a virtual machine")
    return obj


def uuid(vm: vim.VirtualMachine) -> str:
    """Return the stable BIOS UUID of a VM."""
    config = vm.config
    if config is None:
        raise VSphereError(f"virtual machine {vm._moId!r} has no configuration")
    return config.uuid
