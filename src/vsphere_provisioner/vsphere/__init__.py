"""Thin pyVmomi helpers for the vSphere objects the provisioner manages."""

from vsphere_provisioner.vsphere.client import connect, validate_virtual_center
from vsphere_provisioner.vsphere.errors import (
    NotVirtualCenterError,
    ObjectNotFoundError,
    ReconfigureError,
    UnexpectedConfigTypeError,
    VSphereError,
)

__all__ = [
    "NotVirtualCenterError",
    "ObjectNotFoundError",
    "ReconfigureError",
    "UnexpectedConfigTypeError",
    "VSphereError",
    "connect",
    "validate_virtual_center",
]
