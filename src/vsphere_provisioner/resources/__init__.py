"""vSphere resource definitions."""

from vsphere_provisioner.resources.base import Resource
from vsphere_provisioner.resources.ha_vm_override import (
    DRS_AUTOMATION_LEVELS,
    HaVmOverrideResource,
)
from vsphere_provisioner.resources.markers import ForceNew, collect_force_new_fields

__all__ = [
    "DRS_AUTOMATION_LEVELS",
    "ForceNew",
    "HaVmOverrideResource",
    "Resource",
    "collect_force_new_fields",
]
