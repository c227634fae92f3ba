"""Per-VM DRS override resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar, Literal

from pydantic import Field

from vsphere_provisioner.resources.base import Resource
from vsphere_provisioner.resources.markers import ForceNew

DrsAutomationLevel = Literal["manual", "partiallyAutomated", "fullyAutomated"]

DRS_AUTOMATION_LEVELS: tuple[str, ...] = ("manual", "partiallyAutomated", "fullyAutomated")


class HaVmOverrideResource(Resource):
    """A per-VM override of a compute cluster's DRS behaviour.

    At most one override exists per (cluster, VM) pair. The cluster is given
    by managed object ID and the VM by its BIOS UUID; changing either one
    replaces the override rather than moving it.
    """

    resource_type: ClassVar[str] = "vsphere_ha_vm_override"

    compute_cluster_id: Annotated[str, ForceNew()] = Field(min_length=1)
    virtual_machine_id: Annotated[str, ForceNew()] = Field(min_length=1)
    drs_enabled: bool = False
    drs_automation_level: DrsAutomationLevel = "manual"
