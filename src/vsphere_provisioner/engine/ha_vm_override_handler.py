"""Handler for per-VM DRS overrides in a compute cluster's configuration.

The remote object is one ``ClusterDrsVmConfigInfo`` entry in the cluster's
``configurationEx.drsVmConfig`` list, keyed by VM reference. Its ``id`` is
``<cluster-moid>:<vm-uuid>``; the VM half is the BIOS UUID so the ID survives
VM moves and renames.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pyVmomi import vim, vmodl

from vsphere_provisioner.engine.errors import EngineError
from vsphere_provisioner.engine.handlers import ResourceHandler
from vsphere_provisioner.resources.ha_vm_override import (
    DRS_AUTOMATION_LEVELS,
    HaVmOverrideResource,
)
from vsphere_provisioner.vsphere import cluster, virtual_machine
from vsphere_provisioner.vsphere.client import validate_virtual_center
from vsphere_provisioner.vsphere.errors import VSphereError, describe

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vsphere_provisioner.core.state import ResourceInstance
    from vsphere_provisioner.engine.handlers import EngineContext, PlanContext

logger = logging.getLogger(__name__)

ID_SEPARATOR = ":"

# Failures a lookup can raise: helper errors and server-side faults.
_LOOKUP_ERRORS = (VSphereError, vmodl.MethodFault)


class HaVmOverrideError(EngineError):
    """Base exception for VM override handling."""


class MalformedIdentifierError(HaVmOverrideError):
    """Raised when a stored ID does not have the ``<cluster>:<vm>`` shape."""


class ImportInputError(HaVmOverrideError):
    """Raised when import input is not the expected JSON object."""


class ResolutionError(HaVmOverrideError):
    """Raised when the cluster or VM of an override cannot be located."""


class InvalidAutomationLevelError(HaVmOverrideError):
    """Raised when an automation level outside the DRS behaviour enum reaches expand."""


def parse_id(resource_id: str) -> tuple[str, str]:
    """Split an ID into ``(cluster_moid, vm_uuid)``.

    Older IDs may carry a third segment; it is accepted and ignored.
    """
    parts = resource_id.split(ID_SEPARATOR, 2)
    if len(parts) < 2:
        raise MalformedIdentifierError(f"bad ID {resource_id!r}")
    return parts[0], parts[1]


def flatten_id(cluster_obj: vim.ClusterComputeResource, vm: vim.VirtualMachine) -> str:
    """Build the ID for an override from live cluster and VM handles."""
    try:
        vm_uuid = virtual_machine.uuid(vm)
    except _LOOKUP_ERRORS as exc:
        raise HaVmOverrideError(
            f"cannot compute ID off of properties of virtual machine: {describe(exc)}"
        ) from exc
    return ID_SEPARATOR.join([cluster_obj._moId, vm_uuid])


def expand_info(
    desired: HaVmOverrideResource, vm: vim.VirtualMachine
) -> vim.cluster.DrsVmConfigInfo:
    """Build the remote config entry for *desired*, keyed by *vm*."""
    if desired.drs_automation_level not in DRS_AUTOMATION_LEVELS:
        raise InvalidAutomationLevelError(
            f"invalid drs_automation_level {desired.drs_automation_level!r}, "
            f"expected one of {', '.join(DRS_AUTOMATION_LEVELS)}"
        )
    return vim.cluster.DrsVmConfigInfo(
        key=vm,
        enabled=desired.drs_enabled,
        behavior=desired.drs_automation_level,
    )


def flatten_info(info: vim.cluster.DrsVmConfigInfo) -> dict[str, Any]:
    """Extract the override fields from a remote config entry."""
    return {
        "drs_enabled": bool(info.enabled),
        # An unset behaviour means the cluster default, reported as the schema default.
        "drs_automation_level": str(info.behavior) if info.behavior else "manual",
    }


def find_entry(
    cluster_obj: vim.ClusterComputeResource, vm: vim.VirtualMachine
) -> vim.cluster.DrsVmConfigInfo | None:
    """Locate the config entry for *vm* in *cluster_obj*. ``None`` if absent."""
    try:
        config = cluster.configuration_ex(cluster_obj)
    except _LOOKUP_ERRORS as exc:
        raise HaVmOverrideError(f"error fetching cluster properties: {describe(exc)}") from exc
    for info in config.drsVmConfig:
        if info.key._moId == vm._moId:
            logger.debug(
                "Found DRS config info for VM %s in cluster %s", vm._moId, cluster_obj._moId
            )
            return info

    logger.debug(
        "No DRS config info found for VM %s in cluster %s", vm._moId, cluster_obj._moId
    )
    return None


def _add_spec(info: vim.cluster.DrsVmConfigInfo) -> vim.cluster.ConfigSpecEx:
    # On the DRS VM config list, "add" replaces an existing entry with the same
    # key instead of duplicating it or merging fields into it.
    return vim.cluster.ConfigSpecEx(
        drsVmConfigSpec=[
            vim.cluster.DrsVmConfigSpec(
                operation=vim.option.ArrayUpdateSpec.Operation.add,
                info=info,
            )
        ]
    )


def _remove_spec(vm: vim.VirtualMachine) -> vim.cluster.ConfigSpecEx:
    return vim.cluster.ConfigSpecEx(
        drsVmConfigSpec=[
            vim.cluster.DrsVmConfigSpec(
                operation=vim.option.ArrayUpdateSpec.Operation.remove,
                removeKey=vm,
            )
        ]
    )


class HaVmOverrideHandler(ResourceHandler[HaVmOverrideResource]):
    """CRUD handler for ``vsphere_ha_vm_override``."""

    def _client(self, ctx: EngineContext) -> vim.ServiceInstance:
        si = ctx.provider.client
        validate_virtual_center(si)
        return si

    def _fetch_objects(
        self, ctx: EngineContext, cluster_id: str, vm_id: str
    ) -> tuple[vim.ClusterComputeResource, vim.VirtualMachine]:
        si = self._client(ctx)
        try:
            cluster_obj = cluster.from_id(si, cluster_id)
        except _LOOKUP_ERRORS as exc:
            raise ResolutionError(f"cannot locate cluster: {describe(exc)}") from exc
        try:
            vm = virtual_machine.from_uuid(si, vm_id)
        except _LOOKUP_ERRORS as exc:
            raise ResolutionError(f"cannot locate virtual machine: {describe(exc)}") from exc
        return cluster_obj, vm

    def _objects(
        self, ctx: EngineContext, attributes: Mapping[str, Any]
    ) -> tuple[vim.ClusterComputeResource, vim.VirtualMachine]:
        """Resolve handles from the stored ``id`` if present, else from the attributes."""
        resource_id = attributes.get("id")
        if resource_id:
            return self._fetch_objects(ctx, *parse_id(resource_id))
        return self._fetch_objects(
            ctx, attributes["compute_cluster_id"], attributes["virtual_machine_id"]
        )

    def _read(
        self, ctx: EngineContext, name: str, attributes: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        cluster_obj, vm = self._objects(ctx, attributes)
        info = find_entry(cluster_obj, vm)
        if info is None:
            return None

        # Cluster and VM IDs are re-derived so an import through a
        # non-canonical path still records the canonical values.
        resource_id = flatten_id(cluster_obj, vm)
        cluster_id, vm_uuid = parse_id(resource_id)
        return {
            "id": resource_id,
            "name": name,
            "compute_cluster_id": cluster_id,
            "virtual_machine_id": vm_uuid,
            **flatten_info(info),
        }

    def _read_back(self, ctx: EngineContext, name: str, resource_id: str) -> dict[str, Any]:
        attrs = self._read(ctx, name, {"id": resource_id})
        if attrs is None:
            raise HaVmOverrideError(f"override {resource_id!r} not found after reconfigure")
        return attrs

    def validate_plan(
        self, ctx: EngineContext, desired: HaVmOverrideResource, plan_ctx: PlanContext
    ) -> list[str]:
        _ = ctx
        key = (desired.compute_cluster_id, desired.virtual_machine_id)
        others = [
            r.address
            for r in plan_ctx.of_type(desired.resource_type)
            if r.address != desired.address
            and isinstance(r, HaVmOverrideResource)
            and (r.compute_cluster_id, r.virtual_machine_id) == key
        ]
        if others:
            return [
                f"{desired.address}: VM {desired.virtual_machine_id} in cluster "
                f"{desired.compute_cluster_id} is also overridden by {', '.join(others)}"
            ]
        return []

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        logger.debug("%s: Beginning read", prior.id or prior.address)
        attrs = self._read(ctx, prior.name, prior.attributes)
        if attrs is None:
            logger.debug("%s: Override is gone", prior.id or prior.address)
            return None
        logger.debug("%s: Read completed successfully", attrs["id"])
        return attrs

    def create(self, ctx: EngineContext, desired: HaVmOverrideResource) -> dict[str, Any]:
        logger.debug("%s: Beginning create", desired.address)
        cluster_obj, vm = self._fetch_objects(
            ctx, desired.compute_cluster_id, desired.virtual_machine_id
        )
        info = expand_info(desired, vm)
        cluster.reconfigure(cluster_obj, _add_spec(info))

        resource_id = flatten_id(cluster_obj, vm)
        logger.debug("%s: Create finished successfully", resource_id)
        return self._read_back(ctx, desired.name, resource_id)

    def update(
        self, ctx: EngineContext, desired: HaVmOverrideResource, prior: ResourceInstance
    ) -> dict[str, Any]:
        logger.debug("%s: Beginning update", prior.id or prior.address)
        cluster_obj, vm = self._objects(ctx, prior.attributes)
        # The entry is replaced whole from desired state, never merged with the remote one.
        info = expand_info(desired, vm)
        cluster.reconfigure(cluster_obj, _add_spec(info))

        resource_id = flatten_id(cluster_obj, vm)
        logger.debug("%s: Update finished successfully", resource_id)
        return self._read_back(ctx, desired.name, resource_id)

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        logger.debug("%s: Beginning delete", prior.id or prior.address)
        cluster_obj, vm = self._objects(ctx, prior.attributes)
        cluster.reconfigure(cluster_obj, _remove_spec(vm))
        logger.debug("%s: Deleted successfully", prior.id or prior.address)

    def import_id(self, ctx: EngineContext, import_input: str) -> str:
        """Resolve ``{"compute_cluster_path": ..., "virtual_machine_path": ...}`` to an ID."""
        try:
            data = json.loads(import_input)
        except json.JSONDecodeError as exc:
            raise ImportInputError(f"import input is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ImportInputError("import input must be a JSON object")

        paths: dict[str, str] = {}
        for key in ("compute_cluster_path", "virtual_machine_path"):
            value = data.get(key)
            if value is None:
                raise ImportInputError(f"missing {key} in input data")
            if not isinstance(value, str):
                raise ImportInputError(f"{key} must be a string")
            paths[key] = value

        si = self._client(ctx)
        cluster_path = paths["compute_cluster_path"]
        vm_path = paths["virtual_machine_path"]
        try:
            cluster_obj = cluster.from_path(si, cluster_path)
        except _LOOKUP_ERRORS as exc:
            raise ResolutionError(
                f"cannot locate cluster {cluster_path!r}: {describe(exc)}"
            ) from exc
        try:
            vm = virtual_machine.from_path(si, vm_path)
        except _LOOKUP_ERRORS as exc:
            raise ResolutionError(
                f"cannot locate virtual machine {vm_path!r}: {describe(exc)}"
            ) from exc

        resource_id = flatten_id(cluster_obj, vm)
        logger.debug("Resolved import input to %s", resource_id)
        return resource_id
