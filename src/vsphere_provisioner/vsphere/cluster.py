"""Compute cluster lookups and reconfiguration."""

from __future__ import annotations

import logging

from pyVim.task import WaitForTask
from pyVmomi import vim, vmodl

from vsphere_provisioner.vsphere.errors import (
    ObjectNotFoundError,
    ReconfigureError,
    UnexpectedConfigTypeError,
    describe,
)

logger = logging.getLogger(__name__)


def from_id(si: vim.ServiceInstance, moid: str) -> vim.ClusterComputeResource:
    """Locate a cluster by its managed object ID (e.g. ``domain-c7``)."""
    cluster = vim.ClusterComputeResource(moid, si._stub)
    try:
        name = cluster.name
    except vmodl.fault.ManagedObjectNotFound as exc:
        raise ObjectNotFoundError(f"cluster with ID {moid!r} not found") from exc
    logger.debug("Located cluster %s (%s)", name, moid)
    return cluster


def from_path(si: vim.ServiceInstance, path: str) -> vim.ClusterComputeResource:
    """Locate a cluster by inventory path (e.g. ``/dc1/host/cluster1``)."""
    obj = si.content.searchIndex.FindByInventoryPath(path.lstrip("/"))
    if obj is None:
        raise ObjectNotFoundError(f"no object found at path {path!r}")
    if not isinstance(obj, vim.ClusterComputeResource):
        raise ObjectNotFoundError(f"object at path {path!r} is not a compute cluster")
    return obj


def configuration_ex(cluster: vim.ClusterComputeResource) -> vim.cluster.ConfigInfoEx:
    """Return the cluster's extended configuration.

    ``configurationEx`` is declared as the generic ``ComputeResource.ConfigInfo``;
    for clusters the server always returns the ``ClusterConfigInfoEx`` subtype.
    """
    config = cluster.configurationEx
    if not isinstance(config, vim.cluster.ConfigInfoEx):
        raise UnexpectedConfigTypeError(
            "configurationEx", "ClusterConfigInfoEx", type(config).__name__
        )
    return config


def reconfigure(cluster: vim.ClusterComputeResource, spec: vim.cluster.ConfigSpecEx) -> None:
    """Submit a configuration delta and block until the task finishes."""
    try:
        WaitForTask(cluster.ReconfigureComputeResource_Task(spec=spec, modify=True))
    except vmodl.MethodFault as exc:
        raise ReconfigureError(
            f"error reconfiguring cluster {cluster._moId!r}: {describe(exc)}"
        ) from exc
