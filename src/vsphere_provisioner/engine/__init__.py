"""Plan/apply engine. Exceptions live in :mod:`vsphere_provisioner.engine.errors`."""

from vsphere_provisioner.engine.engine import ProgressCallback, VSphereEngine
from vsphere_provisioner.engine.handlers import EngineContext, PlanContext, ResourceHandler
from vsphere_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
from vsphere_provisioner.engine.types import Action, ApplyResult, Plan, PlanMetadata, ResourceChange

__all__ = [
    "Action",
    "ApplyResult",
    "EngineContext",
    "Plan",
    "PlanContext",
    "PlanMetadata",
    "ProgressCallback",
    "ResourceChange",
    "ResourceHandler",
    "ResourceTypeRegistration",
    "ResourceTypeRegistry",
    "VSphereEngine",
]
