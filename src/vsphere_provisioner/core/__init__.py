"""Core infrastructure components for vSphere Provisioner."""

from vsphere_provisioner.core.provider import PasswordAuth, VSphereProvider
from vsphere_provisioner.core.state import ResourceInstance, State

__all__ = ["PasswordAuth", "ResourceInstance", "State", "VSphereProvider"]
