"""Session setup for vSphere endpoints."""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from pyVim.connect import Disconnect, SmartConnect

from vsphere_provisioner.vsphere.errors import NotVirtualCenterError

if TYPE_CHECKING:
    from pyVmomi import vim

logger = logging.getLogger(__name__)


def connect(
    host: str,
    user: str,
    password: str,
    *,
    port: int = 443,
    allow_unverified_ssl: bool = False,
) -> vim.ServiceInstance:
    """Open a session and register its logout at interpreter exit."""
    si = SmartConnect(
        host=host,
        user=user,
        pwd=password,
        port=port,
        disableSslCertValidation=allow_unverified_ssl,
    )
    atexit.register(Disconnect, si)
    logger.debug("Connected to %s:%d as %s", host, port, user)
    return si


def validate_virtual_center(si: vim.ServiceInstance) -> None:
    """Ensure the session points at vCenter rather than a standalone host."""
    api_type = si.content.about.apiType
    if api_type != "VirtualCenter":
        raise NotVirtualCenterError(
            f"this operation is only supported on vCenter, connected endpoint is {api_type!r}"
        )
