"""Local state file: what the provisioner believes exists in vCenter."""

import contextlib
import hashlib
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


def _digest(obj: Any) -> str:
    canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_attributes_hash(attrs: Mapping[str, Any]) -> str:
    """Order-independent SHA256 of a resource's attributes."""
    return _digest(dict(attrs))


def _now() -> datetime:
    return datetime.now(UTC)


class ResourceInstance(BaseModel):
    """One managed override as recorded in the state file.

    ``attributes`` hold the last values read back from vCenter, including the
    composite ``id`` (``<cluster-moid>:<vm-uuid>``).
    """

    address: str
    resource_type: str
    name: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    attributes_hash: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def id(self) -> str:
        return str(self.attributes.get("id") or "")

    def observe(self, attrs: dict[str, Any]) -> bool:
        """Store freshly read *attrs*; return True when anything changed."""
        new_hash = compute_attributes_hash(attrs)
        if attrs == self.attributes and new_hash == self.attributes_hash:
            return False
        self.attributes = attrs
        self.attributes_hash = new_hash
        self.updated_at = _now()
        return True


class State(BaseModel):
    """Serialized as JSON next to the config.

    ``lineage`` is fixed for the life of a state file and ``serial`` grows on
    every write. Together with :func:`compute_state_digest` they let a saved
    plan detect that the state moved underneath it.
    """

    version: int = STATE_FORMAT_VERSION
    workspace: str
    serial: int = 0
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resources: dict[str, ResourceInstance] = Field(default_factory=dict)

    def record(
        self, address: str, resource_type: str, name: str, attrs: dict[str, Any]
    ) -> ResourceInstance:
        inst = ResourceInstance(
            address=address,
            resource_type=resource_type,
            name=name,
            attributes=attrs,
            attributes_hash=compute_attributes_hash(attrs),
        )
        self.resources[address] = inst
        return inst

    def forget(self, address: str) -> None:
        self.resources.pop(address, None)

    def commit(self, path: Path) -> None:
        """Bump the serial and write the state to *path*."""
        self.serial += 1
        self.save(path)

    def save(self, path: Path) -> None:
        """Write atomically, keeping the previous file as ``<path>.backup``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with contextlib.suppress(FileNotFoundError):
            Path(f"{path}.backup").write_bytes(path.read_bytes())

        body = json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(body)
                fh.flush()
                os.fsync(fh.fileno())
            tmp.replace(path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
        logger.debug("Wrote state serial=%d to %s", self.serial, path)

    @classmethod
    def load(cls, path: Path) -> "State":
        state = cls.model_validate_json(path.read_text(encoding="utf-8"))
        logger.debug("Read state serial=%d from %s", state.serial, path)
        return state

    @classmethod
    def load_or_create(cls, path: Path, workspace: str) -> "State":
        if not path.exists():
            logger.debug("No state at %s, starting empty for workspace %s", path, workspace)
            return cls(workspace=workspace)
        return cls.load(path)


def compute_state_digest(state: State) -> str:
    """Digest of everything but timestamps, used for stale-plan detection."""
    return _digest(
        {
            "version": state.version,
            "workspace": state.workspace,
            "lineage": state.lineage,
            "serial": state.serial,
            "resources": [
                [address, inst.resource_type, inst.name, inst.attributes_hash]
                for address, inst in sorted(state.resources.items())
            ],
        }
    )
