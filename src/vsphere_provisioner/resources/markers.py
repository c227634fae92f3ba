"""Field markers attached to resource models with ``Annotated``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ForceNew:
    """The remote object cannot change this field in place.

    A planned change to a marked field becomes a replace (delete, then create).
    """


def collect_force_new_fields(resource_or_cls: Any) -> frozenset[str]:
    """Names of the ``ForceNew`` fields of a resource instance or class."""
    cls = resource_or_cls if isinstance(resource_or_cls, type) else type(resource_or_cls)
    return frozenset(
        name
        for name, field_info in cls.model_fields.items()
        if any(isinstance(meta, ForceNew) for meta in field_info.metadata)
    )
