"""Exceptions raised by the plan/apply engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vsphere_provisioner.engine.types import ResourceChange


class EngineError(Exception):
    pass


class UnknownResourceTypeError(EngineError):
    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"Unknown resource type: {resource_type}")


class DuplicateAddressError(EngineError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Duplicate resource address: {address}")


class StateWorkspaceMismatchError(EngineError):
    """The state file on disk was written for another workspace."""

    def __init__(self, expected: str, got: str) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f"State workspace mismatch: expected {expected}, got {got}")


class StalePlanError(EngineError):
    """The state changed between ``plan`` and ``apply``; the plan must be redone."""


class StateLockError(EngineError):
    pass


class ValidationError(EngineError):
    """Collects every validation message from one planning pass."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(["Validation failed:", *(f"  - {e}" for e in self.errors)]))


class ResourceImportError(EngineError):
    pass


class ApplyError(EngineError):
    """An operation failed part-way through an apply.

    ``result`` lists the changes that were applied, and persisted, before
    ``address`` failed. The handler's exception is the ``__cause__``.
    """

    def __init__(self, *, applied: list[ResourceChange], address: str, message: str) -> None:
        from vsphere_provisioner.engine.types import ApplyResult

        self.address = address
        self.result = ApplyResult(applied=applied)
        super().__init__(f"Apply failed on {address}: {message}")


class ApplyCanceled(EngineError):
    pass
