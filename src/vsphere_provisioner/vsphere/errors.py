"""Errors raised by the vSphere helpers."""

from __future__ import annotations


class VSphereError(Exception):
    """Base exception for vSphere helper errors."""


class ObjectNotFoundError(VSphereError):
    """Raised when an inventory object cannot be located."""


class UnexpectedConfigTypeError(VSphereError):
    """Raised when a property does not have the expected concrete shape."""

    def __init__(self, prop: str, expected: str, got: str) -> None:
        super().__init__(f"{prop} is {got}, expected {expected}")
        self.prop = prop
        self.expected = expected
        self.got = got


class NotVirtualCenterError(VSphereError):
    """Raised when an operation requires vCenter but the endpoint is standalone ESXi."""


class ReconfigureError(VSphereError):
    """Raised when a cluster reconfiguration task fails."""


def describe(exc: Exception) -> str:
    """One-line text for *exc*; pyVmomi faults otherwise print as a property dump."""
    msg = getattr(exc, "msg", None)
    if isinstance(msg, str) and msg:
        return msg
    text = str(exc)
    if text and "\n" not in text:
        return text
    return type(exc).__name__
