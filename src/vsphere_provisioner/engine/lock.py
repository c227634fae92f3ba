"""Advisory ``flock`` on ``<state>.lock`` so two runs never share a state file."""

from __future__ import annotations

from pathlib import Path
from typing import IO, TYPE_CHECKING

from vsphere_provisioner.engine.errors import StateLockError

if TYPE_CHECKING:
    from types import TracebackType

try:
    import fcntl
except ImportError:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]


class StateLock:
    """Fails fast with :class:`StateLockError` if another process holds the lock.

    ``wait=True`` blocks until the lock is free instead.
    """

    def __init__(self, state_path: Path, *, wait: bool = False) -> None:
        self.path = Path(f"{state_path}.lock")
        self._wait = wait
        self._handle: IO[str] | None = None

    def __enter__(self) -> StateLock:
        if fcntl is None:  # pragma: no cover
            raise StateLockError("State locking is not supported on this platform")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        flags = fcntl.LOCK_EX if self._wait else fcntl.LOCK_EX | fcntl.LOCK_NB
        handle = self.path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), flags)
        except OSError as e:
            handle.close()
            raise StateLockError(f"State is locked by another process: {self.path}") from e
        self._handle = handle
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
