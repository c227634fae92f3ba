from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from vsphere_provisioner.config import load
from vsphere_provisioner.config.schema import ProviderConfig

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from vsphere_provisioner.config.schema import Config


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Host VSPHERE_* variables must not reach the config layer."""
    for field in (*ProviderConfig.model_fields, "log"):
        monkeypatch.delenv(f"VSPHERE_{field.upper()}", raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Write ``config.yaml`` (and a ``.env`` when given) into tmp_path and load it."""

    def _make(body: str, *, dotenv: str | None = None) -> Config:
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        path = tmp_path / "config.yaml"
        path.write_text(body)
        return load(path)

    return _make
