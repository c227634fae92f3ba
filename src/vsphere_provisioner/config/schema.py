"""Pydantic models for the YAML config file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vsphere_provisioner.resources.base import Resource  # noqa: TC001
from vsphere_provisioner.resources.ha_vm_override import HaVmOverrideResource  # noqa: TC001


class ProviderConfig(BaseSettings):
    """How to reach vCenter.

    Each field can also come from ``VSPHERE_<FIELD>`` or a ``.env`` file next
    to the config. Keep ``password`` out of the YAML.
    """

    model_config = SettingsConfigDict(env_prefix="VSPHERE_")

    server: str | None = None
    user: str | None = None
    password: str | None = None
    port: int = 443
    workspace: str = "default"
    allow_unverified_ssl: bool = False


def _empty_if_null(value: Any) -> Any:
    return [] if value is None else value


class Config(BaseModel):
    provider: ProviderConfig
    state_path: Path = Path(".vsphere-state.json")
    ha_vm_overrides: Annotated[list[HaVmOverrideResource], BeforeValidator(_empty_if_null)] = []
    config_dir: Path = Path()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resources(self) -> list[Resource]:
        """Every declared resource in file order."""
        return list(self.ha_vm_overrides)
