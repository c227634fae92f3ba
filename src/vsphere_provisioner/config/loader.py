"""Read ``vsphere-provisioner.yaml`` into a validated :class:`Config`."""

from __future__ import annotations

import logging
import os
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.constructor import SafeConstructor

from vsphere_provisioner.config.schema import Config, ProviderConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vsphere_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

_ENV_PREFIX = ProviderConfig.model_config["env_prefix"]


class ConfigError(Exception):
    pass


def _as_bool(env_key: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return SafeConstructor.bool_values[value.lower()]
    except KeyError:
        raise ConfigError(f"Invalid boolean for {env_key}: {value!r}") from None


def _resolve_provider(raw_provider: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Fill provider fields from, in order: YAML, the environment, ``<config_dir>/.env``.

    A YAML ``null`` counts as unset.
    """
    env_file = config_dir / ".env"
    layers: list[Mapping[str, Any]] = [os.environ]
    if env_file.is_file():
        layers.append(dotenv_values(env_file, encoding="utf-8-sig"))

    resolved: dict[str, Any] = {}
    for field, info in ProviderConfig.model_fields.items():
        env_key = f"{_ENV_PREFIX}{field.upper()}"
        value = raw_provider.get(field)
        if value is None:
            value = next((src[env_key] for src in layers if src.get(env_key) is not None), None)
        if value is None:
            continue
        resolved[field] = _as_bool(env_key, value) if info.annotation is bool else value
    return resolved


def _validate_unique_names(resources: list[Resource]) -> list[str]:
    """One message per address that is declared more than once."""
    counts = Counter(r.address for r in resources)
    first = {r.address: r for r in reversed(resources)}
    return [
        f"Duplicate {first[address].resource_type} name '{first[address].name}'"
        for address, n in counts.items()
        if n > 1
    ]


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return raw


def load_config(path: Path | str) -> Config:
    """Parse and validate *path*.

    Relative ``state_path`` values are anchored at the config file's
    directory. Any problem is reported as :class:`ConfigError`.
    """
    path = Path(path)
    raw = _read_yaml(path)
    raw["provider"] = _resolve_provider(raw.get("provider") or {}, path.parent)
    try:
        config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = path.parent
    if not config.state_path.is_absolute():
        config.state_path = path.parent / config.state_path

    duplicates = _validate_unique_names(config.resources)
    if duplicates:
        raise ConfigError("\n".join(duplicates))

    logger.info("Loaded %d resources from %s", len(config.resources), path)
    return config
