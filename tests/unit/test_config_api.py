"""Tests for config convenience API and engine wiring."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from vsphere_provisioner.config import (
    _build_drift_changes,
    _engine_from_config,
    import_resource,
    plan,
    refresh,
    save_state,
    validate,
)
from vsphere_provisioner.config.loader import ConfigError, _resolve_provider
from vsphere_provisioner.config.schema import Config, ProviderConfig
from vsphere_provisioner.core.state import ResourceInstance, State
from vsphere_provisioner.engine.errors import ValidationError
from vsphere_provisioner.engine.types import Action

if TYPE_CHECKING:
    from collections.abc import Callable

_YAML = """\
provider:
  server: vcenter.example.com
  user: admin
  password: pw

ha_vm_overrides:
  - name: web01
    compute_cluster_id: domain-c7
    virtual_machine_id: u1
"""


def _provider(**kwargs: object) -> ProviderConfig:
    fields: dict[str, object] = {"server": "vc", "user": "admin", "password": "pw"}
    fields.update(kwargs)
    return ProviderConfig(**fields)  # type: ignore[arg-type]


class TestEngineFromConfig:
    def test_builds_engine_with_workspace(self) -> None:
        engine = _engine_from_config(Config(provider=_provider(workspace="prod")))
        assert engine.workspace == "prod"

    def test_builds_engine_with_state_path(self) -> None:
        config = Config(provider=_provider(), state_path=Path("custom.json"))
        engine = _engine_from_config(config)
        assert engine.state_path == Path("custom.json")

    @pytest.mark.parametrize("missing", ["server", "user", "password"])
    def test_missing_connection_field_raises(self, missing: str) -> None:
        config = Config(provider=_provider(**{missing: None}))
        with pytest.raises(ConfigError, match=f"provider.{missing} is required"):
            _engine_from_config(config)

    def test_connection_settings_passed_to_provider(self) -> None:
        config = Config(provider=_provider(port=8443, allow_unverified_ssl=True))
        provider = _engine_from_config(config)._provider
        assert provider.server == "vc"
        assert provider.port == 8443
        assert provider.allow_unverified_ssl is True
        assert provider.auth is not None
        assert provider.auth.password.get_secret_value() == "pw"


class TestResolveProvider:
    """Unit tests for _resolve_provider priority chain (no YAML parsing)."""

    def test_yaml_value_wins(self) -> None:
        result = _resolve_provider({"server": "from-yaml"}, Path())
        assert result["server"] == "from-yaml"

    def test_env_var_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VSPHERE_SERVER", "from-env")
        result = _resolve_provider({}, Path())
        assert result["server"] == "from-env"

    def test_yaml_value_over_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VSPHERE_SERVER", "from-env")
        result = _resolve_provider({"server": "from-yaml"}, Path())
        assert result["server"] == "from-yaml"

    def test_yaml_null_falls_through_to_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VSPHERE_PASSWORD", "from-env")
        result = _resolve_provider({"password": None}, Path())
        assert result["password"] == "from-env"

    def test_missing_field_omitted(self) -> None:
        result = _resolve_provider({}, Path())
        assert "server" not in result
        assert "password" not in result

    def test_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("VSPHERE_PASSWORD=from-dotenv\n")
        result = _resolve_provider({}, tmp_path)
        assert result["password"] == "from-dotenv"

    def test_env_var_overrides_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("VSPHERE_PASSWORD=from-dotenv\n")
        monkeypatch.setenv("VSPHERE_PASSWORD", "from-env")
        result = _resolve_provider({}, tmp_path)
        assert result["password"] == "from-env"

    def test_dotenv_with_bom(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("\ufeffVSPHERE_USER=admin\n", encoding="utf-8")
        result = _resolve_provider({}, tmp_path)
        assert result["user"] == "admin"

    def test_unverified_ssl_from_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VSPHERE_ALLOW_UNVERIFIED_SSL", "yes")
        result = _resolve_provider({}, Path())
        assert result["allow_unverified_ssl"] is True

    def test_unverified_ssl_invalid_string_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VSPHERE_ALLOW_UNVERIFIED_SSL", "maybe")
        with pytest.raises(ConfigError, match="Invalid boolean for VSPHERE_ALLOW_UNVERIFIED_SSL"):
            _resolve_provider({}, Path())

    def test_unverified_ssl_from_yaml(self) -> None:
        result = _resolve_provider({"allow_unverified_ssl": True}, Path())
        assert result["allow_unverified_ssl"] is True


class TestLoadWithEnvironment:
    def test_dotenv_next_to_config(self, make_config: Callable[..., Config]) -> None:
        config = make_config("provider:\n  server: vc\n", dotenv="VSPHERE_PASSWORD=secret\n")
        assert config.provider.password == "secret"

    def test_port_from_env(
        self, make_config: Callable[..., Config], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VSPHERE_PORT", "8443")
        config = make_config("provider:\n  server: vc\n")
        assert config.provider.port == 8443


class TestPlanIntegration:
    @patch("vsphere_provisioner.engine.engine.VSphereEngine.plan")
    def test_plan_passes_resources_destroy_and_refresh(
        self, mock_engine_plan: MagicMock, make_config: Callable[..., Config]
    ) -> None:
        config = make_config(_YAML)
        mock_engine_plan.return_value = MagicMock()

        plan(config, destroy=True, refresh=False)

        args, kwargs = mock_engine_plan.call_args
        assert [r.address for r in args[0]] == ["vsphere_ha_vm_override.web01"]
        assert kwargs["destroy"] is True
        assert kwargs["refresh"] is False


class TestImportResource:
    def test_undeclared_address(self, make_config: Callable[..., Config]) -> None:
        config = make_config(_YAML)
        with pytest.raises(ConfigError, match="not declared"):
            import_resource(config, "vsphere_ha_vm_override.db01", "{}")

    @patch("vsphere_provisioner.engine.engine.VSphereEngine.import_resource")
    def test_delegates_to_engine(
        self, mock_import: MagicMock, make_config: Callable[..., Config]
    ) -> None:
        config = make_config(_YAML)

        result = import_resource(config, "vsphere_ha_vm_override.web01", '{"a": 1}')

        assert result is mock_import.return_value
        mock_import.assert_called_once_with("vsphere_ha_vm_override.web01", '{"a": 1}')


def _inst(address: str, **attrs: object) -> ResourceInstance:
    return ResourceInstance(
        address=address,
        resource_type="vsphere_ha_vm_override",
        name=address.split(".", 1)[1],
        attributes=dict(attrs),
    )


class TestDrift:
    def test_removed_and_changed(self) -> None:
        old = State(
            workspace="default",
            resources={
                "vsphere_ha_vm_override.a": _inst("vsphere_ha_vm_override.a", drs_enabled=True),
                "vsphere_ha_vm_override.b": _inst("vsphere_ha_vm_override.b", drs_enabled=True),
                "vsphere_ha_vm_override.c": _inst("vsphere_ha_vm_override.c", drs_enabled=True),
            },
        )
        new = State(
            workspace="default",
            resources={
                "vsphere_ha_vm_override.b": _inst("vsphere_ha_vm_override.b", drs_enabled=False),
                "vsphere_ha_vm_override.c": _inst("vsphere_ha_vm_override.c", drs_enabled=True),
            },
        )

        changes = _build_drift_changes(old, new)

        assert [(c.address, c.action) for c in changes] == [
            ("vsphere_ha_vm_override.a", Action.DELETE),
            ("vsphere_ha_vm_override.b", Action.UPDATE),
        ]
        assert changes[1].diff == {"drs_enabled": {"from": True, "to": False}}

    def test_save_state_bumps_serial(self, tmp_path: Path) -> None:
        config = Config(provider=_provider(), state_path=tmp_path / "state.json")
        state = State(workspace="default", serial=3)

        save_state(config, state)

        assert State.load(tmp_path / "state.json").serial == 4


class TestRefreshSnapshots:
    @patch("vsphere_provisioner.engine.engine.VSphereEngine.compare")
    def test_drift_is_measured_against_the_locked_snapshot(
        self, mock_compare: MagicMock, tmp_path: Path
    ) -> None:
        before = State(
            workspace="default",
            resources={"vsphere_ha_vm_override.a": _inst("vsphere_ha_vm_override.a", x=1)},
        )
        after = State(workspace="default", lineage=before.lineage)
        mock_compare.return_value = (before, after)
        config = Config(provider=_provider(), state_path=tmp_path / "state.json")

        changes, refreshed = refresh(config)

        assert refreshed is after
        assert [(c.address, c.action) for c in changes] == [
            ("vsphere_ha_vm_override.a", Action.DELETE)
        ]
        mock_compare.assert_called_once_with()


class TestValidate:
    def test_needs_no_connection_settings(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        config = make_config(
            "ha_vm_overrides:\n"
            "  - name: web01\n"
            "    compute_cluster_id: domain-c7\n"
            "    virtual_machine_id: u1\n"
        )
        assert config.provider.server is None

        validate(config)

        assert not config.state_path.exists()
        assert not (tmp_path / ".vsphere-state.json.lock").exists()

    def test_reports_handler_rules(self, make_config: Callable[..., Config]) -> None:
        config = make_config(
            "ha_vm_overrides:\n"
            "  - name: a\n"
            "    compute_cluster_id: domain-c7\n"
            "    virtual_machine_id: u1\n"
            "  - name: b\n"
            "    compute_cluster_id: domain-c7\n"
            "    virtual_machine_id: u1\n"
        )

        with pytest.raises(ValidationError) as exc_info:
            validate(config)

        assert len(exc_info.value.errors) == 2
