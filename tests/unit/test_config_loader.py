"""Tests for YAML configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from vsphere_provisioner.config.loader import ConfigError, _validate_unique_names, load_config
from vsphere_provisioner.resources.ha_vm_override import HaVmOverrideResource

if TYPE_CHECKING:
    from collections.abc import Callable

    from vsphere_provisioner.config.schema import Config

_FULL_YAML = """\
provider:
  server: vcenter.example.com
  user: administrator@vsphere.local
  workspace: prod

state_path: custom-state.json

ha_vm_overrides:
  - name: web01
    compute_cluster_id: domain-c7
    virtual_machine_id: 420c1a2b-5d6e-4f70-8a91-b2c3d4e5f642
    drs_enabled: true
    drs_automation_level: fullyAutomated

  - name: db01
    compute_cluster_id: domain-c7
    virtual_machine_id: 4211aa00-0000-4000-8000-00000000db01
"""


class TestLoadConfigFull:
    def test_full_yaml_parses(self, make_config: Callable[..., Config]) -> None:
        config = make_config(_FULL_YAML)

        assert config.provider.server == "vcenter.example.com"
        assert config.provider.user == "administrator@vsphere.local"
        assert config.provider.workspace == "prod"
        assert config.provider.port == 443
        assert [r.address for r in config.resources] == [
            "vsphere_ha_vm_override.web01",
            "vsphere_ha_vm_override.db01",
        ]

    def test_resource_fields(self, make_config: Callable[..., Config]) -> None:
        config = make_config(_FULL_YAML)

        web, db = config.ha_vm_overrides
        assert isinstance(web, HaVmOverrideResource)
        assert web.drs_enabled is True
        assert web.drs_automation_level == "fullyAutomated"
        assert db.drs_enabled is False
        assert db.drs_automation_level == "manual"

    def test_state_path_relative_to_config_dir(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        config = make_config(_FULL_YAML)

        assert config.config_dir == tmp_path
        assert config.state_path == tmp_path / "custom-state.json"

    def test_default_state_path(self, make_config: Callable[..., Config], tmp_path: Path) -> None:
        config = make_config("provider:\n  server: vc\n")

        assert config.state_path == tmp_path / ".vsphere-state.json"
        assert config.resources == []

    def test_absolute_state_path_kept(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        target = tmp_path / "elsewhere" / "state.json"
        config = make_config(f"provider:\n  server: vc\nstate_path: {target}\n")

        assert config.state_path == target

    def test_null_section_is_empty(self, make_config: Callable[..., Config]) -> None:
        config = make_config("provider:\n  server: vc\nha_vm_overrides:\n")

        assert config.ha_vm_overrides == []

    def test_empty_file(self, make_config: Callable[..., Config]) -> None:
        config = make_config("")

        assert config.provider.server is None
        assert config.resources == []


class TestLoadConfigErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to read"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="Failed to read"):
            make_config("provider: [unclosed\n")

    def test_top_level_not_mapping(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="top level must be a mapping"):
            make_config("- just\n- a list\n")

    def test_invalid_automation_level(self, make_config: Callable[..., Config]) -> None:
        yaml_str = """\
provider: {}
ha_vm_overrides:
  - name: web01
    compute_cluster_id: domain-c7
    virtual_machine_id: u1
    drs_automation_level: automatic
"""
        with pytest.raises(ConfigError, match="drs_automation_level"):
            make_config(yaml_str)

    def test_missing_vm_id(self, make_config: Callable[..., Config]) -> None:
        yaml_str = """\
provider: {}
ha_vm_overrides:
  - name: web01
    compute_cluster_id: domain-c7
"""
        with pytest.raises(ConfigError, match="virtual_machine_id"):
            make_config(yaml_str)

    def test_duplicate_names(self, make_config: Callable[..., Config]) -> None:
        yaml_str = """\
provider: {}
ha_vm_overrides:
  - name: web01
    compute_cluster_id: domain-c7
    virtual_machine_id: u1
  - name: web01
    compute_cluster_id: domain-c8
    virtual_machine_id: u2
"""
        with pytest.raises(ConfigError, match="Duplicate vsphere_ha_vm_override name 'web01'"):
            make_config(yaml_str)


class TestValidateUniqueNames:
    def test_reports_each_duplicate_once(self) -> None:
        r = HaVmOverrideResource(name="a", compute_cluster_id="c", virtual_machine_id="u")
        assert _validate_unique_names([r, r, r]) == ["Duplicate vsphere_ha_vm_override name 'a'"]

    def test_unique(self) -> None:
        a = HaVmOverrideResource(name="a", compute_cluster_id="c", virtual_machine_id="u")
        b = HaVmOverrideResource(name="b", compute_cluster_id="c", virtual_machine_id="v")
        assert _validate_unique_names([a, b]) == []
