"""Tests for mount configuration loading and overrides."""

from __future__ import annotations

from pathlib import Path

import yaml

from iotfs.config import MountConfig, load_config, save_config


class TestLoadConfig:
    """Reading ``config.yaml``."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "absent.yaml")
        assert config == MountConfig()
        assert config.refresh_interval == 30.0
        assert config.message_limit == 100

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "region: eu-west-1\n"
            "topics:\n"
            "  - sensors/temp\n"
            "refresh_interval: 5\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.region == "eu-west-1"
        assert config.topics == ["sensors/temp"]
        assert config.refresh_interval == 5.0

    def test_invalid_yaml_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("region: [unclosed\n", encoding="utf-8")
        assert load_config(path) == MountConfig()

    def test_invalid_values_fall_back(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("refresh_interval: soon\n", encoding="utf-8")
        assert load_config(path) == MountConfig()

    def test_default_location_uses_home(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr("iotfs.config.IOTFS_HOME", str(tmp_path))
        (tmp_path / "config.yaml").write_text("region: us-east-2\n", encoding="utf-8")
        assert load_config().region == "us-east-2"


class TestOverrides:
    """Command-line values win over the file."""

    def test_given_values_override(self) -> None:
        config = MountConfig(region="eu-west-1").with_overrides(region="us-east-1")
        assert config.region == "us-east-1"

    def test_none_and_empty_are_ignored(self) -> None:
        base = MountConfig(region="eu-west-1", topics=["a"])
        config = base.with_overrides(region=None, topics=())
        assert config.region == "eu-west-1"
        assert config.topics == ["a"]

    def test_tuples_become_lists(self) -> None:
        config = MountConfig().with_overrides(topics=("a/b", "c"))
        assert config.topics == ["a/b", "c"]


class TestSaveConfig:
    """Writing the config for a background mount."""

    def test_round_trip(self, tmp_path: Path) -> None:
        config = MountConfig(region="eu-west-1", topics=["t"], certificate=Path("/c.pem"))
        path = save_config(config, tmp_path / "sub" / "config.yaml")
        assert load_config(path) == config

    def test_unset_fields_are_left_out(self, tmp_path: Path) -> None:
        path = save_config(MountConfig(), tmp_path / "config.yaml")
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert "region" not in data
        assert data["mount_point"] == "~/iotfs"
