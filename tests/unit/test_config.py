"""Tests for the gren-make-static config loader."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from gren_make_static.config import (
    MACHO_SEGMENT_NAME,
    RESOURCE_NAME,
    SENTINEL_FUSE,
    ToolConfig,
    load_config,
)
from gren_make_static.errors import ConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GREN_MAKE_STATIC_NODE", raising=False)
    monkeypatch.delenv("GREN_MAKE_STATIC_CODESIGN", raising=False)


# ---------------------------------------------------------------------------
# Defaults — no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → node from PATH and hardcoded defaults."""
    with patch("gren_make_static.config.shutil.which", return_value="/usr/bin/node"):
        cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")

    assert cfg.node == Path("/usr/bin/node")
    assert cfg.codesign == "codesign"
    assert cfg.sentinel_fuse == SENTINEL_FUSE
    assert cfg.resource_name == RESOURCE_NAME
    assert cfg.macho_segment_name == MACHO_SEGMENT_NAME


def test_load_config_node_not_on_path(tmp_path: Path) -> None:
    with patch("gren_make_static.config.shutil.which", return_value=None):
        cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.node is None


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_config_sets_node(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"node": "/opt/node20/bin/node"})
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.node == Path("/opt/node20/bin/node")


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"node": "/opt/node20/bin/node", "codesign": "/usr/bin/codesign"})
    _write_yaml(tmp_path / "gren-make-static.yaml", {"node": "/opt/node22/bin/node"})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.node == Path("/opt/node22/bin/node")
    assert cfg.codesign == "/usr/bin/codesign"


def test_env_overrides_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "gren-make-static.yaml", {"node": "/opt/node22/bin/node"})
    monkeypatch.setenv("GREN_MAKE_STATIC_NODE", "/env/node")
    monkeypatch.setenv("GREN_MAKE_STATIC_CODESIGN", "/env/codesign")

    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.node == Path("/env/node")
    assert cfg.codesign == "/env/codesign"


def test_platform_from_config(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "gren-make-static.yaml", {"platform": "darwin", "node": "/n"})
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.is_mac is True
    assert cfg.is_windows is False


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / "gren-make-static.yaml").write_text("", encoding="utf-8")
    with patch("gren_make_static.config.shutil.which", return_value=None):
        cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.codesign == "codesign"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_non_mapping_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / "gren-make-static.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / "gren-make-static.yaml").write_text("node: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_unknown_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "gren-make-static.yaml", {"node": "/n", "nodee": "/typo"})
    with pytest.warns(UserWarning, match="nodee"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


# ---------------------------------------------------------------------------
# ToolConfig
# ---------------------------------------------------------------------------


def test_with_node_overrides() -> None:
    cfg = ToolConfig(node=Path("/a"))
    assert cfg.with_node(Path("/b")).node == Path("/b")
    assert cfg.with_node(None) is cfg


@pytest.mark.parametrize(
    ("platform", "is_mac", "is_windows"),
    [("darwin", True, False), ("win32", False, True), ("linux", False, False)],
)
def test_platform_flags(platform: str, is_mac: bool, is_windows: bool) -> None:
    cfg = ToolConfig(platform=platform)
    assert cfg.is_mac is is_mac
    assert cfg.is_windows is is_windows
