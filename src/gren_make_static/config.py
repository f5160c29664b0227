"""gren-make-static configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (GREN_MAKE_STATIC_NODE, GREN_MAKE_STATIC_CODESIGN)
  3. Per-project gren-make-static.yaml  (current working directory)
  4. Global ~/.gren-make-static/config.yaml
  5. Hardcoded defaults (node from PATH, codesign, host platform)

The resolved ToolConfig is built once per process and passed explicitly to
every pipeline step; nothing below the CLI re-queries sys.platform.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import shutil
import sys
import warnings
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from gren_make_static.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".gren-make-static"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "gren-make-static.yaml"

SENTINEL_FUSE = "NODE_SEA_FUSE_fce680ab2cc467b6e072b8b5df1996b2"
RESOURCE_NAME = "NODE_SEA_BLOB"
MACHO_SEGMENT_NAME = "NODE_SEA"

# Known top-level keys; unknown keys produce a warning
_KNOWN_KEYS: frozenset[str] = frozenset(
    ["node", "codesign", "platform", "sentinel_fuse", "resource_name", "macho_segment_name"]
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolConfig:
    """Everything the pipeline needs to know about the host.

    Attributes:
        node: Path to the node runtime. Used both as the toolchain and as the
            host binary copied into the executable. ``None`` if not found.
        codesign: Signing tool invoked on macOS.
        platform: Host platform in ``sys.platform`` spelling.
        sentinel_fuse: Fuse string node checks for an embedded payload.
        resource_name: Name of the injected payload section.
        macho_segment_name: Segment holding the payload on macOS.
    """

    node: Path | None = None
    codesign: str = "codesign"
    platform: str = sys.platform
    sentinel_fuse: str = SENTINEL_FUSE
    resource_name: str = RESOURCE_NAME
    macho_segment_name: str = MACHO_SEGMENT_NAME

    @property
    def is_mac(self) -> bool:
        return self.platform == "darwin"

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    def with_node(self, node: Path | None) -> ToolConfig:
        """Return a copy with *node* overriding the runtime path (CLI layer)."""
        if node is None:
            return self
        return replace(self, node=node)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    """Return the mapping stored in *path*; an empty file yields ``{}``."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file '{path}' must contain a mapping, got {type(data).__name__}."
        )
    return data


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_KEYS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _default_node() -> Path | None:
    found = shutil.which("node")
    return Path(found) if found else None


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _cfg_from_dict(data: dict[str, Any]) -> ToolConfig:
    """Build a *ToolConfig* from merged raw YAML values."""
    defaults = ToolConfig()
    node = data.get("node")
    return ToolConfig(
        node=Path(str(node)).expanduser() if node else _default_node(),
        codesign=str(data.get("codesign", defaults.codesign)),
        platform=str(data.get("platform", defaults.platform)),
        sentinel_fuse=str(data.get("sentinel_fuse", defaults.sentinel_fuse)),
        resource_name=str(data.get("resource_name", defaults.resource_name)),
        macho_segment_name=str(data.get("macho_segment_name", defaults.macho_segment_name)),
    )


def _apply_env_overrides(cfg: ToolConfig) -> ToolConfig:
    """Apply GREN_MAKE_STATIC_* environment variable overrides."""
    if node := os.environ.get("GREN_MAKE_STATIC_NODE"):
        cfg = replace(cfg, node=Path(node))
    if codesign := os.environ.get("GREN_MAKE_STATIC_CODESIGN"):
        cfg = replace(cfg, codesign=codesign)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> ToolConfig:
    """Load and return the merged *ToolConfig*.

    Applies layers in order: defaults → global → per-project → env vars.
    CLI flag overrides must be applied by the caller (see ToolConfig.with_node).

    Args:
        project_dir: Directory to search for *gren-make-static.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *ToolConfig*.

    Raises:
        ConfigError: If a config file is not a YAML mapping.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged.update(raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged.update(raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)
