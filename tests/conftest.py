"""Shared pytest fixtures."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from gren_make_static.config import SENTINEL_FUSE, ToolConfig

COMPILED_APP = (
    "(function(scope){\n"
    "'use strict';\n"
    "var _Platform_worker = F4(function(impl, flagDecoder, debugMetadata, args) {});\n"
    "this.Gren.Main.init({});\n"
    "}(this));\n"
)

# Runs under node: defines the Gren global on the script scope, then starts it
RUNNABLE_APP = (
    "(function(scope){\n"
    "'use strict';\n"
    "scope.Gren = { Main: { init: function(flags) { console.log('hello from gren'); } } };\n"
    "}(this));\n"
    "this.Gren.Main.init({});\n"
)

# useSnapshot in the SEA config needs node 20.12+
_MIN_NODE = (20, 12)


@pytest.fixture
def compiled_app(tmp_path: Path) -> Path:
    """A compiled Gren program with exactly one init call."""
    path = tmp_path / "app"
    path.write_text(COMPILED_APP, encoding="utf-8")
    return path


@pytest.fixture
def runnable_app(tmp_path: Path) -> Path:
    """A Gren-shaped program node can actually run; prints one line."""
    path = tmp_path / "app"
    path.write_text(RUNNABLE_APP, encoding="utf-8")
    return path


@pytest.fixture
def fake_node(tmp_path: Path) -> Path:
    """Stand-in node binary carrying an unset sentinel fuse."""
    path = tmp_path / "bin" / "node"
    path.parent.mkdir()
    path.write_bytes(b"\x7fELF-ish" + f"{SENTINEL_FUSE}:0".encode() + b"\x00tail")
    return path


@pytest.fixture
def linux_config(fake_node: Path) -> ToolConfig:
    return ToolConfig(node=fake_node, platform="linux")


@pytest.fixture
def real_node() -> Path:
    """The node on PATH, if it can build single executable applications."""
    found = shutil.which("node")
    if found is None:
        pytest.skip("node is not on PATH")
    node = Path(found).resolve()

    out = subprocess.run(
        [str(node), "--version"], check=True, capture_output=True, text=True
    ).stdout
    version = tuple(int(part) for part in out.strip().lstrip("v").split(".")[:2])
    if version < _MIN_NODE:
        pytest.skip(f"node {out.strip()} is older than v20.12")
    if f"{SENTINEL_FUSE}:0".encode() not in node.read_bytes():
        pytest.skip(f"{node} was built without single executable support")
    return node
