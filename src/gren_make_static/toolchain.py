"""Blocking calls into node and codesign.

Every command runs synchronously with ``shell=False`` and captured output;
the next pipeline step never starts before the previous exit code is known.
There are no retries and no timeouts: a failing command is reported once,
with its stderr attached unmodified, and the caller cleans up.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from gren_make_static.config import ToolConfig
from gren_make_static.errors import SigningError, ToolchainError


def _run(cmd: list[str], error_cls: type[ToolchainError] | type[SigningError], what: str) -> None:
    try:
        subprocess.run(cmd, check=True, capture_output=True, shell=False)
    except FileNotFoundError as exc:
        raise error_cls(f"{what}: '{cmd[0]}' was not found.", cmd) from exc
    except OSError as exc:
        # Not executable, a directory, wrong architecture, ...
        raise error_cls(f"{what}: '{cmd[0]}' could not be run: {exc.strerror or exc}.", cmd) from exc
    except subprocess.CalledProcessError as exc:
        raise error_cls(
            f"{what}: '{' '.join(cmd)}' exited with status {exc.returncode}.",
            cmd,
            returncode=exc.returncode,
            stderr=exc.stderr or b"",
        ) from exc


def require_node(config: ToolConfig) -> Path:
    """Return the configured node runtime.

    Raises:
        ToolchainError: if no runtime was configured or found on PATH.
    """
    if config.node is None:
        raise ToolchainError("No node runtime found on PATH.", ["node"])
    return config.node


# ---------------------------------------------------------------------------
# Snapshot toolchain
# ---------------------------------------------------------------------------


def build_snapshot_blob(config: ToolConfig, script_path: Path, blob_path: Path) -> None:
    """Run ``node --snapshot-blob <blob> --build-snapshot <script>``.

    Raises:
        ToolchainError: if node is missing or exits non-zero.
    """
    cmd = [
        str(require_node(config)),
        "--snapshot-blob",
        str(blob_path),
        "--build-snapshot",
        str(script_path),
    ]
    _run(cmd, ToolchainError, "Failed to build snapshot")


def build_sea_blob(config: ToolConfig, sea_config_path: Path) -> None:
    """Run ``node --experimental-sea-config <config>``.

    The blob is written to the ``output`` path named inside the config file.

    Raises:
        ToolchainError: if node is missing or exits non-zero.
    """
    cmd = [str(require_node(config)), "--experimental-sea-config", str(sea_config_path)]
    _run(cmd, ToolchainError, "Failed to build SEA blob")


# ---------------------------------------------------------------------------
# Code signing (macOS)
# ---------------------------------------------------------------------------


def remove_signature(config: ToolConfig, binary_path: Path) -> None:
    """Strip the existing code signature so the binary can be modified."""
    cmd = [config.codesign, "--remove-signature", str(binary_path)]
    _run(cmd, SigningError, "Failed to remove code signature")


def sign_adhoc(config: ToolConfig, binary_path: Path) -> None:
    """Re-sign *binary_path* with an ad-hoc identity."""
    cmd = [config.codesign, "--sign", "-", str(binary_path)]
    _run(cmd, SigningError, "Failed to sign executable")
