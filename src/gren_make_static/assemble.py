"""Packaging pipeline: snapshot blobs and static executables.

Executable mode runs these steps in order, aborting on the first failure:

  1. transform   <input> → <input>.tmp (init call deferred)
  2. sea config  write <input>.sea.config, run node --experimental-sea-config
                 → <input>.tmp.blob
  3. stage       copy the node binary to the target, chmod 755
  4. unsign      codesign --remove-signature          (macOS only)
  5. inject      blob → NODE_SEA_BLOB, flip the fuse
  6. sign        codesign --sign -                    (macOS only)

Snapshot mode runs step 1 and then node --build-snapshot straight into the
requested output.

The three temporary files are removed on every exit path. The target binary
is removed if any step after it was staged fails, so a reported failure never
leaves a half-built executable behind.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gren_make_static.cleanup import Transaction
from gren_make_static.config import ToolConfig
from gren_make_static.errors import FilesystemError
from gren_make_static.inject import inject
from gren_make_static.toolchain import (
    build_sea_blob,
    build_snapshot_blob,
    remove_signature,
    require_node,
    sign_adhoc,
)
from gren_make_static.transform import transform

Report = Callable[[str], None]


def _silent(message: str) -> None:
    pass


# ---------------------------------------------------------------------------
# Derived paths
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildPaths:
    """Temporary files derived from the input path (all next to the input)."""

    source: Path
    script: Path
    blob: Path
    sea_config: Path

    @classmethod
    def for_input(cls, source: Path) -> BuildPaths:
        return cls(
            source=source,
            script=Path(f"{source}.tmp"),
            blob=Path(f"{source}.tmp.blob"),
            sea_config=Path(f"{source}.sea.config"),
        )

    def temporaries(self) -> list[Path]:
        return [self.script, self.sea_config, self.blob]


def resolve_executable_path(target: Path, config: ToolConfig) -> Path:
    """Return the path the executable is written to.

    On Windows a missing ``.exe`` suffix is appended. This is decided once and
    the same path is used for staging and for rollback.
    """
    if config.is_windows and not str(target).endswith(".exe"):
        return Path(f"{target}.exe")
    return target


def sea_config(paths: BuildPaths) -> dict[str, object]:
    """Return the node SEA config for *paths*."""
    return {
        "main": str(paths.script),
        "output": str(paths.blob),
        "disableExperimentalSEAWarning": True,
        "useSnapshot": True,
    }


def executable_plan(paths: BuildPaths, binary: Path, config: ToolConfig) -> list[tuple[str, str]]:
    """Return the ordered (step, detail) pairs executable mode would run."""
    plan = [
        ("transform", f"{paths.source} → {paths.script}"),
        ("sea config", f"{paths.sea_config} → {paths.blob}"),
        ("stage", f"{config.node or 'node'} → {binary}"),
    ]
    if config.is_mac:
        plan.append(("unsign", f"{config.codesign} --remove-signature {binary}"))
    plan.append(("inject", f"{config.resource_name} → {binary}"))
    if config.is_mac:
        plan.append(("sign", f"{config.codesign} --sign - {binary}"))
    return plan


@contextmanager
def _filesystem(step: str) -> Iterator[None]:
    """Re-raise OSError from *step* as FilesystemError."""
    try:
        yield
    except OSError as exc:
        raise FilesystemError(f"{step} failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Snapshot mode
# ---------------------------------------------------------------------------


def make_snapshot(
    source: Path,
    output: Path,
    config: ToolConfig,
    report: Report = _silent,
) -> Path:
    """Build a startup snapshot blob of *source* at *output*.

    node writes *output* directly, so there is nothing to roll back; only
    ``<source>.tmp`` is cleaned up.

    Raises:
        InputPatternError, ToolchainError, FilesystemError
    """
    paths = BuildPaths.for_input(source)

    with Transaction() as tx:
        tx.temporary(paths.script)

        report(f"Transforming {source}")
        with _filesystem("Transforming source"):
            transform(source, paths.script)

        report(f"Building snapshot {output}")
        build_snapshot_blob(config, paths.script, output)

    return output


# ---------------------------------------------------------------------------
# Executable mode
# ---------------------------------------------------------------------------


def make_executable(
    source: Path,
    target: Path,
    config: ToolConfig,
    report: Report = _silent,
) -> Path:
    """Build a self-contained executable of *source*.

    Args:
        source: Compiled Gren application (node platform).
        target: Requested executable path (``.exe`` is appended on Windows).
        config: Resolved tool configuration; decides the platform branches.
        report: Called with one line per pipeline step.

    Returns:
        The path of the produced executable.

    Raises:
        InputPatternError, ToolchainError, SigningError, InjectionError,
        FilesystemError: the first failing step's error. Temporary files are
            gone and the target does not exist when any of these is raised.
    """
    paths = BuildPaths.for_input(source)
    binary = resolve_executable_path(target, config)

    with Transaction() as tx:
        tx.temporary(paths.script)
        report(f"Transforming {source}")
        with _filesystem("Transforming source"):
            transform(source, paths.script)

        tx.temporary(paths.sea_config)
        tx.temporary(paths.blob)
        report("Building SEA blob")
        with _filesystem("Writing SEA config"):
            paths.sea_config.write_text(
                json.dumps(sea_config(paths), separators=(",", ":")),
                encoding="utf-8",
            )
        build_sea_blob(config, paths.sea_config)

        node = require_node(config)
        tx.staged(binary)
        report(f"Copying {node} → {binary}")
        with _filesystem("Copying node binary"):
            shutil.copyfile(node, binary)
            binary.chmod(0o755)

        if config.is_mac:
            report("Removing code signature")
            remove_signature(config, binary)

        report(f"Injecting {config.resource_name}")
        with _filesystem("Injecting snapshot blob"):
            blob = paths.blob.read_bytes()
            inject(
                binary,
                config.resource_name,
                blob,
                sentinel_fuse=config.sentinel_fuse,
                macho_segment_name=config.macho_segment_name if config.is_mac else None,
            )

        if config.is_mac:
            report("Signing executable")
            sign_adhoc(config, binary)

    return binary
