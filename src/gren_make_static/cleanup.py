"""Transactional cleanup of pipeline artifacts.

A :class:`Transaction` owns two lists of paths:

  temporary  — removed when the block exits, on success and on failure
  staged     — removed only when the block exits with an exception

Paths are registered *before* the file is created, so a step that fails
half-way through writing still gets its output removed. Removal is
best-effort: a missing file is fine, and any other removal error is turned
into a RuntimeWarning so it can never replace the pipeline's own error.

Usage:
    with Transaction() as tx:
        tmp = tx.temporary(input_path.with_name(input_path.name + ".tmp"))
        out = tx.staged(target)
        ...
"""

from __future__ import annotations

import warnings
from pathlib import Path
from types import TracebackType


class Transaction:
    """Scoped owner of temporary and staged pipeline files."""

    def __init__(self) -> None:
        self._temporary: list[Path] = []
        self._staged: list[Path] = []

    def temporary(self, path: Path) -> Path:
        """Register *path* for unconditional removal and return it."""
        self._temporary.append(path)
        return path

    def staged(self, path: Path) -> Path:
        """Register *path* for removal only if the transaction fails."""
        self._staged.append(path)
        return path

    def __enter__(self) -> Transaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            for path in self._staged:
                _remove(path)
        for path in self._temporary:
            _remove(path)


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        warnings.warn(
            f"Could not remove '{path}': {exc}",
            RuntimeWarning,
            stacklevel=3,
        )
