"""Snapshot-compatible source rewrite.

A compiled Gren program for the node platform starts itself with a single
statement of the form ``this.Gren.<Module>.init({});``. When node builds a
startup snapshot it runs the whole script, so that call would execute at
snapshot-capture time instead of at program start. The rewrite wraps it in
``v8.startupSnapshot.setDeserializeMainFunction`` so node runs it only after
the snapshot has been deserialized.

Exactly one init call must be present; zero or several matches are an input
error and no output file is written.

Usage:
    transform(Path("app"), Path("app.tmp"))
"""

from __future__ import annotations

import re
from pathlib import Path

from gren_make_static.errors import (
    AmbiguousPatternError,
    InputPatternError,
    PatternNotFoundError,
)

# this.Gren followed by a dotted property chain, called with an empty object
_INIT_CALL_RE = re.compile(r"this\.Gren(?:\.[A-Za-z_$][\w$]*)+\(\{\}\);")

_DEFERRED_INIT = """
  const v8 = require('node:v8');
  v8.startupSnapshot.setDeserializeMainFunction(function() {{
    {init_call}
  }});
  """


def find_init_call(source: str) -> re.Match[str]:
    """Return the single Gren init call in *source*.

    Raises:
        PatternNotFoundError: if there is no init call.
        AmbiguousPatternError: if there is more than one.
    """
    matches = list(_INIT_CALL_RE.finditer(source))
    if not matches:
        raise PatternNotFoundError(
            "Could not find the Gren init call (this.Gren.<Module>.init({});) in the source."
        )
    if len(matches) > 1:
        calls = ", ".join(m.group(0) for m in matches)
        raise AmbiguousPatternError(
            f"Found {len(matches)} Gren init calls, expected exactly one: {calls}",
            count=len(matches),
        )
    return matches[0]


def make_snapshot_compatible(source: str) -> str:
    """Return *source* with its init call deferred to the deserialize-main hook.

    Everything outside the matched statement is left byte-identical.
    """
    match = find_init_call(source)
    wrapped = _DEFERRED_INIT.format(init_call=match.group(0))
    return source[: match.start()] + wrapped + source[match.end():]


def transform(source_path: Path, dest_path: Path) -> None:
    """Rewrite *source_path* into *dest_path*; *source_path* is never modified.

    Newlines are preserved as-is on both read and write.

    Raises:
        InputPatternError: if the source is not UTF-8 text, or see
            :func:`find_init_call`. *dest_path* is not created in either case.
        OSError: if either file cannot be read or written.
    """
    try:
        with open(source_path, encoding="utf-8", newline="") as f:
            source = f.read()
    except UnicodeDecodeError as exc:
        raise InputPatternError(
            f"{source_path} is not UTF-8 text (invalid byte at offset {exc.start}); "
            "expected a compiled Gren application."
        ) from exc

    rewritten = make_snapshot_compatible(source)

    with open(dest_path, "w", encoding="utf-8", newline="") as f:
        f.write(rewritten)
