"""Inject a payload into a copy of the node binary.

Node looks for its single-executable payload in a format-specific container
and only does so when a sentinel fuse compiled into the binary reads
``<fuse>:1``. Injection therefore has two halves:

  1. add the payload with LIEF:
       ELF    — a note named after the resource, in the PT_NOTE segment
       Mach-O — a section named after the resource, in its own read-only segment
       PE     — an RCDATA resource named after the resource (language neutral)
  2. flip the fuse from ``:0`` to ``:1`` in the written file

The fuse is validated before anything is written, so a binary that already
carries a payload (``:1``) or lacks the fuse is rejected untouched.
"""

from __future__ import annotations

from pathlib import Path

import lief

from gren_make_static.errors import InjectionError

_RT_RCDATA = 10
# Set on a resource directory id so the entry is looked up by name
_RESOURCE_NAME_IS_STRING = 0x80000000
_LANG_NEUTRAL = 0
_VM_PROT_READ = 0x1
_NOTE_TYPE = 0

# What LIEF raises when it cannot parse, edit or rebuild a binary
_LIEF_ERRORS = (RuntimeError, ValueError, TypeError, AttributeError)


# ------------------------------------------------------------------
# Sentinel fuse
# ------------------------------------------------------------------


def find_sentinel(content: bytes, sentinel_fuse: str) -> int:
    """Return the offset of the fuse state byte (the ``0``/``1`` after the colon).

    Raises:
        InjectionError: if the fuse is missing, duplicated or malformed.
    """
    fuse = sentinel_fuse.encode("ascii")
    first = content.find(fuse)
    if first == -1:
        raise InjectionError(f"Could not find the sentinel {sentinel_fuse} in the binary.")
    if content.rfind(fuse) != first:
        raise InjectionError(f"Multiple occurrences of sentinel {sentinel_fuse} found in the binary.")

    colon = first + len(fuse)
    if content[colon:colon + 1] != b":":
        raise InjectionError(f"Value at index {colon} must be ':'.")
    state = colon + 1
    if content[state:state + 1] not in (b"0", b"1"):
        raise InjectionError(f"Value at index {state} must be '0' or '1'.")
    return state


def flip_sentinel(content: bytes, sentinel_fuse: str) -> bytes:
    """Return *content* with the fuse switched on.

    Raises:
        InjectionError: if the fuse is already on, or see :func:`find_sentinel`.
    """
    state = find_sentinel(content, sentinel_fuse)
    if content[state:state + 1] == b"1":
        raise InjectionError("The binary already contains an injected payload (fuse is set).")
    return content[:state] + b"1" + content[state + 1:]


# ------------------------------------------------------------------
# Format-specific containers
# ------------------------------------------------------------------


def _has_note(binary: lief.ELF.Binary, name: str) -> bool:
    for note in binary.notes:
        try:
            if note.name == name:
                return True
        except UnicodeDecodeError:
            # Vendor notes may carry names that are not UTF-8; none of them is ours
            continue
    return False


def _inject_elf(path: Path, resource_name: str, data: bytes) -> None:
    binary = lief.ELF.parse(str(path))
    if binary is None:
        raise InjectionError(f"Could not parse ELF binary: {path}")
    if _has_note(binary, resource_name):
        raise InjectionError(f"Note '{resource_name}' already exists in {path}.")

    # No section name: the note lives in the PT_NOTE segment only, which is
    # where node looks for it at runtime.
    note = lief.ELF.Note.create(
        name=resource_name,
        original_type=_NOTE_TYPE,
        description=list(data),
    )
    if note is None:
        raise InjectionError(f"Could not create note '{resource_name}'.")
    binary.add(note)
    binary.write(str(path))


def _inject_macho(path: Path, resource_name: str, data: bytes, segment_name: str | None) -> None:
    if not segment_name:
        raise InjectionError("A Mach-O segment name is required to inject into a Mach-O binary.")

    fat = lief.MachO.parse(str(path))
    if fat is None:
        raise InjectionError(f"Could not parse Mach-O binary: {path}")

    # Universal binaries get the payload in every slice
    for binary in fat:
        if binary.get_section(segment_name, resource_name) is not None:
            raise InjectionError(
                f"Section {segment_name},{resource_name} already exists in {path}."
            )
        segment = lief.MachO.SegmentCommand(segment_name)
        segment.init_protection = _VM_PROT_READ
        segment.max_protection = _VM_PROT_READ
        segment.add_section(lief.MachO.Section(resource_name, list(data)))
        binary.add(segment)

    fat.write(str(path))


def _inject_pe(path: Path, resource_name: str, data: bytes) -> None:
    """Add an RCDATA resource: type (RT_RCDATA) → name → language (data)."""
    binary = lief.PE.parse(str(path))
    if binary is None:
        raise InjectionError(f"Could not parse PE binary: {path}")
    if not binary.has_resources:
        raise InjectionError(f"PE binary has no resource tree: {path}")

    # Resource names are case-insensitive; FindResource upper-cases them
    name = resource_name.upper()
    root = binary.resources

    rcdata = next((node for node in root.childs if node.id == _RT_RCDATA), None)
    if rcdata is None:
        type_node = lief.PE.ResourceDirectory()
        type_node.id = _RT_RCDATA
        rcdata = root.add_directory_node(type_node)
    if any(node.has_name and node.name == name for node in rcdata.childs):
        raise InjectionError(f"Resource '{name}' already exists in {path}.")

    name_node = lief.PE.ResourceDirectory()
    name_node.id = _RESOURCE_NAME_IS_STRING
    name_node.name = name
    name_node = rcdata.add_directory_node(name_node)

    lang_node = lief.PE.ResourceData()
    lang_node.id = _LANG_NEUTRAL
    lang_node.content = list(data)
    name_node.add_data_node(lang_node)

    builder = lief.PE.Builder(binary)
    builder.build_resources(True)
    builder.build()
    builder.write(str(path))


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def inject(
    binary_path: Path,
    resource_name: str,
    data: bytes,
    *,
    sentinel_fuse: str,
    macho_segment_name: str | None = None,
) -> None:
    """Embed *data* into *binary_path* as *resource_name* and set the fuse.

    Args:
        binary_path: Staged copy of the node binary; modified in place.
        resource_name: Name of the payload container (e.g. ``NODE_SEA_BLOB``).
        data: Payload bytes.
        sentinel_fuse: Fuse string that must be present exactly once with ``:0``.
        macho_segment_name: Segment to hold the payload; only used for Mach-O.

    Raises:
        InjectionError: if the fuse is invalid or already set, the format is
            not ELF/Mach-O/PE, the payload container already exists, or LIEF
            fails to edit the binary.
        OSError: if the binary cannot be read or written.
    """
    flip_sentinel(binary_path.read_bytes(), sentinel_fuse)

    try:
        if lief.is_elf(str(binary_path)):
            _inject_elf(binary_path, resource_name, data)
        elif lief.is_macho(str(binary_path)):
            _inject_macho(binary_path, resource_name, data, macho_segment_name)
        elif lief.is_pe(str(binary_path)):
            _inject_pe(binary_path, resource_name, data)
        else:
            raise InjectionError(f"Unsupported executable format: {binary_path}")
    except InjectionError:
        raise
    except _LIEF_ERRORS as exc:
        raise InjectionError(
            f"LIEF could not add {resource_name} to {binary_path}: {type(exc).__name__}: {exc}"
        ) from exc

    binary_path.write_bytes(flip_sentinel(binary_path.read_bytes(), sentinel_fuse))
