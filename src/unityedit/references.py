"""Reference parsing and rewriting.

A reference is an inline ``{fileID: N[, guid: G[, type: T]]}`` mapping.
Only local references (no guid) are rewritten when IDs are remapped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# {fileID: N} or {fileID: N, guid: G, type: T}
REFERENCE_PATTERN = re.compile(
    r"\{fileID:\s*(-?\d+)(?:\s*,\s*guid:\s*([0-9a-fA-F]+))?(?:\s*,\s*type:\s*(\d+))?\s*\}"
)

# Local reference: the closing brace directly follows the fileID
LOCAL_REFERENCE_PATTERN = re.compile(r"(\{fileID:\s*)(-?\d+)(\s*\})")

ANCHOR_PATTERN = re.compile(r"^(--- !u!\d+ &)(-?\d+)(?=\s|$)", re.MULTILINE)


@dataclass(frozen=True)
class FileReference:
    """Reference to another Unity object, in this file or another asset."""

    file_id: int
    guid: str | None = None
    type: int | None = None

    @property
    def is_null(self) -> bool:
        return self.file_id == 0

    @property
    def is_local(self) -> bool:
        return self.guid is None

    def to_text(self) -> str:
        return format_reference(self.file_id, self.guid, self.type)


def parse_reference(text: str) -> FileReference | None:
    """Parse the first reference found in ``text``."""
    match = REFERENCE_PATTERN.search(text)
    if not match:
        return None
    type_ = int(match.group(3)) if match.group(3) else None
    return FileReference(int(match.group(1)), match.group(2), type_)


def format_reference(file_id: int, guid: str | None = None, type: int | None = None) -> str:
    """Format a reference the way Unity writes it."""
    if guid is None:
        return f"{{fileID: {file_id}}}"
    if type is None:
        return f"{{fileID: {file_id}, guid: {guid}}}"
    return f"{{fileID: {file_id}, guid: {guid}, type: {type}}}"


def remap_references(text: str, id_map: dict[int, int]) -> str:
    """Rewrite a block's anchor ID and local references under ``id_map``.

    References to IDs outside the map, null references and references
    carrying a guid are left untouched.

    Args:
        text: Block text, header line included
        id_map: Old fileID to new fileID

    Returns:
        The rewritten text
    """
    if not id_map:
        return text

    def replace_anchor(match: re.Match) -> str:
        old_id = int(match.group(2))
        return f"{match.group(1)}{id_map.get(old_id, old_id)}"

    def replace_reference(match: re.Match) -> str:
        old_id = int(match.group(2))
        if old_id == 0 or old_id not in id_map:
            return match.group(0)
        return f"{match.group(1)}{id_map[old_id]}{match.group(3)}"

    text = ANCHOR_PATTERN.sub(replace_anchor, text, count=1)
    return LOCAL_REFERENCE_PATTERN.sub(replace_reference, text)


def local_reference_ids(text: str) -> list[int]:
    """Nonzero local fileIDs referenced in ``text``, in order of appearance."""
    return [
        int(match.group(2))
        for match in LOCAL_REFERENCE_PATTERN.finditer(text)
        if int(match.group(2)) != 0
    ]


def replace_local_reference(text: str, old_id: int, new_id: int) -> str:
    """Point every local reference to ``old_id`` at ``new_id`` (anchor untouched)."""

    def replace(match: re.Match) -> str:
        if int(match.group(2)) != old_id:
            return match.group(0)
        return f"{match.group(1)}{new_id}{match.group(3)}"

    return LOCAL_REFERENCE_PATTERN.sub(replace, text)
