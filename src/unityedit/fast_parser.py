"""Read-only block body parsing using rapidyaml.

The editor never writes through this module: parsed bodies are only
inspected by the integrity checker, so block text stays untouched.
"""

from __future__ import annotations

from typing import Any

import ryml

from unityedit.parser import UnityBlock


def _iter_children(tree: Any, node_id: int) -> list[int]:
    """Iterate over children of a node."""
    if not tree.has_children(node_id):
        return []
    children = []
    child = tree.first_child(node_id)
    while child != ryml.NONE:
        children.append(child)
        child = tree.next_sibling(child)
    return children


def _to_python(tree: Any, node_id: int) -> Any:
    """Convert rapidyaml tree node to Python object."""
    if tree.is_map(node_id):
        result = {}
        for child in _iter_children(tree, node_id):
            key = bytes(tree.key(child)).decode("utf-8") if tree.has_key(child) else ""
            result[key] = _to_python(tree, child)
        return result
    if tree.is_seq(node_id):
        return [_to_python(tree, child) for child in _iter_children(tree, node_id)]
    if tree.has_val(node_id):
        val_mv = tree.val(node_id)
        if val_mv is None:
            return None
        val = bytes(val_mv).decode("utf-8")
        if val in ("null", "~", ""):
            return None

        # Keep strings with leading zeros as-is
        digits = val.lstrip("-")
        if digits.isdigit() and not (len(digits) > 1 and digits.startswith("0")):
            return int(val)
        try:
            return float(val)
        except ValueError:
            return val
    return None


def parse_block_body(block: UnityBlock) -> dict[str, Any]:
    """Parse the body of one block (everything after its header line).

    Returns:
        The root mapping, e.g. ``{"GameObject": {...}}``

    Raises:
        ValueError: If rapidyaml rejects the body
    """
    _, _, body = block.text.partition("\n")
    if not body.strip():
        return {}
    try:
        tree = ryml.parse_in_arena(body.encode("utf-8"))
        data = _to_python(tree, tree.root_id())
    except Exception as e:
        raise ValueError(
            f"Failed to parse block (class_id={block.class_id}, file_id={block.file_id}): {e}"
        ) from e
    return data if isinstance(data, dict) else {}


def block_content(data: dict[str, Any]) -> dict[str, Any]:
    """The mapping under the root type key of a parsed body."""
    if len(data) == 1:
        content = next(iter(data.values()))
        if isinstance(content, dict):
            return content
    return {}


def iter_references(value: Any, path: str = "") -> list[tuple[str, dict[str, Any]]]:
    """All ``{fileID: ...}`` mappings inside a parsed value, with their paths."""
    found: list[tuple[str, dict[str, Any]]] = []
    if isinstance(value, dict):
        if "fileID" in value:
            found.append((path, value))
        for key, item in value.items():
            found.extend(iter_references(item, f"{path}.{key}" if path else key))
    elif isinstance(value, list):
        for i, item in enumerate(value):
            found.extend(iter_references(item, f"{path}[{i}]"))
    return found
