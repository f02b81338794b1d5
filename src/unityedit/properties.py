"""Scoped property editing on raw block text.

Three path grammars are supported:
- ``m_Name``: a scalar line ``m_Name: value``
- ``m_LocalPosition.x``: a field of an inline ``{x: 0, y: 0}`` mapping,
  falling back to block-style nested mappings walked by indentation
- ``m_Materials.Array.data[0]``: one element of a block sequence

All functions take and return text; nothing outside the targeted value
is rewritten.
"""

from __future__ import annotations

import re
from typing import Callable

ARRAY_PATH_PATTERN = re.compile(r"^(.+)\.Array\.data\[(\d+)\]$")

NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")
STRUCT_PATTERN = re.compile(r"^\{.+:.+\}$")

NULL_REFERENCE = "{fileID: 0}"

_LEADING_SPACES = re.compile(r"^(\s*)")


def _indent_of(line: str) -> int:
    return len(_LEADING_SPACES.match(line).group(1))


def _effective_reference(object_reference: str | None) -> str | None:
    if object_reference and object_reference.strip() != NULL_REFERENCE:
        return object_reference
    return None


def property_name_candidates(path: str) -> list[str]:
    """Return ``path`` and, if its root segment lacks it, the ``m_``-prefixed form."""
    candidates = [path]
    if not path.startswith("m_"):
        candidates.append(f"m_{path}")
    return candidates


# Scalar paths


def _scalar_pattern(name: str) -> re.Pattern:
    return re.compile(rf"(^\s*{re.escape(name)}:[ \t]*)(.*)$", re.MULTILINE)


def _get_scalar(text: str, name: str) -> str | None:
    match = _scalar_pattern(name).search(text)
    return match.group(2).strip() if match else None


def _set_scalar(text: str, name: str, value: str) -> str:
    pattern = _scalar_pattern(name)
    match = pattern.search(text)
    if not match:
        return text
    return text[: match.start(2)] + value + text[match.end(2) :]


# Dotted paths


def _find_nested_window(lines: list[str], segments: list[str]) -> tuple[int, int] | None:
    """Narrow [start, end) down to the children of ``segments`` by indentation."""
    start, end = 0, len(lines)
    for segment in segments:
        pattern = re.compile(rf"^(\s*){re.escape(segment)}:\s*(.*)$")
        parent_idx = parent_indent = -1
        for i in range(start, end):
            match = pattern.match(lines[i])
            if not match:
                continue
            indent = len(match.group(1))
            if match.group(2).strip() == "":
                parent_idx, parent_indent = i, indent
                break
            # Content after the colon: a parent only if the next line is deeper
            for j in range(i + 1, end):
                if lines[j].strip() == "":
                    continue
                if _indent_of(lines[j]) > indent:
                    parent_idx, parent_indent = i, indent
                break
            if parent_idx != -1:
                break
        if parent_idx == -1:
            return None

        child_indent = -1
        for i in range(parent_idx + 1, end):
            if lines[i].strip() == "":
                continue
            if _indent_of(lines[i]) > parent_indent:
                child_indent = _indent_of(lines[i])
            break
        if child_indent == -1:
            return None

        start = parent_idx + 1
        for i in range(parent_idx + 1, end):
            if lines[i].strip() and _indent_of(lines[i]) < child_indent:
                end = i
                break
    return start, end


def _inline_pattern(parent: str) -> re.Pattern:
    return re.compile(rf"(^\s*{re.escape(parent)}:\s*\{{)([^}}]*)(\}})", re.MULTILINE)


def _field_pattern(sub_field: str) -> re.Pattern:
    return re.compile(rf"((?:^|[\s,]){re.escape(sub_field)}:\s*)([^,}}]+)")


def _get_dotted(text: str, path: str) -> str | None:
    parts = path.split(".")
    inline = _inline_pattern(parts[0]).search(text)
    if inline and len(parts) == 2:
        field_match = _field_pattern(parts[1]).search(inline.group(2))
        if field_match:
            return field_match.group(2).strip()

    lines = text.split("\n")
    window = _find_nested_window(lines, parts[:-1])
    if window is None:
        return None
    final = re.compile(rf"^\s*{re.escape(parts[-1])}:\s*(.+)$")
    for i in range(*window):
        match = final.match(lines[i])
        if match:
            return match.group(1).strip()
    return None


def _set_dotted(text: str, path: str, value: str) -> str:
    parts = path.split(".")
    inline = _inline_pattern(parts[0]).search(text)
    if inline and len(parts) == 2:
        fields = inline.group(2)
        field_match = _field_pattern(parts[1]).search(fields)
        if field_match:
            # Keep trailing whitespace inside the braces intact
            old_value = field_match.group(2)
            stripped = old_value.rstrip()
            updated = (
                fields[: field_match.start(2)]
                + value
                + old_value[len(stripped) :]
                + fields[field_match.end(2) :]
            )
            return text[: inline.start(2)] + updated + text[inline.end(2) :]

    lines = text.split("\n")
    window = _find_nested_window(lines, parts[:-1])
    if window is None:
        return text
    final = re.compile(rf"^(\s*{re.escape(parts[-1])}:\s*).+$")
    for i in range(*window):
        match = final.match(lines[i])
        if match:
            lines[i] = match.group(1) + value
            return "\n".join(lines)
    return text


# Array paths


def _find_array(lines: list[str], name: str) -> tuple[int, int, list[int], int] | None:
    """Locate a block sequence.

    Returns:
        (header index, header indent, item start line indices, end index),
        where ``end`` is one past the last non-blank line of the sequence
    """
    header = re.compile(rf"^(\s*){re.escape(name)}:\s*$")
    header_idx = indent = -1
    for i, line in enumerate(lines):
        match = header.match(line)
        if match:
            header_idx, indent = i, len(match.group(1))
            break
    if header_idx == -1:
        return None

    elements: list[int] = []
    end = header_idx + 1
    for i in range(header_idx + 1, len(lines)):
        line = lines[i]
        stripped = line.strip()
        if not stripped:
            continue
        line_indent = _indent_of(line)
        if line_indent < indent:
            break
        if line_indent == indent and not stripped.startswith("-"):
            break
        if stripped.startswith("-"):
            # Only count items at the sequence's own indent
            if not elements or line_indent == _indent_of(lines[elements[0]]):
                elements.append(i)
        elif not elements:
            break
        end = i + 1
    return header_idx, indent, elements, end


def _empty_array_pattern(name: str) -> re.Pattern:
    return re.compile(rf"^([ \t]*){re.escape(name)}:[ \t]*\[\][ \t]*$", re.MULTILINE)


def _item_spans(elements: list[int], end: int) -> list[tuple[int, int]]:
    bounds = elements + [end]
    return [(bounds[i], bounds[i + 1]) for i in range(len(elements))]


def get_array_elements(text: str, name: str) -> list[str] | None:
    """First-line values of a block sequence's items, ``[]`` if empty, None if absent."""
    if _empty_array_pattern(name).search(text):
        return []
    lines = text.split("\n")
    found = _find_array(lines, name)
    if found is None:
        return None
    return [re.sub(r"^\s*-\s*", "", lines[i]).rstrip() for i in found[2]]


def get_array_items(text: str, name: str) -> list[str] | None:
    """Full text of each item of a block sequence, nested lines included."""
    if _empty_array_pattern(name).search(text):
        return []
    lines = text.split("\n")
    found = _find_array(lines, name)
    if found is None:
        return None
    _, _, elements, end = found
    return ["\n".join(lines[start:stop]).rstrip() for start, stop in _item_spans(elements, end)]


def insert_array_element(text: str, name: str, index: int, value: str) -> str:
    """Insert ``value`` at ``index`` (-1 appends); converts ``name: []`` to block style.

    ``value`` may span several lines; continuation lines are inserted as
    given, so they must carry their own indentation.
    """
    empty = _empty_array_pattern(name).search(text)
    if empty:
        indent = empty.group(1)
        replacement = f"{indent}{name}:\n{indent}- {value}"
        return text[: empty.start()] + replacement + text[empty.end() :]

    lines = text.split("\n")
    found = _find_array(lines, name)
    if found is None:
        return text
    header_idx, indent, elements, end = found
    if elements:
        element_indent = _LEADING_SPACES.match(lines[elements[0]]).group(1)
    else:
        element_indent = " " * indent
    new_line = f"{element_indent}- {value}"
    if index == -1 or index >= len(elements):
        insert_at = end
    else:
        insert_at = elements[index]
    lines.insert(insert_at, new_line)
    return "\n".join(lines)


def remove_array_element(text: str, name: str, index: int) -> str:
    """Remove the item at ``index``; an emptied sequence becomes ``name: []``."""
    lines = text.split("\n")
    found = _find_array(lines, name)
    if found is None:
        return text
    header_idx, indent, elements, end = found
    if index < 0 or index >= len(elements):
        return text
    start, stop = _item_spans(elements, end)[index]
    del lines[start:stop]
    if len(elements) == 1:
        lines[header_idx] = f"{' ' * indent}{name}: []"
    return "\n".join(lines)


def remove_array_items(text: str, name: str, predicate: Callable[[str], bool]) -> str:
    """Remove every item whose full text satisfies ``predicate``."""
    items = get_array_items(text, name) or []
    for index in reversed(range(len(items))):
        if predicate(items[index]):
            text = remove_array_element(text, name, index)
    return text


def _get_array_element(text: str, path: str) -> str | None:
    match = ARRAY_PATH_PATTERN.match(path)
    if not match:
        return None
    elements = get_array_elements(text, match.group(1))
    index = int(match.group(2))
    if elements is None or index >= len(elements):
        return None
    return elements[index].strip()


def _set_array_element(text: str, path: str, value: str) -> str:
    match = ARRAY_PATH_PATTERN.match(path)
    if not match:
        return text
    lines = text.split("\n")
    found = _find_array(lines, match.group(1))
    if found is None:
        return text
    elements = found[2]
    index = int(match.group(2))
    if index >= len(elements):
        return text
    line_no = elements[index]
    lines[line_no] = re.sub(r"-\s*.*$", lambda _: f"- {value}", lines[line_no], count=1)
    return "\n".join(lines)


# Public entry points


def _path_kind(path: str) -> str:
    if "Array.data[" in path:
        return "array"
    if "." in path:
        return "dotted"
    return "scalar"


def get_property(text: str, path: str) -> str | None:
    """Read the current value at ``path`` (stripped), or None if absent."""
    kind = _path_kind(path)
    if kind == "array":
        return _get_array_element(text, path)
    if kind == "dotted":
        return _get_dotted(text, path)
    return _get_scalar(text, path)


def set_property(
    text: str,
    path: str,
    value: str,
    object_reference: str | None = None,
    append_missing: bool = False,
) -> str:
    """Set the value at ``path``.

    A non-null ``object_reference`` takes precedence over ``value``, which
    is how prefab modifications encode reference overrides.

    Args:
        text: Block text
        path: Property path in one of the three grammars
        value: New value text
        object_reference: Optional reference text (``{fileID: 0}`` is ignored)
        append_missing: Append a missing scalar property instead of no-op

    Returns:
        The updated text (unchanged if the path could not be found)
    """
    kind = _path_kind(path)
    reference = _effective_reference(object_reference)
    if kind == "array":
        return _set_array_element(text, path, reference or value)
    if kind == "dotted":
        # Inline struct fields are plain values; references go to nested fields
        parts = path.split(".")
        inline = _inline_pattern(parts[0]).search(text)
        if inline and len(parts) == 2 and _field_pattern(parts[1]).search(inline.group(2)):
            return _set_dotted(text, path, value)
        return _set_dotted(text, path, reference or value)

    replacement = reference or value
    if _scalar_pattern(path).search(text):
        return _set_scalar(text, path, replacement)
    if append_missing:
        return append_property(text, path, replacement)
    return text


def append_property(text: str, name: str, value: str, indent: str = "  ") -> str:
    """Append ``name: value`` as the last line of the block."""
    body = text.rstrip("\n")
    trailing = text[len(body) :] or "\n"
    return f"{body}\n{indent}{name}: {value}{trailing}"


def apply_modification(
    text: str,
    property_path: str,
    value: str,
    object_reference: str | None = None,
) -> str | None:
    """Replay one prefab modification, trying ``m_``-prefixed names as well.

    Scalar properties that exist under neither name are appended.

    Returns:
        The updated text, or None if a dotted or array path matches nothing
        (including an out-of-range array index)
    """
    reference = _effective_reference(object_reference)
    for candidate in _modification_candidates(property_path):
        updated = set_property(text, candidate, value, reference)
        if updated != text or get_property(text, candidate) is not None:
            return updated
    if _path_kind(property_path) == "scalar":
        return append_property(text, property_path, reference or value)
    return None


def _modification_candidates(path: str) -> list[str]:
    root, _, rest = path.partition(".")
    candidates = [path]
    if not root.startswith("m_"):
        prefixed = f"m_{root}"
        candidates.append(f"{prefixed}.{rest}" if rest else prefixed)
    return candidates


def resolve_property_path(text: str, path: str) -> str | None:
    """Return the form of ``path`` that exists in ``text`` (exact name first)."""
    for candidate in _modification_candidates(path):
        if get_property(text, candidate) is not None:
            return candidate
    return None


def validate_value_type(current: str, new: str) -> str | None:
    """Check that ``new`` is shaped like ``current``.

    Returns:
        An error message, or None if the value is acceptable
    """
    current = current.strip()
    new = new.strip()
    if current.startswith("{fileID:"):
        if not new.startswith("{fileID:"):
            return f"Expected an object reference like {{fileID: N}}, got {new!r}"
        return None
    if STRUCT_PATTERN.match(current):
        if not (new.startswith("{") and new.endswith("}")):
            return f"Expected a struct like {current}, got {new!r}"
        if new.startswith("{fileID:"):
            return None
        for field_text in new[1:-1].split(","):
            _, sep, field_value = field_text.partition(":")
            if not sep or not NUMBER_PATTERN.match(field_value.strip()):
                return f"Struct fields must be numeric: {new!r}"
        return None
    if current.startswith("[") or current.startswith("- "):
        if not new.startswith("["):
            return f"Expected an array value, got {new!r}"
        return None
    if NUMBER_PATTERN.match(current):
        if not NUMBER_PATTERN.match(new):
            return f"Expected a number, got {new!r}"
        return None
    return None
