"""Hierarchy and edit operations on a loaded UnityDocument.

Every operation takes the document as its first argument, mutates it in
memory and returns its result fields as a dict. Loading, validation and
the atomic write are left to :func:`unityedit.commit.run_operation`, so
an operation that raises leaves the file on disk untouched.
"""

from __future__ import annotations

import logging
import math
import random
import re
from pathlib import Path
from typing import Any, Iterable

from unityedit import hierarchy, properties
from unityedit.asset_tracker import GUIDResolver, resolve_script_guid
from unityedit.components import (
    NON_COMPONENT_CLASS_IDS,
    component_yaml,
    find_builtin_class_id,
    game_object_yaml,
    mono_behaviour_yaml,
)
from unityedit.errors import (
    InvalidInputError,
    NotFoundError,
    StructuralViolationError,
)
from unityedit.file_ids import FileIDAllocator
from unityedit.parser import (
    CLASS_IDS,
    GAME_OBJECT,
    MONO_BEHAVIOUR,
    PREFAB_INSTANCE,
    RECT_TRANSFORM,
    TRANSFORM,
    UnityBlock,
    UnityDocument,
)

logger = logging.getLogger(__name__)

GAME_OBJECT_PROPERTIES = (
    "m_Name",
    "m_TagString",
    "m_IsActive",
    "m_Layer",
    "m_StaticEditorFlags",
    "m_Icon",
    "m_NavMeshLayer",
)

LOCAL_REFERENCE_VALUE = re.compile(r"^\{fileID:\s*(-?\d+)\}$")
SCRIPT_REFERENCE_PATTERN = re.compile(r"m_Script:\s*\{fileID:\s*-?\d+,\s*guid:\s*([a-f0-9]{32})")

_PROTECTED_COMPONENT_MESSAGES = {
    GAME_OBJECT: "Cannot {action} a GameObject with {command}. Use {alternative} instead.",
    TRANSFORM: "Cannot {action} a Transform with {command}. Every GameObject owns exactly one.",
    RECT_TRANSFORM: "Cannot {action} a RectTransform with {command}. Every GameObject owns exactly one.",
    PREFAB_INSTANCE: "Cannot {action} a PrefabInstance with {command}. Use delete-prefab-instance instead.",
}


def _require_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidInputError("GameObject name must not be empty")
    if "\n" in name or "\r" in name:
        raise InvalidInputError("GameObject name must be a single line")
    return name.strip()


def _require_editable(block: UnityBlock) -> None:
    if block.stripped:
        raise StructuralViolationError(
            f"{block.class_name} {block.file_id} is a stripped placeholder of a PrefabInstance. "
            "Edit the instance's overrides or unpack it first."
        )


def _parse_file_id(value: str | int, label: str = "fileID") -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f'Invalid {label} "{value}": expected an integer') from None


def _require_block(doc: UnityDocument, file_id: int, what: str = "Component") -> UnityBlock:
    block = doc.get_by_file_id(file_id)
    if block is None:
        message = f"{what} with fileID {file_id} not found"
        if doc.get_prefab_instances():
            message += (
                ". This file contains PrefabInstances; the fileID may belong to a source prefab"
                " (edit that prefab or unpack the instance first)"
            )
        raise NotFoundError(message)
    return block


def _refuse_protected(block: UnityBlock, action: str, command: str, alternative: str) -> None:
    template = _PROTECTED_COMPONENT_MESSAGES.get(block.class_id)
    if template is not None:
        raise StructuralViolationError(
            template.format(action=action, command=command, alternative=alternative)
        )


def _game_object_layer(doc: UnityDocument, transform: UnityBlock | None) -> int:
    if transform is None or transform.stripped:
        return 0
    owner = doc.get_by_file_id(hierarchy.get_game_object_id(transform) or 0)
    if owner is None:
        return 0
    layer = owner.get_property("m_Layer")
    return int(layer) if layer and layer.lstrip("-").isdigit() else 0


# Object lifecycle


def create_game_object(
    doc: UnityDocument,
    name: str,
    parent: str | int | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Create an empty GameObject with a Transform.

    Without a parent the object goes to the scene root, except in prefab
    variants (no root Transform of their own) where it is added under the
    instance's stripped root.

    Args:
        doc: Target document
        name: Name of the new GameObject
        parent: Parent Transform/GameObject fileID or name
        rng: Optional random source for reproducible fileIDs

    Returns:
        Dict with game_object_id, transform_id, parent_transform_id and
        prefab_instance_id (0 unless added to a PrefabInstance)
    """
    name = _require_name(name)

    parent_transform = None
    if parent is not None and str(parent).strip():
        parent_transform = hierarchy.resolve_parent_transform(doc, parent)
    elif not hierarchy.root_transforms(doc):
        # Variants have no root of their own, only the instance's stripped one
        instances = doc.get_prefab_instances()
        if instances:
            parent_transform = hierarchy.stripped_root_transform(doc, instances[0].file_id)

    parent_id = parent_transform.file_id if parent_transform is not None else 0
    prefab_instance_id = 0
    if parent_transform is not None and parent_transform.stripped:
        prefab_instance_id = hierarchy.get_prefab_instance_id(parent_transform)

    allocator = FileIDAllocator(doc.file_ids(), rng)
    game_object_id, transform_id = allocator.allocate(2)
    doc.append_text(
        game_object_yaml(
            game_object_id,
            transform_id,
            name,
            parent_transform_id=parent_id,
            root_order=hierarchy.calculate_root_order(doc, parent_id),
            layer=_game_object_layer(doc, parent_transform),
        )
    )
    hierarchy.attach_to_father(doc, parent_id, transform_id)

    logger.info("Created GameObject %r (fileID %d)", name, game_object_id)
    return {
        "game_object_id": game_object_id,
        "transform_id": transform_id,
        "parent_transform_id": parent_id,
        "prefab_instance_id": prefab_instance_id,
    }


def delete_game_object(doc: UnityDocument, ref: str | int) -> dict[str, Any]:
    """Delete a GameObject, its components and all descendants.

    PrefabInstances nested anywhere in the subtree are removed with it.
    """
    game_object = hierarchy.resolve_game_object(doc, ref)
    _require_editable(game_object)
    subtree = hierarchy.collect_subtree(doc, game_object)
    hierarchy.include_nested_instances(doc, subtree.file_ids)

    if subtree.transform_id is not None:
        hierarchy.detach_from_father(doc, subtree.father_id, subtree.transform_id)
    deleted = hierarchy.remove_objects(doc, subtree.file_ids)

    logger.info("Deleted GameObject %d (%d blocks)", game_object.file_id, deleted)
    return {
        "game_object_id": game_object.file_id,
        "deleted_count": deleted,
        "deleted_game_objects": subtree.game_object_count,
    }


def _refuse_prefab_instance(doc: UnityDocument, ref: str | int) -> None:
    if isinstance(ref, int) or str(ref).strip().lstrip("-").isdigit():
        block = doc.get_by_file_id(int(ref))
        instances = [block] if block is not None and block.class_id == PREFAB_INSTANCE else []
    elif doc.find_game_objects_by_name(str(ref)):
        return
    else:
        instances = hierarchy.find_prefab_instance_by_name(doc, str(ref))
    if instances:
        raise InvalidInputError(
            f'"{ref}" is a PrefabInstance (fileID: {instances[0].file_id}). '
            "Duplicating prefab instances is not supported; unpack it first with unpack-prefab."
        )


def duplicate_game_object(
    doc: UnityDocument,
    ref: str | int,
    new_name: str | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Clone a GameObject and its whole subtree under the same father.

    References between cloned blocks are rewritten to the clones;
    references to anything outside the subtree are kept as they are.

    Returns:
        Dict with game_object_id, transform_id, total_duplicated,
        cloned_objects and warnings about now-ambiguous names
    """
    _refuse_prefab_instance(doc, ref)
    source = hierarchy.resolve_game_object(doc, ref)
    _require_editable(source)
    if new_name is not None:
        new_name = _require_name(new_name)

    subtree = hierarchy.collect_subtree(doc, source)
    hierarchy.include_nested_instances(doc, subtree.file_ids)
    root_order = hierarchy.calculate_root_order(doc, subtree.father_id)

    allocator = FileIDAllocator(doc.file_ids(), rng)
    id_map = allocator.build_map(subtree.file_ids)
    logger.debug("Duplicating %d blocks under GameObject %d", len(id_map), source.file_id)

    # Clone in document order so the copy reads like the original
    wanted = set(subtree.file_ids)
    clones = []
    for block in list(doc):
        if block.file_id in wanted:
            clone = block.clone()
            clone.remap(id_map)
            clones.append(clone)
    for clone in clones:
        doc.append_block(clone)

    root = doc.get_by_file_id(id_map[source.file_id])
    root.set_property("m_Name", new_name or f"{hierarchy.get_name(source) or 'GameObject'} (1)")

    transform_id = None
    if subtree.transform_id is not None:
        transform_id = id_map[subtree.transform_id]
        hierarchy.set_root_order(doc.get_by_file_id(transform_id), root_order)
        hierarchy.attach_to_father(doc, subtree.father_id, transform_id)

    cloned_objects = []
    warnings = []
    for old_id in subtree.game_object_ids:
        clone = doc.get_by_file_id(id_map[old_id])
        name = hierarchy.get_name(clone) or ""
        cloned_objects.append({"name": name, "file_id": clone.file_id})
        count = len(doc.find_game_objects_by_name(name)) if name else 0
        if count > 1:
            warnings.append(
                f'Duplicate name "{name}" now appears {count} times in scene. '
                f"Use fileID {clone.file_id} to target this clone."
            )
    for warning in warnings:
        logger.warning(warning)

    return {
        "game_object_id": root.file_id,
        "transform_id": transform_id,
        "total_duplicated": len(clones),
        "cloned_objects": cloned_objects,
        "warnings": warnings,
    }


def reparent_game_object(doc: UnityDocument, ref: str | int, new_parent: str | int) -> dict[str, Any]:
    """Move a GameObject under another Transform, or to the root with ``"root"``.

    Raises:
        StructuralViolationError: If the move would make the object its own
            ancestor
    """
    child = hierarchy.resolve_transform(doc, ref)
    _require_editable(child)

    if str(new_parent).strip().lower() == hierarchy.ROOT_KEYWORD:
        parent_id = 0
    else:
        parent_id = hierarchy.resolve_parent_transform(doc, new_parent).file_id

    if parent_id == child.file_id:
        raise StructuralViolationError("Cannot reparent a GameObject under itself")
    if parent_id and hierarchy.is_ancestor(doc, child.file_id, parent_id):
        raise StructuralViolationError("Cannot reparent: would create circular hierarchy")

    old_parent_id = hierarchy.get_father_id(child)
    hierarchy.detach_from_father(doc, old_parent_id, child.file_id)
    hierarchy.set_father(child, parent_id)
    if parent_id == 0:
        # The child already counts itself among the roots
        root_order = hierarchy.calculate_root_order(doc, 0) - 1
    else:
        root_order = hierarchy.calculate_root_order(doc, parent_id)
    hierarchy.set_root_order(child, root_order)
    hierarchy.attach_to_father(doc, parent_id, child.file_id)

    logger.info("Reparented Transform %d: %d -> %d", child.file_id, old_parent_id, parent_id)
    return {
        "child_transform_id": child.file_id,
        "old_parent_transform_id": old_parent_id,
        "new_parent_transform_id": parent_id,
    }


# Components


def _existing_component(doc: UnityDocument, game_object: UnityBlock, class_id: int, guid: str | None) -> UnityBlock | None:
    for component_id in hierarchy.get_component_ids(game_object):
        block = doc.get_by_file_id(component_id)
        if block is None or block.class_id != class_id:
            continue
        if guid is None:
            return block
        match = SCRIPT_REFERENCE_PATTERN.search(block.text)
        if match and match.group(1) == guid:
            return block
    return None


def add_component(
    doc: UnityDocument,
    ref: str | int,
    component: str,
    resolver: GUIDResolver | None = None,
    project_root: Path | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Add a built-in component or a script (MonoBehaviour) to a GameObject.

    Args:
        doc: Target document
        ref: GameObject fileID or name
        component: Built-in class name (case-insensitive), script name,
            ``.cs`` path or script GUID
        resolver: GUID lookup used for script names
        project_root: Base for relative ``.cs`` paths
        rng: Optional random source for reproducible fileIDs

    Returns:
        Dict with component_id, class_id, script_guid, script_path and
        warning (set when the GameObject already had such a component)
    """
    game_object = hierarchy.resolve_game_object(doc, ref)
    _require_editable(game_object)
    component = component.strip()
    if not component:
        raise InvalidInputError("Component name must not be empty")

    lowered = component.lower()
    for class_id in NON_COMPONENT_CLASS_IDS:
        if CLASS_IDS.get(class_id, "").lower() == lowered:
            if class_id == MONO_BEHAVIOUR:
                raise InvalidInputError(
                    "MonoBehaviour needs a script: pass a script name, .cs path or GUID"
                )
            raise StructuralViolationError(f'"{CLASS_IDS[class_id]}" cannot be added as a component')

    script_guid = script_path = None
    class_id = find_builtin_class_id(component)
    if class_id is None:
        class_id = MONO_BEHAVIOUR
        script_guid, script_path = resolve_script_guid(component, resolver, project_root)

    warning = None
    existing = _existing_component(doc, game_object, class_id, script_guid)
    if existing is not None:
        label = Path(script_path).stem if script_path else component
        warning = (
            f"GameObject already has a {label} component (fileID: {existing.file_id}). "
            "Adding duplicate."
        )
        logger.warning(warning)

    component_id = FileIDAllocator(doc.file_ids(), rng).next_id()
    if script_guid is not None:
        doc.append_text(mono_behaviour_yaml(component_id, game_object.file_id, script_guid))
    else:
        doc.append_text(component_yaml(class_id, component_id, game_object.file_id))
    hierarchy.add_component_entry(game_object, component_id)

    return {
        "game_object_id": game_object.file_id,
        "component_id": component_id,
        "class_id": class_id,
        "script_guid": script_guid,
        "script_path": script_path,
        "warning": warning,
    }


def remove_component(doc: UnityDocument, file_id: str | int) -> dict[str, Any]:
    """Remove one component and its entry in the owner's ``m_Component``."""
    file_id = _parse_file_id(file_id)
    block = _require_block(doc, file_id)
    _refuse_protected(block, "remove", "remove-component", "delete")
    _require_editable(block)

    owner_id = hierarchy.get_game_object_id(block) or 0
    owner = doc.get_by_file_id(owner_id)
    if owner is not None:
        hierarchy.remove_component_entry(owner, file_id)
    hierarchy.remove_objects(doc, [file_id])

    return {
        "removed_file_id": file_id,
        "removed_class_id": block.class_id,
        "game_object_id": owner_id,
    }


def copy_component(
    doc: UnityDocument,
    file_id: str | int,
    target: str | int,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Copy a component onto another GameObject with a fresh fileID."""
    file_id = _parse_file_id(file_id)
    source = _require_block(doc, file_id)
    _refuse_protected(source, "copy", "copy-component", "duplicate")
    _require_editable(source)
    target_object = hierarchy.resolve_game_object(doc, target)
    _require_editable(target_object)

    new_id = FileIDAllocator(doc.file_ids(), rng).next_id()
    clone = source.clone()
    clone.remap({file_id: new_id})
    clone.set_property("m_GameObject", f"{{fileID: {target_object.file_id}}}")
    hierarchy.detach_prefab_links(clone)
    doc.append_block(clone)
    hierarchy.add_component_entry(target_object, new_id)

    return {
        "source_file_id": file_id,
        "new_component_id": new_id,
        "target_game_object": target_object.file_id,
    }


# Property edits


def _normalize_game_object_property(prop: str) -> str:
    name = prop.strip()
    if not name.startswith("m_"):
        name = f"m_{name}"
    if name not in GAME_OBJECT_PROPERTIES:
        raise InvalidInputError(
            f'Unknown GameObject property "{name}". '
            f"Valid properties: {', '.join(GAME_OBJECT_PROPERTIES)}"
        )
    return name


def _validate_game_object_value(name: str, value: str) -> str:
    value = value.strip()

    def invalid(reason: str) -> InvalidInputError:
        return InvalidInputError(f'Invalid value "{value}" for {name}: {reason}')

    if "\n" in value or "\r" in value:
        raise invalid("value must be a single line")
    if name == "m_Name":
        if not value:
            raise invalid("name must be a non-empty single line")
    elif name == "m_IsActive":
        normalized = {"1": "1", "0": "0", "true": "1", "false": "0"}.get(value.lower())
        if normalized is None:
            raise invalid("expected 0, 1, true or false")
        return normalized
    elif name == "m_Layer":
        if not value.isdigit() or not 0 <= int(value) <= 31:
            raise invalid("layer must be an integer between 0 and 31")
    elif name == "m_StaticEditorFlags":
        if not value.isdigit():
            raise invalid("flags must be a non-negative integer")
    return value


def edit_game_object(doc: UnityDocument, ref: str | int, prop: str, value: str) -> dict[str, Any]:
    """Set a GameObject property (``m_`` prefix optional).

    Returns:
        Dict with game_object_id, property, old_value, value and changed
    """
    game_object = hierarchy.resolve_game_object(doc, ref)
    _require_editable(game_object)
    name = _normalize_game_object_property(prop)
    value = _validate_game_object_value(name, str(value))

    old_value = game_object.get_property(name)
    if old_value is None:
        game_object.replace_text(properties.append_property(game_object.text, name, value))
        changed = True
    else:
        changed = game_object.set_property(name, value)

    return {
        "game_object_id": game_object.file_id,
        "property": name,
        "old_value": old_value,
        "value": value,
        "changed": changed,
    }


def edit_batch(doc: UnityDocument, edits: list[dict[str, Any]]) -> dict[str, Any]:
    """Apply several GameObject property edits; any failure aborts them all.

    Each edit is ``{"target": <name or fileID>, "property": ..., "value": ...}``.
    """
    if not isinstance(edits, list) or not edits:
        raise InvalidInputError("Expected a non-empty JSON list of edits")
    results = []
    for i, edit in enumerate(edits):
        if not isinstance(edit, dict) or not {"target", "property", "value"} <= set(edit):
            raise InvalidInputError(
                f"Edit #{i} must be an object with target, property and value"
            )
        results.append(edit_game_object(doc, edit["target"], edit["property"], str(edit["value"])))
    return {"edits_applied": len(results), "results": results}


def format_float(value: float) -> str:
    """Format a float the way Unity writes it (integers without a fraction)."""
    if abs(value) < 1e-9:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return format(value, ".9g")


def parse_vector(text: str, label: str = "vector") -> tuple[float, float, float]:
    """Parse ``"x,y,z"``.

    Raises:
        InvalidInputError: If the text is not three finite numbers
    """
    parts = [part.strip() for part in str(text).split(",")]
    try:
        values = tuple(float(part) for part in parts)
    except ValueError:
        values = ()
    if len(values) != 3 or not all(math.isfinite(v) for v in values):
        raise InvalidInputError(f'Invalid {label} "{text}": expected three numbers as x,y,z')
    return values


def euler_to_quaternion(x: float, y: float, z: float) -> tuple[float, float, float, float]:
    """Convert Euler angles in degrees to a quaternion, Unity's ZXY order.

    Returns:
        Tuple of (x, y, z, w)
    """
    hx, hy, hz = (math.radians(angle) / 2 for angle in (x, y, z))
    sx, cx = math.sin(hx), math.cos(hx)
    sy, cy = math.sin(hy), math.cos(hy)
    sz, cz = math.sin(hz), math.cos(hz)
    return (
        sx * cy * cz + cx * sy * sz,
        cx * sy * cz - sx * cy * sz,
        cx * cy * sz - sx * sy * cz,
        cx * cy * cz + sx * sy * sz,
    )


def _format_struct(names: str, values: Iterable[float]) -> str:
    fields = ", ".join(f"{n}: {format_float(v)}" for n, v in zip(names, values))
    return f"{{{fields}}}"


def _set_struct(block: UnityBlock, name: str, value: str) -> None:
    pattern = re.compile(rf"^([ \t]*{re.escape(name)}:[ \t]*)\{{[^}}]*\}}", re.MULTILINE)
    text = block.text
    match = pattern.search(text)
    if match:
        block.replace_text(text[: match.end(1)] + value + text[match.end() :])
    else:
        block.replace_text(properties.append_property(text, name, value))


def edit_transform(
    doc: UnityDocument,
    transform_id: str | int,
    position: str | None = None,
    rotation: str | None = None,
    scale: str | None = None,
) -> dict[str, Any]:
    """Set local position, rotation (Euler degrees) and/or scale.

    Returns:
        Dict with transform_id and the written values of each edited field
    """
    if position is None and rotation is None and scale is None:
        raise InvalidInputError("Nothing to edit: pass position, rotation or scale")
    transform = hierarchy.require_transform(doc, _parse_file_id(transform_id, "Transform fileID"))
    _require_editable(transform)

    result: dict[str, Any] = {"transform_id": transform.file_id}
    if position is not None:
        value = _format_struct("xyz", parse_vector(position, "position"))
        _set_struct(transform, "m_LocalPosition", value)
        result["position"] = value
    if rotation is not None:
        euler = parse_vector(rotation, "rotation")
        value = _format_struct("xyzw", euler_to_quaternion(*euler))
        _set_struct(transform, "m_LocalRotation", value)
        _set_struct(transform, "m_LocalEulerAnglesHint", _format_struct("xyz", euler))
        result["rotation"] = value
    if scale is not None:
        value = _format_struct("xyz", parse_vector(scale, "scale"))
        _set_struct(transform, "m_LocalScale", value)
        result["scale"] = value
    return result


def edit_component(doc: UnityDocument, file_id: str | int, prop: str, value: str) -> dict[str, Any]:
    """Set one property of any block by fileID.

    The new value must have the shape of the current one; a local
    ``{fileID: N}`` must point at a block in this file.

    Returns:
        Dict with file_id, class_id, property, old_value, value and
        changed (False when the value was already set)
    """
    file_id = _parse_file_id(file_id)
    block = _require_block(doc, file_id)
    _require_editable(block)
    value = str(value).strip()
    if "\n" in value or "\r" in value:
        raise InvalidInputError(f"Value for {prop} must be a single line")

    reference = LOCAL_REFERENCE_VALUE.match(value)
    if reference and int(reference.group(1)) != 0 and int(reference.group(1)) not in doc:
        raise NotFoundError(f"Referenced fileID {reference.group(1)} does not exist in this file")

    path = properties.resolve_property_path(block.text, prop.strip())
    if path is None:
        raise NotFoundError(
            f'Property "{prop}" not found in component {file_id} (class {block.class_id})'
        )
    current = block.get_property(path)
    error = properties.validate_value_type(current, value)
    if error:
        raise InvalidInputError(f'Invalid value "{value}" for {path}: {error}')

    changed = current != value and block.set_property(path, value)
    return {
        "file_id": file_id,
        "class_id": block.class_id,
        "property": path,
        "old_value": current,
        "value": value,
        "changed": changed,
    }
