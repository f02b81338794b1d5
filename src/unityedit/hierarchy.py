"""Transform hierarchy helpers for Unity scenes and prefabs.

Unity stores the scene graph only through fileID links:
- GameObject.m_Component lists its components, the first being its Transform
- Transform.m_GameObject points back at the owner
- Transform.m_Father / m_Children hold the parent/child links (0 = root)

Every mutation here keeps both sides of the father/children link in sync.
Stripped blocks stand in for objects that live inside a nested prefab.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from unityedit import properties
from unityedit.errors import InvalidInputError, NotFoundError
from unityedit.parser import (
    GAME_OBJECT,
    PREFAB_INSTANCE,
    TRANSFORM_CLASS_IDS,
    UnityBlock,
    UnityDocument,
)
from unityedit.references import local_reference_ids, parse_reference

logger = logging.getLogger(__name__)

COMPONENT_ENTRY_PATTERN = re.compile(r"component:\s*\{fileID:\s*(-?\d+)\}")
ROOT_KEYWORD = "root"

PREFAB_LINK_PROPERTIES = ("m_CorrespondingSourceObject", "m_PrefabInstance", "m_PrefabAsset")
ADDED_OBJECT_LISTS = ("m_AddedGameObjects", "m_AddedComponents")
ADDED_OBJECT_PATTERN = re.compile(r"addedObject:\s*\{fileID:\s*(-?\d+)\}")


@dataclass
class Subtree:
    """Closed set of blocks belonging to a GameObject and its descendants."""

    game_object_id: int
    transform_id: int | None
    father_id: int
    file_ids: list[int] = field(default_factory=list)
    game_object_ids: list[int] = field(default_factory=list)

    @property
    def game_object_count(self) -> int:
        return len(self.game_object_ids)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self.file_ids

    def __len__(self) -> int:
        return len(self.file_ids)


def _reference_id(block: UnityBlock, name: str) -> int | None:
    value = block.get_property(name)
    if value is None:
        return None
    ref = parse_reference(value)
    return ref.file_id if ref else None


def get_game_object_id(block: UnityBlock) -> int | None:
    """``m_GameObject`` owner of a component or Transform."""
    return _reference_id(block, "m_GameObject")


def get_father_id(transform: UnityBlock) -> int:
    """``m_Father`` of a Transform (0 for scene roots)."""
    return _reference_id(transform, "m_Father") or 0


def get_children_ids(transform: UnityBlock) -> list[int]:
    """``m_Children`` of a Transform, in order."""
    text = transform.text
    inline = re.search(r"^\s*m_Children:\s*\[(.*)\]\s*$", text, re.MULTILINE)
    if inline:
        return [int(m) for m in re.findall(r"fileID:\s*(-?\d+)", inline.group(1))]
    elements = properties.get_array_elements(text, "m_Children") or []
    ids = []
    for element in elements:
        ref = parse_reference(element)
        if ref is not None:
            ids.append(ref.file_id)
    return ids


def get_component_ids(game_object: UnityBlock) -> list[int]:
    """Component fileIDs listed in a GameObject's ``m_Component``."""
    return [int(m) for m in COMPONENT_ENTRY_PATTERN.findall(game_object.text)]


def get_name(block: UnityBlock) -> str | None:
    return block.get_property("m_Name")


# Resolution


def _parse_file_id(ref: str | int) -> int | None:
    if isinstance(ref, int):
        return ref
    ref = ref.strip()
    if re.fullmatch(r"-?\d+", ref):
        return int(ref)
    return None


def resolve_game_object(doc: UnityDocument, ref: str | int) -> UnityBlock:
    """Resolve a GameObject by numeric fileID or exact name.

    Raises:
        NotFoundError: If nothing matches
        InvalidInputError: If a name matches more than one GameObject
    """
    file_id = _parse_file_id(ref)
    if file_id is not None:
        block = doc.get_by_file_id(file_id)
        if block is None or block.class_id != GAME_OBJECT:
            raise NotFoundError(f"GameObject with fileID {file_id} not found")
        return block

    matches = doc.find_game_objects_by_name(str(ref))
    if not matches:
        raise NotFoundError(f'GameObject "{ref}" not found')
    if len(matches) > 1:
        ids = ", ".join(str(block.file_id) for block in matches)
        raise InvalidInputError(
            f'Multiple GameObjects named "{ref}" found (fileIDs: {ids}). Use a fileID instead.'
        )
    return matches[0]


def require_transform(doc: UnityDocument, file_id: int) -> UnityBlock:
    block = doc.get_by_file_id(file_id)
    if block is None or block.class_id not in TRANSFORM_CLASS_IDS:
        raise NotFoundError(f"Transform with fileID {file_id} not found")
    return block


def transform_of(doc: UnityDocument, game_object: UnityBlock) -> UnityBlock:
    """Return the Transform/RectTransform owned by ``game_object``."""
    for component_id in get_component_ids(game_object):
        block = doc.get_by_file_id(component_id)
        if block is not None and block.class_id in TRANSFORM_CLASS_IDS:
            return block
    raise NotFoundError(f"Transform for GameObject {game_object.file_id} not found")


def resolve_transform(doc: UnityDocument, ref: str | int) -> UnityBlock:
    """Resolve a Transform by its fileID, its GameObject's fileID, or a name."""
    file_id = _parse_file_id(ref)
    if file_id is not None:
        block = doc.get_by_file_id(file_id)
        if block is not None and block.class_id in TRANSFORM_CLASS_IDS:
            return block
        if block is not None and block.class_id == GAME_OBJECT:
            return transform_of(doc, block)
        raise NotFoundError(f"Transform with fileID {file_id} not found")
    return transform_of(doc, resolve_game_object(doc, ref))


# Link maintenance


def set_father(transform: UnityBlock, father_id: int) -> None:
    transform.set_property("m_Father", f"{{fileID: {father_id}}}")


def _expand_inline_children(transform: UnityBlock) -> None:
    match = re.search(r"^([ \t]*)m_Children:[ \t]*\[(.+)\][ \t]*$", transform.text, re.MULTILINE)
    if not match or not match.group(2).strip():
        return
    indent = match.group(1)
    ids = re.findall(r"fileID:\s*(-?\d+)", match.group(2))
    lines = [f"{indent}m_Children:"] + [f"{indent}- {{fileID: {i}}}" for i in ids]
    text = transform.text
    transform.replace_text(text[: match.start()] + "\n".join(lines) + text[match.end() :])


def add_child(doc: UnityDocument, parent_id: int, child_id: int) -> None:
    """Append ``child_id`` to the parent Transform's ``m_Children``."""
    if parent_id == 0:
        return
    parent = require_transform(doc, parent_id)
    if child_id in get_children_ids(parent):
        return
    _expand_inline_children(parent)
    text = parent.text
    if properties.get_array_elements(text, "m_Children") is None:
        text = properties.append_property(text, "m_Children", "[]")
    parent.replace_text(
        properties.insert_array_element(text, "m_Children", -1, f"{{fileID: {child_id}}}")
    )


def remove_child(doc: UnityDocument, parent_id: int, child_id: int) -> bool:
    """Drop ``child_id`` from the parent's ``m_Children``; returns True if found."""
    if parent_id == 0:
        return False
    parent = doc.get_by_file_id(parent_id)
    if parent is None:
        return False
    children = get_children_ids(parent)
    if child_id not in children:
        return False
    _expand_inline_children(parent)
    parent.replace_text(
        properties.remove_array_element(parent.text, "m_Children", children.index(child_id))
    )
    return True


def root_transforms(doc: UnityDocument) -> list[UnityBlock]:
    """Non-stripped Transforms with no father."""
    return [
        block
        for block in doc
        if block.class_id in TRANSFORM_CLASS_IDS
        and not block.stripped
        and get_father_id(block) == 0
    ]


def calculate_root_order(doc: UnityDocument, father_id: int) -> int:
    """Sibling index for a new child of ``father_id`` (0 for scene root)."""
    if father_id == 0:
        return len(root_transforms(doc))
    father = doc.get_by_file_id(father_id)
    return len(get_children_ids(father)) if father is not None else 0


def set_root_order(transform: UnityBlock, order: int) -> None:
    """Write ``m_RootOrder``, inserting it after ``m_Father`` if absent."""
    if transform.get_property("m_RootOrder") is not None:
        transform.set_property("m_RootOrder", str(order))
        return
    text = transform.text
    match = re.search(r"^([ \t]*)m_Father:.*$", text, re.MULTILINE)
    if match:
        insert = f"\n{match.group(1)}m_RootOrder: {order}"
        transform.replace_text(text[: match.end()] + insert + text[match.end() :])
    else:
        transform.replace_text(properties.append_property(text, "m_RootOrder", str(order)))


def is_ancestor(doc: UnityDocument, ancestor_id: int, transform_id: int) -> bool:
    """True if ``ancestor_id`` is on the father chain of ``transform_id``."""
    visited: set[int] = set()
    current = transform_id
    while current and current not in visited:
        visited.add(current)
        block = doc.get_by_file_id(current)
        if block is None:
            return False
        father = get_father_id(block)
        if father == ancestor_id:
            return True
        current = father
    return False


# Subtree collection


def collect_hierarchy(
    doc: UnityDocument,
    transform_id: int,
    result: list[int],
    game_objects: list[int] | None = None,
    visited: set[int] | None = None,
) -> None:
    """Collect every descendant of ``transform_id`` (exclusive) into ``result``.

    For each child Transform this adds the Transform, its GameObject and
    that GameObject's components, then recurses into the child.
    """
    visited = visited if visited is not None else set()
    if transform_id in visited:
        return
    visited.add(transform_id)
    transform = doc.get_by_file_id(transform_id)
    if transform is None:
        return
    for child_id in get_children_ids(transform):
        if child_id in visited:
            continue
        child = doc.get_by_file_id(child_id)
        if child is None:
            continue
        _add_unique(result, child_id)
        go_id = get_game_object_id(child)
        go = doc.get_by_file_id(go_id) if go_id else None
        if go is not None:
            _add_unique(result, go.file_id)
            if game_objects is not None:
                _add_unique(game_objects, go.file_id)
            for component_id in get_component_ids(go):
                if component_id in doc:
                    _add_unique(result, component_id)
        collect_hierarchy(doc, child_id, result, game_objects, visited)


def _add_unique(items: list[int], file_id: int) -> None:
    if file_id not in items:
        items.append(file_id)


def collect_subtree(doc: UnityDocument, game_object: UnityBlock) -> Subtree:
    """Collect a GameObject, its components and all descendants.

    Returns:
        Subtree whose ``file_ids`` are in collection order, with the
        Transform's ``m_Father`` recorded for detaching/reattaching
    """
    ids: list[int] = [game_object.file_id]
    game_objects: list[int] = [game_object.file_id]
    for component_id in get_component_ids(game_object):
        if component_id in doc:
            _add_unique(ids, component_id)

    transform_id = None
    father_id = 0
    try:
        transform = transform_of(doc, game_object)
    except NotFoundError:
        transform = None
    if transform is not None:
        transform_id = transform.file_id
        father_id = get_father_id(transform)
        collect_hierarchy(doc, transform_id, ids, game_objects)

    logger.debug("Collected %d blocks under GameObject %d", len(ids), game_object.file_id)
    return Subtree(
        game_object_id=game_object.file_id,
        transform_id=transform_id,
        father_id=father_id,
        file_ids=ids,
        game_object_ids=game_objects,
    )


# Prefab helpers


def find_prefab_root(doc: UnityDocument) -> UnityBlock | None:
    """Root Transform of a prefab, falling back to a stripped root in variants."""
    for block in doc:
        if block.class_id in TRANSFORM_CLASS_IDS and not block.stripped:
            if get_father_id(block) == 0:
                return block
    for block in doc:
        if block.class_id in TRANSFORM_CLASS_IDS and block.stripped:
            return block
    return None


def get_prefab_instance_id(block: UnityBlock) -> int:
    """``m_PrefabInstance`` of a (typically stripped) block, 0 if unset."""
    return _reference_id(block, "m_PrefabInstance") or 0


def get_stripped_blocks_for(doc: UnityDocument, prefab_instance_id: int) -> list[UnityBlock]:
    """All stripped blocks owned by a PrefabInstance."""
    return [
        block
        for block in doc
        if block.stripped and get_prefab_instance_id(block) == prefab_instance_id
    ]


def find_prefab_instance_by_name(doc: UnityDocument, name: str) -> list[UnityBlock]:
    """PrefabInstances whose ``m_Name`` modification value equals ``name``."""
    pattern = re.compile(
        rf"propertyPath:[ \t]*m_Name[ \t]*\n[ \t]*value:[ \t]*{re.escape(name)}[ \t]*$", re.MULTILINE
    )
    return [block for block in doc.get_by_class_id(PREFAB_INSTANCE) if pattern.search(block.text)]


def resolve_prefab_instance(doc: UnityDocument, ref: str | int) -> UnityBlock:
    """Resolve a PrefabInstance by fileID or by its ``m_Name`` modification.

    Raises:
        NotFoundError: If nothing matches
        InvalidInputError: If a name matches more than one instance
    """
    file_id = _parse_file_id(ref)
    if file_id is not None:
        block = doc.get_by_file_id(file_id)
        if block is None or block.class_id != PREFAB_INSTANCE:
            raise NotFoundError(f"PrefabInstance with fileID {file_id} not found")
        return block
    matches = find_prefab_instance_by_name(doc, str(ref))
    if not matches:
        raise NotFoundError(f'PrefabInstance "{ref}" not found')
    if len(matches) > 1:
        ids = ", ".join(str(block.file_id) for block in matches)
        raise InvalidInputError(
            f'Multiple PrefabInstances named "{ref}" found (fileIDs: {ids}). Use a fileID instead.'
        )
    return matches[0]


def get_transform_parent_id(prefab_instance: UnityBlock) -> int:
    """``m_Modification.m_TransformParent`` of a PrefabInstance (0 at scene root)."""
    return _reference_id(prefab_instance, "m_TransformParent") or 0


def stripped_root_transform(doc: UnityDocument, prefab_instance_id: int) -> UnityBlock | None:
    """The stripped Transform standing in for an instance's root object."""
    for block in get_stripped_blocks_for(doc, prefab_instance_id):
        if block.class_id in TRANSFORM_CLASS_IDS:
            return block
    return None


def resolve_parent_transform(doc: UnityDocument, ref: str | int) -> UnityBlock:
    """Resolve a parent for new or moved objects.

    Accepts a Transform fileID, a GameObject fileID or name, or the name
    of a PrefabInstance (whose stripped root Transform is returned).
    """
    try:
        return resolve_transform(doc, ref)
    except NotFoundError:
        if _parse_file_id(ref) is not None:
            raise
        instances = find_prefab_instance_by_name(doc, str(ref))
        if not instances:
            raise
    root = stripped_root_transform(doc, instances[0].file_id)
    if root is None:
        raise NotFoundError(f"PrefabInstance {instances[0].file_id} has no stripped root Transform")
    return root


def detach_prefab_links(block: UnityBlock) -> None:
    """Null the prefab linkage fields of a non-stripped block."""
    for name in PREFAB_LINK_PROPERTIES:
        if block.get_property(name) is not None:
            block.set_property(name, properties.NULL_REFERENCE)


# PrefabInstance added objects


def _list_indent(text: str, name: str) -> str | None:
    match = re.search(rf"^([ \t]*){re.escape(name)}:", text, re.MULTILINE)
    return match.group(1) if match else None


def _ensure_modification_list(prefab_instance: UnityBlock, name: str) -> str:
    """Make sure ``name`` exists under ``m_Modification``; returns its indent."""
    text = prefab_instance.text
    indent = _list_indent(text, name)
    if indent is not None:
        return indent
    indent = _list_indent(text, "m_TransformParent") or "    "
    line = f"{indent}{name}: []"
    source = re.search(r"^[ \t]*m_SourcePrefab:", text, re.MULTILINE)
    if source:
        text = text[: source.start()] + line + "\n" + text[source.start() :]
    else:
        text = properties.append_property(text, name, "[]", indent=indent)
    prefab_instance.replace_text(text)
    return indent


def register_added_game_object(
    prefab_instance: UnityBlock, target_source: str, transform_id: int
) -> None:
    """Record a Transform added under an object of the instance's prefab.

    Args:
        prefab_instance: The owning PrefabInstance block
        target_source: ``m_CorrespondingSourceObject`` of the stripped parent
        transform_id: Transform of the added GameObject
    """
    indent = _ensure_modification_list(prefab_instance, "m_AddedGameObjects")
    cont = indent + "  "
    entry = (
        f"targetCorrespondingSourceObject: {target_source}\n"
        f"{cont}insertIndex: -1\n"
        f"{cont}addedObject: {{fileID: {transform_id}}}"
    )
    prefab_instance.replace_text(
        properties.insert_array_element(prefab_instance.text, "m_AddedGameObjects", -1, entry)
    )


def get_added_object_ids(prefab_instance: UnityBlock, name: str) -> list[int]:
    """Local fileIDs listed in ``m_AddedGameObjects`` or ``m_AddedComponents``.

    Both the ``addedObject: {fileID: N}`` entry form and the older bare
    ``- {fileID: N}`` form are understood.
    """
    ids: list[int] = []
    for item in properties.get_array_items(prefab_instance.text, name) or []:
        match = ADDED_OBJECT_PATTERN.search(item)
        if match:
            ids.append(int(match.group(1)))
        else:
            ids.extend(local_reference_ids(item))
    return ids


def remove_added_objects(doc: UnityDocument, file_ids: set[int]) -> None:
    """Drop added-object entries that reference any of ``file_ids``."""

    def references_removed(item: str) -> bool:
        return any(file_id in file_ids for file_id in local_reference_ids(item))

    for prefab_instance in doc.get_prefab_instances():
        text = prefab_instance.text
        for name in ADDED_OBJECT_LISTS:
            text = properties.remove_array_items(text, name, references_removed)
        prefab_instance.replace_text(text)


def attach_to_father(doc: UnityDocument, father_id: int, transform_id: int) -> None:
    """Link ``transform_id`` under ``father_id``.

    A stripped father lives in another prefab, so the child is registered
    in the owning PrefabInstance's ``m_AddedGameObjects`` instead.
    """
    if father_id == 0:
        return
    father = require_transform(doc, father_id)
    if not father.stripped:
        add_child(doc, father_id, transform_id)
        return
    prefab_instance = doc.get_by_file_id(get_prefab_instance_id(father))
    if prefab_instance is None:
        raise NotFoundError(f"PrefabInstance owning stripped Transform {father_id} not found")
    if transform_id in get_added_object_ids(prefab_instance, "m_AddedGameObjects"):
        return
    target = father.get_property("m_CorrespondingSourceObject") or properties.NULL_REFERENCE
    register_added_game_object(prefab_instance, target, transform_id)


def detach_from_father(doc: UnityDocument, father_id: int, transform_id: int) -> None:
    """Inverse of :func:`attach_to_father`."""
    father = doc.get_by_file_id(father_id) if father_id else None
    if father is None:
        return
    if father.stripped:
        remove_added_objects(doc, {transform_id})
    else:
        remove_child(doc, father_id, transform_id)


def collect_prefab_instance(doc: UnityDocument, prefab_instance: UnityBlock) -> list[int]:
    """A PrefabInstance, its stripped blocks and everything added to it."""
    ids = [prefab_instance.file_id]
    for block in get_stripped_blocks_for(doc, prefab_instance.file_id):
        _add_unique(ids, block.file_id)

    for added_id in get_added_object_ids(prefab_instance, "m_AddedGameObjects"):
        block = doc.get_by_file_id(added_id)
        if block is not None and block.is_transform:
            block = doc.get_by_file_id(get_game_object_id(block) or 0)
        if block is None or block.class_id != GAME_OBJECT:
            continue
        for file_id in collect_subtree(doc, block).file_ids:
            _add_unique(ids, file_id)

    for component_id in get_added_object_ids(prefab_instance, "m_AddedComponents"):
        if component_id in doc:
            _add_unique(ids, component_id)
    return ids


def include_nested_instances(doc: UnityDocument, ids: list[int]) -> None:
    """Extend ``ids`` with PrefabInstances parented inside the collected set."""
    changed = True
    while changed:
        changed = False
        for prefab_instance in doc.get_prefab_instances():
            if prefab_instance.file_id in ids:
                continue
            if get_transform_parent_id(prefab_instance) in ids:
                for file_id in collect_prefab_instance(doc, prefab_instance):
                    _add_unique(ids, file_id)
                changed = True


# Component lists and removal


def add_component_entry(game_object: UnityBlock, component_id: int) -> None:
    """Append ``component_id`` to a GameObject's ``m_Component`` list."""
    text = game_object.text
    if properties.get_array_elements(text, "m_Component") is None:
        text = properties.append_property(text, "m_Component", "[]")
    game_object.replace_text(
        properties.insert_array_element(
            text, "m_Component", -1, f"component: {{fileID: {component_id}}}"
        )
    )


def remove_component_entry(game_object: UnityBlock, component_id: int) -> bool:
    component_ids = get_component_ids(game_object)
    if component_id not in component_ids:
        return False
    game_object.replace_text(
        properties.remove_array_element(
            game_object.text, "m_Component", component_ids.index(component_id)
        )
    )
    return True


def remove_objects(doc: UnityDocument, file_ids: list[int] | set[int]) -> int:
    """Remove blocks together with added-object entries and references to them.

    Returns:
        Number of blocks removed
    """
    targets = set(file_ids)
    remove_added_objects(doc, targets)
    removed = doc.remove_blocks(targets)
    doc.clear_references(targets)
    logger.debug("Removed %d blocks", removed)
    return removed
