"""Prefab operations: variants, unpacking and instance removal.

Unpacking copies every object of the source prefab into the host
document with fresh fileIDs, replays the instance's overrides on the
copies and then points everything that referenced the instance's
stripped placeholders at the matching copies.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from unityedit import hierarchy, properties
from unityedit.asset_tracker import GUIDResolver, require_path
from unityedit.commit import commit_document
from unityedit.components import prefab_variant_yaml
from unityedit.errors import (
    AlreadyExistsError,
    InvalidInputError,
    UnityEditError,
    UnresolvedReferenceError,
)
from unityedit.file_ids import FileIDAllocator
from unityedit.meta_generator import (
    AssetType,
    get_guid_from_meta,
    meta_path_for,
    write_meta_file,
)
from unityedit.parser import GAME_OBJECT, PREFAB_INSTANCE, UnityBlock, UnityDocument
from unityedit.references import format_reference, local_reference_ids, parse_reference

logger = logging.getLogger(__name__)

PREFAB_EXTENSION = ".prefab"

SOURCE_PREFAB_PATTERN = re.compile(r"m_SourcePrefab:[^\n]*guid:\s*([a-f0-9]{32})")
NAME_MODIFICATION_PATTERN = re.compile(
    r"propertyPath:[ \t]*m_Name[ \t]*\n[ \t]*value:[ \t]*(.*?)[ \t]*$", re.MULTILINE
)

_TARGET_PATTERN = re.compile(r"target:[ \t]*(\{[^}]*\})")
_PROPERTY_PATH_PATTERN = re.compile(r"^[ \t]*propertyPath:[ \t]*(.*?)[ \t]*$", re.MULTILINE)
_VALUE_PATTERN = re.compile(r"^[ \t]*value:[ \t]?(.*?)[ \t]*$", re.MULTILINE)
_OBJECT_REFERENCE_PATTERN = re.compile(r"objectReference:[ \t]*(\{[^}]*\})")


@dataclass
class Modification:
    """One ``m_Modifications`` entry of a PrefabInstance."""

    target_file_id: int
    target_guid: str | None
    property_path: str
    value: str = ""
    object_reference: str | None = None


def parse_modifications(prefab_instance: UnityBlock) -> list[Modification]:
    """Parse the ``m_Modifications`` list of a PrefabInstance block."""
    modifications = []
    for item in properties.get_array_items(prefab_instance.text, "m_Modifications") or []:
        target = _TARGET_PATTERN.search(item)
        path = _PROPERTY_PATH_PATTERN.search(item)
        if not target or not path:
            continue
        reference = parse_reference(target.group(1))
        if reference is None:
            continue
        value = _VALUE_PATTERN.search(item)
        object_reference = _OBJECT_REFERENCE_PATTERN.search(item)
        modifications.append(
            Modification(
                target_file_id=reference.file_id,
                target_guid=reference.guid,
                property_path=path.group(1),
                value=value.group(1) if value else "",
                object_reference=object_reference.group(1) if object_reference else None,
            )
        )
    return modifications


def get_source_guid(prefab_instance: UnityBlock) -> str:
    """GUID of the prefab asset an instance was made from.

    Raises:
        InvalidInputError: If ``m_SourcePrefab`` carries no GUID
    """
    match = SOURCE_PREFAB_PATTERN.search(prefab_instance.text)
    if not match:
        raise InvalidInputError(f"PrefabInstance {prefab_instance.file_id} has no m_SourcePrefab GUID")
    return match.group(1)


def _reference_list(prefab_instance: UnityBlock, name: str, guid: str) -> list[int]:
    """Source fileIDs listed in ``m_RemovedComponents`` / ``m_RemovedGameObjects``."""
    ids = []
    for item in properties.get_array_elements(prefab_instance.text, name) or []:
        reference = parse_reference(item)
        if reference is not None and reference.guid in (None, guid) and not reference.is_null:
            ids.append(reference.file_id)
    return ids


def _root_name(doc: UnityDocument, root: UnityBlock) -> str | None:
    if root.stripped:
        instance = doc.get_by_file_id(hierarchy.get_prefab_instance_id(root))
        match = NAME_MODIFICATION_PATTERN.search(instance.text) if instance else None
        return match.group(1) if match else None
    owner = doc.get_by_file_id(hierarchy.get_game_object_id(root) or 0)
    return hierarchy.get_name(owner) if owner is not None else None


def _root_game_object_id(doc: UnityDocument, root: UnityBlock) -> int | None:
    if not root.stripped:
        return hierarchy.get_game_object_id(root)
    for block in hierarchy.get_stripped_blocks_for(doc, hierarchy.get_prefab_instance_id(root)):
        if block.class_id == GAME_OBJECT:
            return block.file_id
    return None


# create-variant


def create_variant(
    source_path: str | Path,
    output_path: str | Path,
    name: str | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Write a prefab variant of ``source_path`` to ``output_path``.

    The variant is a three-block document (stripped GameObject, stripped
    Transform, PrefabInstance) plus a ``.meta`` file with a new GUID.

    Args:
        source_path: Source ``.prefab`` file (must have a ``.meta``)
        output_path: Variant ``.prefab`` file to create
        name: Name of the variant root (default ``"<root name> Variant"``)
        rng: Optional random source for reproducible fileIDs

    Returns:
        Dict with source_path, source_guid, variant_guid, meta_path,
        prefab_instance_id and name

    Raises:
        InvalidInputError: If either path is not a ``.prefab``
        AlreadyExistsError: If the output or its ``.meta`` exists
        UnresolvedReferenceError: If the source has no GUID
    """
    source_path = Path(source_path)
    output_path = Path(output_path)
    for path in (source_path, output_path):
        if path.suffix.lower() != PREFAB_EXTENSION:
            raise InvalidInputError(f"Not a .prefab file: {path}")
    if output_path.exists():
        raise AlreadyExistsError(f"Output file already exists: {output_path}")
    if meta_path_for(output_path).exists():
        raise AlreadyExistsError(f"Meta file already exists: {meta_path_for(output_path)}")

    source = UnityDocument.load(source_path)
    source_guid = get_guid_from_meta(meta_path_for(source_path))
    if source_guid is None:
        raise UnresolvedReferenceError(
            f"No GUID found for {source_path} (missing or invalid {meta_path_for(source_path).name})",
            searched=[str(meta_path_for(source_path))],
        )

    root = hierarchy.find_prefab_root(source)
    root_game_object_id = _root_game_object_id(source, root) if root is not None else None
    if root is None or root_game_object_id is None:
        raise InvalidInputError(f"No root GameObject found in {source_path}")
    if name is not None and ("\n" in name or "\r" in name):
        raise InvalidInputError("Variant name must be a single line")
    name = name.strip() if name and name.strip() else None
    name = name or f"{_root_name(source, root) or source_path.stem} Variant"

    prefab_instance_id, game_object_id, transform_id = FileIDAllocator(rng=rng).allocate(3)
    variant = UnityDocument.parse(
        prefab_variant_yaml(
            prefab_instance_id,
            game_object_id,
            transform_id,
            root_game_object_id,
            root.file_id,
            source_guid,
            name,
            transform_class_id=root.class_id,
        )
    )
    commit_document(variant, output_path)
    try:
        meta_path = write_meta_file(output_path, AssetType.PREFAB)
    except UnityEditError:
        output_path.unlink(missing_ok=True)
        raise

    logger.info("Created variant %s of %s", output_path, source_path)
    return {
        "source_path": str(source_path),
        "source_guid": source_guid,
        "variant_guid": get_guid_from_meta(meta_path),
        "meta_path": str(meta_path),
        "prefab_instance_id": prefab_instance_id,
        "name": name,
    }


# unpack-prefab


@dataclass
class _UnpackPlan:
    source_guid: str
    id_map: dict[int, int]
    skipped: set[int] = field(default_factory=set)
    clones: dict[int, UnityBlock] = field(default_factory=dict)


def _collect_removed(source: UnityDocument, instance: UnityBlock, guid: str) -> set[int]:
    skipped = set(_reference_list(instance, "m_RemovedComponents", guid))
    for game_object_id in _reference_list(instance, "m_RemovedGameObjects", guid):
        block = source.get_by_file_id(game_object_id)
        if block is not None and block.class_id == GAME_OBJECT:
            skipped.update(hierarchy.collect_subtree(source, block).file_ids)
    return skipped


def _clone_source(source: UnityDocument, plan: _UnpackPlan) -> None:
    null_map = {file_id: 0 for file_id in plan.skipped}

    def references_skipped(item: str) -> bool:
        return any(file_id in plan.skipped for file_id in local_reference_ids(item))

    for block in source:
        if block.file_id in plan.skipped:
            continue
        clone = block.clone()
        text = clone.text
        for name in ("m_Component", "m_Children"):
            text = properties.remove_array_items(text, name, references_skipped)
        clone.replace_text(text)
        clone.remap({**null_map, **plan.id_map})
        if not clone.stripped and clone.class_id != PREFAB_INSTANCE:
            hierarchy.detach_prefab_links(clone)
        plan.clones[block.file_id] = clone


def _apply_modifications(instance: UnityBlock, plan: _UnpackPlan) -> tuple[int, int]:
    applied = skipped = 0
    for modification in parse_modifications(instance):
        clone = plan.clones.get(modification.target_file_id)
        if (
            clone is None
            or clone.stripped
            or modification.target_guid not in (None, plan.source_guid)
        ):
            skipped += 1
            continue

        object_reference = modification.object_reference
        reference = parse_reference(object_reference) if object_reference else None
        if (
            reference is not None
            and reference.guid == plan.source_guid
            and reference.file_id in plan.id_map
        ):
            object_reference = format_reference(plan.id_map[reference.file_id])

        updated = properties.apply_modification(
            clone.text, modification.property_path, modification.value, object_reference
        )
        if updated is None:
            logger.debug("No %s on cloned %d, override skipped", modification.property_path, clone.file_id)
            skipped += 1
            continue
        clone.replace_text(updated)
        applied += 1
    return applied, skipped


def _stripped_rewiring(stripped: list[UnityBlock], plan: _UnpackPlan) -> dict[int, int]:
    """Map each stripped placeholder to the clone of the object it stands for."""
    rewire = {}
    for block in stripped:
        reference = parse_reference(block.get_property("m_CorrespondingSourceObject") or "")
        if reference is None or reference.guid not in (None, plan.source_guid):
            continue
        if reference.file_id in plan.id_map:
            rewire[block.file_id] = plan.id_map[reference.file_id]
    return rewire


def unpack_prefab(
    doc: UnityDocument,
    identifier: str | int,
    resolver: GUIDResolver | None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Replace a PrefabInstance with plain copies of its source prefab's objects.

    Args:
        doc: Host document
        identifier: PrefabInstance fileID or instance name
        resolver: GUID lookup for the source prefab
        rng: Optional random source for reproducible fileIDs

    Returns:
        Dict with unpacked_count, root_game_object_id, root_transform_id,
        applied_modifications and skipped_modifications

    Raises:
        UnresolvedReferenceError: If the source prefab cannot be found or read
    """
    instance = hierarchy.resolve_prefab_instance(doc, identifier)
    source_guid = get_source_guid(instance)
    if resolver is None:
        raise UnresolvedReferenceError(
            f"Cannot resolve GUID {source_guid}: no Unity project found", guid=source_guid
        )
    source_path = require_path(resolver, source_guid)
    try:
        source = UnityDocument.load(source_path)
    except UnityEditError as e:
        raise UnresolvedReferenceError(
            f"Source prefab {source_path} for GUID {source_guid} could not be read: {e.message}",
            guid=source_guid,
        ) from e

    source_root = hierarchy.find_prefab_root(source)
    if source_root is None:
        raise InvalidInputError(f"No root Transform found in {source_path}")

    skipped_ids = _collect_removed(source, instance, source_guid)
    allocator = FileIDAllocator(doc.file_ids() | source.file_ids(), rng)
    plan = _UnpackPlan(
        source_guid=source_guid,
        id_map=allocator.build_map(b.file_id for b in source if b.file_id not in skipped_ids),
        skipped=skipped_ids,
    )
    _clone_source(source, plan)
    applied, skipped_modifications = _apply_modifications(instance, plan)

    # Attach the copied root where the instance was
    parent_id = hierarchy.get_transform_parent_id(instance)
    root_clone = plan.clones[source_root.file_id]
    if root_clone.stripped:
        nested = plan.clones.get(hierarchy.get_prefab_instance_id(source_root))
        if nested is not None:
            nested.set_property("m_TransformParent", format_reference(parent_id))
    else:
        hierarchy.set_father(root_clone, parent_id)

    # Host objects hanging off the placeholders move onto the copies
    stripped = hierarchy.get_stripped_blocks_for(doc, instance.file_id)
    rewire = _stripped_rewiring(stripped, plan)
    removed_ids = {instance.file_id} | {block.file_id for block in stripped}
    added_children = []
    added_components = []
    for block in doc:
        if block.file_id in removed_ids:
            continue
        if block.is_transform:
            father_id = hierarchy.get_father_id(block)
            if father_id in rewire:
                added_children.append((rewire[father_id], block.file_id))
        elif block.class_id != GAME_OBJECT:
            owner_id = hierarchy.get_game_object_id(block)
            if owner_id in rewire:
                added_components.append((rewire[owner_id], block.file_id))

    for block in stripped:
        if block.is_transform and block.file_id not in rewire:
            hierarchy.remove_child(doc, parent_id, block.file_id)
    doc.remove_blocks(removed_ids)
    for clone in plan.clones.values():
        doc.append_block(clone)
    for block in doc:
        block.remap(rewire)
    doc.clear_references(removed_ids - set(rewire))

    for transform_id, child_id in added_children:
        hierarchy.add_child(doc, transform_id, child_id)
    for game_object_id, component_id in added_components:
        owner = doc.get_by_file_id(game_object_id)
        if owner is not None and component_id not in hierarchy.get_component_ids(owner):
            hierarchy.add_component_entry(owner, component_id)

    root_transform_id = root_clone.file_id
    parent = doc.get_by_file_id(parent_id) if parent_id else None
    # A nested instance root hangs off m_TransformParent, never m_AddedGameObjects
    if parent is not None and not (parent.stripped and root_clone.stripped):
        hierarchy.attach_to_father(doc, parent_id, root_transform_id)

    root_game_object_id = _root_game_object_id(doc, root_clone)
    logger.info(
        "Unpacked PrefabInstance %d from %s (%d blocks, %d overrides applied, %d skipped)",
        instance.file_id,
        source_path,
        len(plan.clones),
        applied,
        skipped_modifications,
    )
    return {
        "prefab_instance_id": instance.file_id,
        "source_prefab": str(source_path),
        "unpacked_count": len(plan.clones),
        "root_game_object_id": root_game_object_id,
        "root_transform_id": root_transform_id,
        "applied_modifications": applied,
        "skipped_modifications": skipped_modifications,
    }


# delete-prefab-instance


def delete_prefab_instance(doc: UnityDocument, identifier: str | int) -> dict[str, Any]:
    """Remove a PrefabInstance with its placeholders and added objects."""
    instance = hierarchy.resolve_prefab_instance(doc, identifier)
    ids = hierarchy.collect_prefab_instance(doc, instance)
    hierarchy.include_nested_instances(doc, ids)

    root = hierarchy.stripped_root_transform(doc, instance.file_id)
    if root is not None:
        hierarchy.detach_from_father(doc, hierarchy.get_transform_parent_id(instance), root.file_id)
    deleted = hierarchy.remove_objects(doc, ids)

    logger.info("Deleted PrefabInstance %d (%d blocks)", instance.file_id, deleted)
    return {"prefab_instance_id": instance.file_id, "deleted_count": deleted}
