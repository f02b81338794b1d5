"""Tests for hierarchy helpers."""

from pathlib import Path

import pytest

from unityedit import hierarchy
from unityedit.errors import InvalidInputError, NotFoundError
from unityedit.parser import UnityDocument

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def prefab_doc():
    return UnityDocument.load(FIXTURES_DIR / "prefab_scene.unity")


class TestLinks:
    """Tests for reading Transform and GameObject links."""

    def test_father_and_children(self, basic_doc):
        player = basic_doc.get_by_file_id(101)
        weapon = basic_doc.get_by_file_id(201)

        assert hierarchy.get_children_ids(player) == [201]
        assert hierarchy.get_father_id(weapon) == 101
        assert hierarchy.get_father_id(player) == 0
        assert hierarchy.get_children_ids(weapon) == []

    def test_component_ids(self, basic_doc):
        assert hierarchy.get_component_ids(basic_doc.get_by_file_id(100)) == [101, 102, 103]

    def test_inline_children(self):
        doc = UnityDocument.parse(
            "--- !u!4 &1\nTransform:\n  m_Children: [{fileID: 2}, {fileID: 3}]\n  m_Father: {fileID: 0}\n"
        )

        assert hierarchy.get_children_ids(doc.get_by_file_id(1)) == [2, 3]


class TestResolution:
    """Tests for resolving GameObjects and Transforms."""

    def test_resolve_by_name(self, basic_doc):
        assert hierarchy.resolve_game_object(basic_doc, "Weapon").file_id == 200

    def test_resolve_by_file_id(self, basic_doc):
        assert hierarchy.resolve_game_object(basic_doc, "300").file_id == 300

    def test_resolve_missing(self, basic_doc):
        with pytest.raises(NotFoundError):
            hierarchy.resolve_game_object(basic_doc, "Nobody")
        with pytest.raises(NotFoundError):
            hierarchy.resolve_game_object(basic_doc, 101)

    def test_ambiguous_name(self, basic_doc):
        basic_doc.get_by_file_id(300).set_property("m_Name", "Weapon")

        with pytest.raises(InvalidInputError, match="Multiple GameObjects"):
            hierarchy.resolve_game_object(basic_doc, "Weapon")

    def test_resolve_transform_forms(self, basic_doc):
        assert hierarchy.resolve_transform(basic_doc, 201).file_id == 201
        assert hierarchy.resolve_transform(basic_doc, 200).file_id == 201
        assert hierarchy.resolve_transform(basic_doc, "Weapon").file_id == 201

    def test_resolve_parent_through_prefab_instance(self, prefab_doc):
        parent = hierarchy.resolve_parent_transform(prefab_doc, "Boss")

        assert parent.file_id == 9001
        assert parent.stripped


class TestChildLinks:
    """Tests for keeping father and children in sync."""

    def test_add_and_remove_child(self, basic_doc):
        hierarchy.add_child(basic_doc, 301, 201)

        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(301)) == [201]

        assert hierarchy.remove_child(basic_doc, 301, 201)
        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(301)) == []
        assert not hierarchy.remove_child(basic_doc, 301, 201)

    def test_add_child_is_idempotent(self, basic_doc):
        hierarchy.add_child(basic_doc, 101, 201)

        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(101)) == [201]

    def test_add_child_expands_inline_list(self):
        doc = UnityDocument.parse(
            "--- !u!4 &1\nTransform:\n  m_Children: [{fileID: 2}]\n  m_Father: {fileID: 0}\n"
        )
        hierarchy.add_child(doc, 1, 3)

        assert "  m_Children:\n  - {fileID: 2}\n  - {fileID: 3}\n" in doc.serialize()

    def test_is_ancestor(self, basic_doc):
        assert hierarchy.is_ancestor(basic_doc, 101, 201)
        assert not hierarchy.is_ancestor(basic_doc, 201, 101)

    def test_calculate_root_order(self, basic_doc):
        assert hierarchy.calculate_root_order(basic_doc, 0) == 2
        assert hierarchy.calculate_root_order(basic_doc, 101) == 1

    def test_set_root_order_inserts_after_father(self):
        doc = UnityDocument.parse("--- !u!4 &1\nTransform:\n  m_Father: {fileID: 0}\n  m_LocalEulerAnglesHint: {x: 0, y: 0, z: 0}\n")
        hierarchy.set_root_order(doc.get_by_file_id(1), 3)

        assert "  m_Father: {fileID: 0}\n  m_RootOrder: 3\n" in doc.serialize()

    def test_attach_to_stripped_father_registers_added_object(self, prefab_doc):
        hierarchy.attach_to_father(prefab_doc, 9001, 12345)

        instance = prefab_doc.get_by_file_id(9000)
        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == [21, 12345]
        assert hierarchy.get_children_ids(prefab_doc.get_by_file_id(11)) == [9001]

        hierarchy.detach_from_father(prefab_doc, 9001, 12345)
        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == [21]


class TestSubtree:
    """Tests for subtree collection."""

    def test_collect_subtree(self, basic_doc):
        subtree = hierarchy.collect_subtree(basic_doc, basic_doc.get_by_file_id(100))

        assert subtree.file_ids == [100, 101, 102, 103, 201, 200, 202]
        assert subtree.game_object_ids == [100, 200]
        assert subtree.transform_id == 101
        assert subtree.father_id == 0

    def test_collect_leaf(self, basic_doc):
        subtree = hierarchy.collect_subtree(basic_doc, basic_doc.get_by_file_id(200))

        assert sorted(subtree.file_ids) == [200, 201, 202]
        assert subtree.father_id == 101

    def test_collect_survives_cycles(self, basic_doc):
        weapon = basic_doc.get_by_file_id(201)
        weapon.replace_text(weapon.text.replace("m_Children: []", "m_Children:\n  - {fileID: 101}"))

        subtree = hierarchy.collect_subtree(basic_doc, basic_doc.get_by_file_id(100))
        assert len(subtree.file_ids) == len(set(subtree.file_ids))


class TestPrefabInstances:
    """Tests for PrefabInstance helpers."""

    def test_resolve_prefab_instance(self, prefab_doc):
        assert hierarchy.resolve_prefab_instance(prefab_doc, "Boss").file_id == 9000
        assert hierarchy.resolve_prefab_instance(prefab_doc, 9000).file_id == 9000
        with pytest.raises(NotFoundError):
            hierarchy.resolve_prefab_instance(prefab_doc, "Level")

    def test_transform_parent(self, prefab_doc):
        assert hierarchy.get_transform_parent_id(prefab_doc.get_by_file_id(9000)) == 11

    def test_stripped_blocks(self, prefab_doc):
        blocks = hierarchy.get_stripped_blocks_for(prefab_doc, 9000)

        assert sorted(b.file_id for b in blocks) == [9001, 9002]
        assert hierarchy.stripped_root_transform(prefab_doc, 9000).file_id == 9001

    def test_added_objects(self, prefab_doc):
        instance = prefab_doc.get_by_file_id(9000)

        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == [21]
        assert hierarchy.get_added_object_ids(instance, "m_AddedComponents") == [9100]

    def test_collect_prefab_instance(self, prefab_doc):
        ids = hierarchy.collect_prefab_instance(prefab_doc, prefab_doc.get_by_file_id(9000))

        assert sorted(ids) == [20, 21, 9000, 9001, 9002, 9100]

    def test_remove_objects_nulls_references(self, prefab_doc):
        removed = hierarchy.remove_objects(prefab_doc, [20, 21])

        assert removed == 2
        instance = prefab_doc.get_by_file_id(9000)
        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == []
        assert "m_AddedGameObjects: []" in instance.text

    def test_detach_prefab_links(self, prefab_doc):
        block = prefab_doc.get_by_file_id(21).clone()
        block.replace_text(block.text.replace("m_PrefabInstance: {fileID: 0}", "m_PrefabInstance: {fileID: 9000}"))
        hierarchy.detach_prefab_links(block)

        assert block.get_property("m_PrefabInstance") == "{fileID: 0}"
