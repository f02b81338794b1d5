"""Tests for hierarchy, component and property operations."""

from pathlib import Path

import pytest

from unityedit import editor, hierarchy
from unityedit.asset_tracker import GUIDIndex
from unityedit.errors import InvalidInputError, NotFoundError, StructuralViolationError
from unityedit.file_ids import FILE_ID_MAX, FILE_ID_MIN
from unityedit.parser import UnityDocument

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def prefab_doc():
    return UnityDocument.load(FIXTURES_DIR / "prefab_scene.unity")


def _shape(doc, transform_id):
    """Component classes and named children of a Transform's subtree."""
    transform = doc.get_by_file_id(transform_id)
    game_object = doc.get_by_file_id(hierarchy.get_game_object_id(transform))
    classes = [doc.get_by_file_id(i).class_id for i in hierarchy.get_component_ids(game_object)]
    children = []
    for child_id in hierarchy.get_children_ids(transform):
        child = doc.get_by_file_id(hierarchy.get_game_object_id(doc.get_by_file_id(child_id)))
        children.append((hierarchy.get_name(child), _shape(doc, child_id)))
    return classes, children


class TestCreateGameObject:
    """Tests for create_game_object."""

    def test_create_at_root(self, basic_doc, rng):
        result = editor.create_game_object(basic_doc, "Enemy", rng=rng)

        assert FILE_ID_MIN <= result["game_object_id"] <= FILE_ID_MAX
        assert result["parent_transform_id"] == 0
        assert result["prefab_instance_id"] == 0

        game_object = basic_doc.get_by_file_id(result["game_object_id"])
        transform = basic_doc.get_by_file_id(result["transform_id"])
        assert hierarchy.get_name(game_object) == "Enemy"
        assert hierarchy.get_component_ids(game_object) == [result["transform_id"]]
        assert hierarchy.get_game_object_id(transform) == result["game_object_id"]
        assert hierarchy.get_father_id(transform) == 0
        assert transform.get_property("m_RootOrder") == "2"

    def test_create_under_parent(self, basic_doc, rng):
        result = editor.create_game_object(basic_doc, "Shield", parent="Player", rng=rng)

        assert result["parent_transform_id"] == 101
        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(101)) == [201, result["transform_id"]]
        game_object = basic_doc.get_by_file_id(result["game_object_id"])
        assert game_object.get_property("m_Layer") == "8"

    def test_create_under_prefab_instance(self, prefab_doc, rng):
        result = editor.create_game_object(prefab_doc, "Hat", parent="Boss", rng=rng)

        assert result["parent_transform_id"] == 9001
        assert result["prefab_instance_id"] == 9000
        instance = prefab_doc.get_by_file_id(9000)
        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == [21, result["transform_id"]]

    def test_create_without_parent_in_scene_with_instances(self, prefab_doc, rng):
        result = editor.create_game_object(prefab_doc, "Sun", rng=rng)

        assert result["parent_transform_id"] == 0
        assert result["prefab_instance_id"] == 0

    def test_empty_name(self, basic_doc):
        with pytest.raises(InvalidInputError):
            editor.create_game_object(basic_doc, "  ")

    def test_missing_parent(self, basic_doc):
        with pytest.raises(NotFoundError):
            editor.create_game_object(basic_doc, "Orphan", parent="Nowhere")
        assert not basic_doc.dirty


class TestDeleteGameObject:
    """Tests for delete_game_object."""

    def test_delete_with_children(self, basic_doc):
        result = editor.delete_game_object(basic_doc, "Player")

        assert result["deleted_count"] == 7
        assert result["deleted_game_objects"] == 2
        assert sorted(basic_doc.file_ids()) == [1, 300, 301, 302]

    def test_delete_child_updates_parent_and_references(self, basic_doc):
        editor.delete_game_object(basic_doc, "Weapon")

        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(101)) == []
        assert "m_Children: []" in basic_doc.get_by_file_id(101).text
        assert basic_doc.get_by_file_id(103).get_property("weapon") == "{fileID: 0}"

    def test_delete_takes_nested_prefab_instances(self, prefab_doc):
        result = editor.delete_game_object(prefab_doc, "Level")

        assert result["deleted_count"] == 9
        assert len(prefab_doc) == 0

    def test_delete_stripped_is_refused(self, prefab_doc):
        with pytest.raises(StructuralViolationError):
            editor.delete_game_object(prefab_doc, 9002)


class TestDuplicateGameObject:
    """Tests for duplicate_game_object."""

    def test_duplicate_leaf(self, basic_doc, rng):
        result = editor.duplicate_game_object(basic_doc, "Weapon", rng=rng)

        assert result["total_duplicated"] == 3
        assert result["warnings"] == []
        clone = basic_doc.get_by_file_id(result["game_object_id"])
        assert hierarchy.get_name(clone) == "Weapon (1)"
        transform = basic_doc.get_by_file_id(result["transform_id"])
        assert hierarchy.get_father_id(transform) == 101
        assert transform.get_property("m_RootOrder") == "1"
        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(101)) == [201, result["transform_id"]]

    def test_duplicate_remaps_internal_references_only(self, basic_doc, rng):
        result = editor.duplicate_game_object(basic_doc, "Player", rng=rng)

        assert result["total_duplicated"] == 7
        clone = basic_doc.get_by_file_id(result["game_object_id"])
        component_ids = hierarchy.get_component_ids(clone)
        assert not set(component_ids) & {101, 102, 103}

        behaviour = basic_doc.get_by_file_id(component_ids[2])
        clone_children = hierarchy.get_children_ids(basic_doc.get_by_file_id(result["transform_id"]))
        assert behaviour.get_property("weapon") == f"{{fileID: {clone_children[0]}}}"
        assert behaviour.get_property("target") == "{fileID: 301}"
        assert "guid: aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa" in behaviour.text

    def test_duplicate_preserves_shape(self, basic_doc, rng):
        game_objects_before = len(basic_doc.get_game_objects())

        result = editor.duplicate_game_object(basic_doc, "Player", rng=rng)

        assert len(result["cloned_objects"]) == 2
        assert [entry["name"] for entry in result["cloned_objects"]] == ["Player (1)", "Weapon"]
        assert len(basic_doc.get_game_objects()) == game_objects_before + 2
        assert _shape(basic_doc, result["transform_id"]) == _shape(basic_doc, 101)
        clone_ids = {entry["file_id"] for entry in result["cloned_objects"]}
        assert not clone_ids & {100, 200}

    def test_duplicate_warns_about_repeated_names(self, basic_doc, rng):
        result = editor.duplicate_game_object(basic_doc, "Weapon", new_name="Weapon", rng=rng)

        assert result["warnings"] == [
            f'Duplicate name "Weapon" now appears 2 times in scene. '
            f'Use fileID {result["game_object_id"]} to target this clone.'
        ]

    def test_duplicate_leaves_source_untouched(self, basic_doc, rng):
        before = {block.file_id: block.text for block in basic_doc if block.file_id != 101}
        editor.duplicate_game_object(basic_doc, "Weapon", rng=rng)

        for file_id, text in before.items():
            assert basic_doc.get_by_file_id(file_id).text == text

    def test_duplicate_prefab_instance_is_refused(self, prefab_doc):
        with pytest.raises(InvalidInputError, match="unpack-prefab"):
            editor.duplicate_game_object(prefab_doc, "Boss")


class TestReparentGameObject:
    """Tests for reparent_game_object."""

    def test_reparent_under_other(self, basic_doc):
        result = editor.reparent_game_object(basic_doc, "Main Camera", "Weapon")

        assert result == {
            "child_transform_id": 301,
            "old_parent_transform_id": 0,
            "new_parent_transform_id": 201,
        }
        assert hierarchy.get_father_id(basic_doc.get_by_file_id(301)) == 201
        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(201)) == [301]
        assert basic_doc.get_by_file_id(301).get_property("m_RootOrder") == "0"

    def test_reparent_to_root(self, basic_doc):
        editor.reparent_game_object(basic_doc, "Weapon", "root")

        assert hierarchy.get_father_id(basic_doc.get_by_file_id(201)) == 0
        assert hierarchy.get_children_ids(basic_doc.get_by_file_id(101)) == []
        assert basic_doc.get_by_file_id(201).get_property("m_RootOrder") == "2"

    def test_reparent_under_descendant(self, basic_doc):
        with pytest.raises(StructuralViolationError, match="circular"):
            editor.reparent_game_object(basic_doc, "Player", "Weapon")

    def test_reparent_under_itself(self, basic_doc):
        with pytest.raises(StructuralViolationError):
            editor.reparent_game_object(basic_doc, "Player", "Player")

    def test_reparent_out_of_prefab_instance(self, prefab_doc):
        result = editor.reparent_game_object(prefab_doc, "Marker", "root")

        assert result["old_parent_transform_id"] == 9001
        instance = prefab_doc.get_by_file_id(9000)
        assert hierarchy.get_added_object_ids(instance, "m_AddedGameObjects") == []


class TestComponents:
    """Tests for add/remove/copy component."""

    def test_add_builtin(self, basic_doc, rng):
        result = editor.add_component(basic_doc, "Player", "Rigidbody", rng=rng)

        assert result["class_id"] == 54
        assert result["warning"] is None
        component = basic_doc.get_by_file_id(result["component_id"])
        assert component.type_name == "Rigidbody"
        assert component.get_property("m_Mass") == "1"
        assert hierarchy.get_game_object_id(component) == 100
        assert hierarchy.get_component_ids(basic_doc.get_by_file_id(100))[-1] == result["component_id"]

    def test_add_is_case_insensitive(self, basic_doc, rng):
        result = editor.add_component(basic_doc, "Weapon", "meshfilter", rng=rng)

        assert result["class_id"] == 33

    def test_add_duplicate_warns(self, basic_doc, rng):
        result = editor.add_component(basic_doc, "Player", "BoxCollider", rng=rng)

        assert result["warning"] == (
            "GameObject already has a BoxCollider component (fileID: 102). Adding duplicate."
        )

    def test_add_script_by_guid(self, basic_doc, rng):
        guid = "f" * 32
        result = editor.add_component(basic_doc, "Main Camera", guid, rng=rng)

        assert result["class_id"] == 114
        assert result["script_guid"] == guid
        component = basic_doc.get_by_file_id(result["component_id"])
        assert f"m_Script: {{fileID: 11500000, guid: {guid}, type: 3}}" in component.text

    def test_add_script_by_name(self, basic_doc, rng, tmp_path):
        index = GUIDIndex(project_root=tmp_path)
        index.add("ab" * 16, Path("Assets/Scripts/PlayerController.cs"))

        result = editor.add_component(basic_doc, "Player", "PlayerController", resolver=index, rng=rng)

        assert result["script_guid"] == "ab" * 16
        assert result["script_path"] == "Assets/Scripts/PlayerController.cs"

    def test_add_unknown_script(self, basic_doc):
        with pytest.raises(NotFoundError):
            editor.add_component(basic_doc, "Player", "NoSuchScript")

    @pytest.mark.parametrize("name", ["Transform", "RectTransform", "GameObject", "PrefabInstance"])
    def test_add_reserved_class(self, basic_doc, name):
        with pytest.raises(StructuralViolationError):
            editor.add_component(basic_doc, "Player", name)

    def test_add_bare_monobehaviour(self, basic_doc):
        with pytest.raises(InvalidInputError, match="script"):
            editor.add_component(basic_doc, "Player", "MonoBehaviour")

    def test_remove(self, basic_doc):
        result = editor.remove_component(basic_doc, "102")

        assert result == {"removed_file_id": 102, "removed_class_id": 65, "game_object_id": 100}
        assert 102 not in basic_doc
        assert hierarchy.get_component_ids(basic_doc.get_by_file_id(100)) == [101, 103]

    @pytest.mark.parametrize("file_id", [100, 101])
    def test_remove_protected(self, basic_doc, file_id):
        with pytest.raises(StructuralViolationError):
            editor.remove_component(basic_doc, file_id)

    def test_remove_missing(self, basic_doc):
        with pytest.raises(NotFoundError):
            editor.remove_component(basic_doc, 999)
        with pytest.raises(InvalidInputError):
            editor.remove_component(basic_doc, "abc")

    def test_copy(self, basic_doc, rng):
        result = editor.copy_component(basic_doc, 102, "Main Camera", rng=rng)

        copy = basic_doc.get_by_file_id(result["new_component_id"])
        assert result["target_game_object"] == 300
        assert hierarchy.get_game_object_id(copy) == 300
        assert copy.get_property("m_Size") == "{x: 1, y: 2, z: 1}"
        assert result["new_component_id"] in hierarchy.get_component_ids(basic_doc.get_by_file_id(300))
        assert hierarchy.get_game_object_id(basic_doc.get_by_file_id(102)) == 100

    def test_copy_transform_is_refused(self, basic_doc):
        with pytest.raises(StructuralViolationError):
            editor.copy_component(basic_doc, 101, "Main Camera")


class TestEditGameObject:
    """Tests for edit_game_object and edit_batch."""

    def test_rename(self, basic_doc):
        result = editor.edit_game_object(basic_doc, "Player", "Name", "Hero")

        assert result["property"] == "m_Name"
        assert result["old_value"] == "Player"
        assert result["changed"]
        assert hierarchy.get_name(basic_doc.get_by_file_id(100)) == "Hero"

    def test_is_active_accepts_booleans(self, basic_doc):
        result = editor.edit_game_object(basic_doc, "Weapon", "m_IsActive", "false")

        assert result["value"] == "0"
        assert basic_doc.get_by_file_id(200).get_property("m_IsActive") == "0"

    def test_unchanged_value(self, basic_doc):
        result = editor.edit_game_object(basic_doc, "Player", "Layer", "8")

        assert not result["changed"]
        assert not basic_doc.dirty

    @pytest.mark.parametrize(
        "prop,value",
        [
            ("Layer", "40"),
            ("Layer", "x"),
            ("IsActive", "maybe"),
            ("Name", ""),
            ("Velocity", "1"),
            ("TagString", "Enemy\n--- !u!1 &100"),
        ],
    )
    def test_invalid(self, basic_doc, prop, value):
        with pytest.raises(InvalidInputError):
            editor.edit_game_object(basic_doc, "Player", prop, value)

    def test_batch(self, basic_doc):
        result = editor.edit_batch(
            basic_doc,
            [
                {"target": "Player", "property": "Name", "value": "Hero"},
                {"target": 300, "property": "TagString", "value": "Untagged"},
            ],
        )

        assert result["edits_applied"] == 2
        assert hierarchy.get_name(basic_doc.get_by_file_id(100)) == "Hero"

    def test_batch_rejects_malformed_entries(self, basic_doc):
        with pytest.raises(InvalidInputError):
            editor.edit_batch(basic_doc, [{"target": "Player", "value": "x"}])
        with pytest.raises(InvalidInputError):
            editor.edit_batch(basic_doc, {"target": "Player"})


class TestEditTransform:
    """Tests for edit_transform."""

    def test_position_and_scale(self, basic_doc):
        result = editor.edit_transform(basic_doc, 101, position="1, 2.5, -3", scale="2,2,2")

        transform = basic_doc.get_by_file_id(101)
        assert result["position"] == "{x: 1, y: 2.5, z: -3}"
        assert transform.get_property("m_LocalPosition") == "{x: 1, y: 2.5, z: -3}"
        assert transform.get_property("m_LocalScale") == "{x: 2, y: 2, z: 2}"
        assert transform.get_property("m_LocalRotation") == "{x: 0, y: 0, z: 0, w: 1}"

    def test_rotation(self, basic_doc):
        result = editor.edit_transform(basic_doc, "301", rotation="0,90,0")

        transform = basic_doc.get_by_file_id(301)
        assert result["rotation"] == "{x: 0, y: 0.707106781, z: 0, w: 0.707106781}"
        assert transform.get_property("m_LocalEulerAnglesHint") == "{x: 0, y: 90, z: 0}"

    def test_nothing_to_edit(self, basic_doc):
        with pytest.raises(InvalidInputError):
            editor.edit_transform(basic_doc, 101)

    def test_bad_vector(self, basic_doc):
        with pytest.raises(InvalidInputError):
            editor.edit_transform(basic_doc, 101, position="1,2")
        with pytest.raises(InvalidInputError):
            editor.edit_transform(basic_doc, 101, scale="1,nan,1")

    def test_not_a_transform(self, basic_doc):
        with pytest.raises(NotFoundError):
            editor.edit_transform(basic_doc, 100, position="0,0,0")


class TestQuaternion:
    """Tests for the Euler conversion helpers."""

    def test_identity(self):
        assert editor.euler_to_quaternion(0, 0, 0) == (0.0, 0.0, 0.0, 1.0)

    def test_single_axis(self):
        x, y, z, w = editor.euler_to_quaternion(90, 0, 0)

        assert x == pytest.approx(0.70710678)
        assert w == pytest.approx(0.70710678)
        assert y == pytest.approx(0) and z == pytest.approx(0)

    def test_format_float(self):
        assert editor.format_float(1.0) == "1"
        assert editor.format_float(-0.0) == "0"
        assert editor.format_float(1e-12) == "0"
        assert editor.format_float(0.1 + 0.2) == "0.3"


class TestEditComponent:
    """Tests for edit_component."""

    def test_scalar(self, basic_doc):
        result = editor.edit_component(basic_doc, 103, "speed", "7.25")

        assert result["old_value"] == "5.5"
        assert result["changed"]
        assert basic_doc.get_by_file_id(103).get_property("speed") == "7.25"

    def test_struct_field_with_prefix_fallback(self, basic_doc):
        result = editor.edit_component(basic_doc, 102, "Size.x", "3")

        assert result["property"] == "m_Size.x"
        assert basic_doc.get_by_file_id(102).get_property("m_Size") == "{x: 3, y: 2, z: 1}"

    def test_array_element(self, basic_doc):
        value = "{fileID: 2100000, guid: dddddddddddddddddddddddddddddddd, type: 2}"
        editor.edit_component(basic_doc, 202, "m_Materials.Array.data[0]", value)

        assert basic_doc.get_by_file_id(202).get_property("m_Materials.Array.data[0]") == value

    def test_local_reference(self, basic_doc):
        editor.edit_component(basic_doc, 103, "target", "{fileID: 100}")

        assert basic_doc.get_by_file_id(103).get_property("target") == "{fileID: 100}"

    def test_dangling_reference(self, basic_doc):
        with pytest.raises(NotFoundError, match="424242"):
            editor.edit_component(basic_doc, 103, "target", "{fileID: 424242}")

    def test_type_mismatch(self, basic_doc):
        with pytest.raises(InvalidInputError):
            editor.edit_component(basic_doc, 103, "speed", "fast")

    def test_missing_property(self, basic_doc):
        with pytest.raises(NotFoundError, match="nonexistent"):
            editor.edit_component(basic_doc, 103, "nonexistent", "1")

    def test_multiline_value_is_refused(self, basic_doc):
        value = "Guard\n--- !u!1 &101\nGameObject:\n  m_Name: Evil"

        with pytest.raises(InvalidInputError, match="single line"):
            editor.edit_component(basic_doc, 103, "m_EditorClassIdentifier", value)
        assert not basic_doc.dirty

    def test_unchanged(self, basic_doc):
        result = editor.edit_component(basic_doc, 103, "speed", "5.5")

        assert not result["changed"]
        assert not basic_doc.dirty

    def test_stripped_is_refused(self, prefab_doc):
        with pytest.raises(StructuralViolationError):
            editor.edit_component(prefab_doc, 9001, "m_LocalPosition.x", "1")

    def test_source_prefab_id_hint(self, prefab_doc):
        with pytest.raises(NotFoundError, match="PrefabInstances"):
            editor.edit_component(prefab_doc, 5002, "speed", "1")
