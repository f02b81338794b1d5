"""Tests for the Unity YAML block index."""

from pathlib import Path

import pytest

from unityedit.errors import InvalidInputError, NotFoundError
from unityedit.parser import (
    CLASS_IDS,
    UNITY_HEADER,
    UnityBlock,
    UnityDocument,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class TestUnityDocument:
    """Tests for UnityDocument class."""

    def test_load_basic_scene(self):
        """Test loading a scene file."""
        doc = UnityDocument.load(FIXTURES_DIR / "basic_scene.unity")

        assert len(doc) == 11
        assert doc.source_path == FIXTURES_DIR / "basic_scene.unity"
        assert doc.header == UNITY_HEADER

    def test_round_trip_is_byte_identical(self):
        """Test that an unmodified document serializes to its input."""
        for name in ("basic_scene.unity", "prefab_scene.unity", "Enemy.prefab"):
            content = (FIXTURES_DIR / name).read_text(encoding="utf-8")
            assert UnityDocument.parse(content).serialize() == content

    def test_crlf_is_normalized(self):
        content = (FIXTURES_DIR / "basic_scene.unity").read_text(encoding="utf-8")
        doc = UnityDocument.parse(content.replace("\n", "\r\n"))

        assert doc.serialize() == content

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            UnityDocument.load(tmp_path / "missing.unity")

    def test_get_by_file_id(self, basic_doc):
        block = basic_doc.get_by_file_id(101)

        assert block is not None
        assert block.class_id == 4
        assert block.class_name == "Transform"
        assert basic_doc.get_by_file_id(999) is None

    def test_get_by_class_id(self, basic_doc):
        game_objects = basic_doc.get_game_objects()

        assert [b.file_id for b in game_objects] == [100, 200, 300]
        assert len(basic_doc.get_by_class_id(4)) == 3

    def test_find_game_objects_by_name(self, basic_doc):
        matches = basic_doc.find_game_objects_by_name("Main Camera")

        assert [b.file_id for b in matches] == [300]
        assert basic_doc.find_game_objects_by_name("Main") == []

    def test_find_transforms_by_name(self, basic_doc):
        assert basic_doc.find_transforms_by_name("Weapon") == [201]

    def test_stripped_blocks(self):
        doc = UnityDocument.load(FIXTURES_DIR / "prefab_scene.unity")

        assert doc.get_by_file_id(9001).stripped
        assert doc.get_by_file_id(9002).stripped
        assert not doc.get_by_file_id(9000).stripped
        assert [b.file_id for b in doc.get_prefab_instances()] == [9000]


class TestDocumentMutation:
    """Tests for appending and removing blocks."""

    def test_append_text(self, basic_doc):
        new_blocks = basic_doc.append_text(
            "--- !u!1 &5\nGameObject:\n  m_Name: New\n--- !u!4 &6\nTransform:\n  m_GameObject: {fileID: 5}\n"
        )

        assert [b.file_id for b in new_blocks] == [5, 6]
        assert 5 in basic_doc and 6 in basic_doc
        assert basic_doc.dirty
        assert basic_doc.serialize().endswith("m_GameObject: {fileID: 5}\n")

    def test_remove_blocks(self, basic_doc):
        removed = basic_doc.remove_blocks([200, 201, 202])

        assert removed == 3
        assert 200 not in basic_doc
        assert basic_doc.get_by_file_id(300) is not None
        assert basic_doc.dirty

    def test_remove_nothing_keeps_document_clean(self, basic_doc):
        assert basic_doc.remove_blocks([999]) == 0
        assert not basic_doc.dirty

    def test_clear_references(self, basic_doc):
        basic_doc.remove_blocks([301])
        changed = basic_doc.clear_references([301])

        assert changed == 2
        assert basic_doc.get_by_file_id(103).get_property("target") == "{fileID: 0}"

    def test_untouched_blocks_stay_identical(self, basic_doc):
        before = basic_doc.get_by_file_id(302).text
        basic_doc.get_by_file_id(100).set_property("m_Name", "Hero")

        assert basic_doc.get_by_file_id(302).text == before
        assert not basic_doc.get_by_file_id(302).dirty


class TestUnityBlock:
    """Tests for UnityBlock class."""

    def test_parse_header(self):
        block = UnityBlock("--- !u!4 &9001 stripped\nTransform:\n  m_PrefabInstance: {fileID: 9000}\n")

        assert block.class_id == 4
        assert block.file_id == 9001
        assert block.stripped
        assert block.type_name == "Transform"

    def test_negative_file_id(self):
        block = UnityBlock("--- !u!114 &-4216859302048453862\nMonoBehaviour:\n")

        assert block.file_id == -4216859302048453862

    def test_invalid_header(self):
        with pytest.raises(InvalidInputError):
            UnityBlock("--- !x!4 &1\nTransform:\n")

    def test_unknown_class_name(self):
        block = UnityBlock("--- !u!9999 &1\nCustomThing:\n")

        assert block.class_name == "Unknown(9999)"
        assert block.type_name == "CustomThing"

    def test_set_property_marks_dirty(self, basic_doc):
        block = basic_doc.get_by_file_id(100)

        assert block.set_property("m_Layer", "3")
        assert block.dirty
        assert block.get_property("m_Layer") == "3"
        assert not block.set_property("m_Layer", "3")

    def test_remap(self, basic_doc):
        block = basic_doc.get_by_file_id(101).clone()
        block.remap({101: 1001, 100: 1000, 201: 2001})

        assert block.file_id == 1001
        assert block.get_property("m_GameObject") == "{fileID: 1000}"
        assert "- {fileID: 2001}" in block.text

    def test_first_component_id(self, basic_doc):
        assert basic_doc.get_by_file_id(100).first_component_id() == 101

    def test_reference_ids(self, basic_doc):
        assert basic_doc.get_by_file_id(103).reference_ids() == [100, 201, 301]


class TestClassIDs:
    """Tests for the class ID table."""

    def test_common_class_ids(self):
        assert CLASS_IDS[1] == "GameObject"
        assert CLASS_IDS[4] == "Transform"
        assert CLASS_IDS[95] == "Animator"
        assert CLASS_IDS[120] == "LineRenderer"
        assert CLASS_IDS[224] == "RectTransform"
        assert CLASS_IDS[1001] == "PrefabInstance"
