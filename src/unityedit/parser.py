"""Unity YAML Block Index.

Handles Unity's serialized scene/prefab text as an ordered list of opaque
blocks instead of a parsed YAML tree:
- Custom tag namespace (!u! -> tag:unity3d.com,2011:)
- One block per object, introduced by --- !u!{ClassID} &{fileID} [stripped]
- Block text is kept verbatim so untouched objects round-trip byte for byte
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from unityedit import properties
from unityedit.errors import InvalidInputError, IOFailureError, NotFoundError
from unityedit.references import local_reference_ids, remap_references

logger = logging.getLogger(__name__)

# Unity YAML header
UNITY_HEADER = """%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
"""

# Pattern to match block headers: --- !u!{ClassID} &{fileID} [stripped]
BLOCK_HEADER_PATTERN = re.compile(r"^--- !u!(\d+) &(-?\d+)(\s+stripped)?")

# Zero-width split point in front of every block header line
BLOCK_SPLIT_PATTERN = re.compile(r"(?=^--- !u!)", re.MULTILINE)

GAME_OBJECT = 1
TRANSFORM = 4
MONO_BEHAVIOUR = 114
RECT_TRANSFORM = 224
PREFAB_INSTANCE = 1001

TRANSFORM_CLASS_IDS = frozenset({TRANSFORM, RECT_TRANSFORM})

# Common Unity ClassIDs
CLASS_IDS = {
    1: "GameObject",
    4: "Transform",
    20: "Camera",
    23: "MeshRenderer",
    29: "OcclusionCullingSettings",
    33: "MeshFilter",
    50: "Rigidbody2D",
    54: "Rigidbody",
    58: "CircleCollider2D",
    61: "BoxCollider2D",
    64: "MeshCollider",
    65: "BoxCollider",
    81: "AudioListener",
    82: "AudioSource",
    95: "Animator",
    96: "TrailRenderer",
    104: "RenderSettings",
    108: "Light",
    111: "Animation",
    114: "MonoBehaviour",
    120: "LineRenderer",
    124: "Behaviour",
    135: "SphereCollider",
    136: "CapsuleCollider",
    137: "SkinnedMeshRenderer",
    143: "CharacterController",
    157: "LightmapSettings",
    196: "NavMeshSettings",
    198: "ParticleSystem",
    199: "ParticleSystemRenderer",
    205: "LODGroup",
    212: "SpriteRenderer",
    222: "CanvasRenderer",
    223: "Canvas",
    224: "RectTransform",
    225: "CanvasGroup",
    1001: "PrefabInstance",
}

_FIRST_COMPONENT_PATTERN = re.compile(
    r"m_Component:\s*\n\s*-\s*component:\s*\{fileID:\s*(-?\d+)\}"
)


def normalize_newlines(content: str) -> str:
    """Convert CRLF line endings to LF (Unity writes LF)."""
    return content.replace("\r\n", "\n")


class UnityBlock:
    """A single ``--- !u!`` block, kept as raw text.

    The header line is parsed once; the body is only inspected through
    targeted regular expressions by the property editor.
    """

    def __init__(self, text: str):
        text = normalize_newlines(text)
        self._class_id, self._file_id, self._stripped = self._parse_header(text)
        self._text = text
        self.dirty = False

    @staticmethod
    def _parse_header(text: str) -> tuple[int, int, bool]:
        first_line = text.split("\n", 1)[0]
        match = BLOCK_HEADER_PATTERN.match(first_line)
        if not match:
            raise InvalidInputError(f"Invalid Unity YAML block header: {first_line[:80]!r}")
        return int(match.group(1)), int(match.group(2)), match.group(3) is not None

    @property
    def class_id(self) -> int:
        return self._class_id

    @property
    def file_id(self) -> int:
        return self._file_id

    @property
    def stripped(self) -> bool:
        return self._stripped

    @property
    def text(self) -> str:
        """Full block text, header line included."""
        return self._text

    @property
    def class_name(self) -> str:
        """Get the human-readable class name for this block."""
        return CLASS_IDS.get(self._class_id, f"Unknown({self._class_id})")

    @property
    def type_name(self) -> str:
        """Root key written under the header (falls back to the class table)."""
        lines = self._text.split("\n", 2)
        if len(lines) > 1 and lines[1].endswith(":") and not lines[1].startswith(" "):
            return lines[1][:-1]
        return self.class_name

    @property
    def is_transform(self) -> bool:
        return self._class_id in TRANSFORM_CLASS_IDS

    def replace_text(self, new_text: str) -> None:
        """Replace the whole block text and re-read its header."""
        new_text = normalize_newlines(new_text)
        self._class_id, self._file_id, self._stripped = self._parse_header(new_text)
        if new_text != self._text:
            self._text = new_text
            self.dirty = True

    def clone(self) -> UnityBlock:
        """Return an independent, clean copy of this block."""
        return UnityBlock(self._text)

    def get_property(self, path: str) -> str | None:
        return properties.get_property(self._text, path)

    def set_property(
        self,
        path: str,
        value: str,
        object_reference: str | None = None,
        append_missing: bool = False,
    ) -> bool:
        """Set a property value; returns True when the text changed."""
        updated = properties.set_property(
            self._text, path, value, object_reference, append_missing=append_missing
        )
        if updated == self._text:
            return False
        self.replace_text(updated)
        return True

    def remap(self, id_map: dict[int, int]) -> bool:
        """Rewrite the header anchor and local references under ``id_map``."""
        updated = remap_references(self._text, id_map)
        if updated == self._text:
            return False
        self.replace_text(updated)
        return True

    def reference_ids(self) -> list[int]:
        """Nonzero same-file fileIDs referenced from the block body."""
        return local_reference_ids(self._text)

    def first_component_id(self) -> int | None:
        """First ``m_Component`` entry of a GameObject (its Transform)."""
        match = _FIRST_COMPONENT_PATTERN.search(self._text)
        return int(match.group(1)) if match else None

    def __repr__(self) -> str:
        flag = " stripped" if self._stripped else ""
        return f"UnityBlock(class={self.class_name}, fileID={self._file_id}{flag})"


@dataclass
class UnityDocument:
    """A Unity YAML file: verbatim preamble followed by ordered blocks."""

    header: str = ""
    blocks: list[UnityBlock] = field(default_factory=list)
    source_path: Path | None = None
    structure_dirty: bool = False
    _index: dict[int, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._rebuild_index()

    def _rebuild_index(self) -> None:
        self._index = {}
        for i, block in enumerate(self.blocks):
            if block.file_id != 0:
                self._index[block.file_id] = i

    def __iter__(self) -> Iterator[UnityBlock]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._index

    @property
    def dirty(self) -> bool:
        """True if blocks were added/removed or any block was modified."""
        return self.structure_dirty or any(block.dirty for block in self.blocks)

    @classmethod
    def load(cls, path: str | Path) -> UnityDocument:
        """Load a Unity YAML file from disk.

        Args:
            path: Path to the Unity YAML file

        Returns:
            Parsed UnityDocument

        Raises:
            NotFoundError: If the file does not exist
            IOFailureError: If the file cannot be read
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IOFailureError(f"Failed to read file: {e}") from e
        doc = cls.parse(content)
        doc.source_path = path
        logger.debug("Loaded %s (%d blocks)", path, len(doc.blocks))
        return doc

    @classmethod
    def parse(cls, content: str) -> UnityDocument:
        """Split Unity YAML content into a preamble and blocks.

        Args:
            content: Unity YAML content string

        Returns:
            UnityDocument whose ``serialize()`` reproduces ``content``
            (after CRLF normalization)
        """
        content = normalize_newlines(content)
        parts = BLOCK_SPLIT_PATTERN.split(content)
        header = ""
        if parts and not parts[0].startswith("--- !u!"):
            header = parts.pop(0)
        blocks = [UnityBlock(part) for part in parts if part]
        return cls(header=header, blocks=blocks)

    def serialize(self) -> str:
        """Serialize the document back to text."""
        return self.header + "".join(block.text for block in self.blocks)

    # Queries

    def get_by_file_id(self, file_id: int) -> UnityBlock | None:
        """Find a block by its fileID."""
        index = self._index.get(file_id)
        return self.blocks[index] if index is not None else None

    def get_by_class_id(self, class_id: int) -> list[UnityBlock]:
        """Find all blocks of a specific class type."""
        return [block for block in self.blocks if block.class_id == class_id]

    def get_game_objects(self) -> list[UnityBlock]:
        return self.get_by_class_id(GAME_OBJECT)

    def get_prefab_instances(self) -> list[UnityBlock]:
        return self.get_by_class_id(PREFAB_INSTANCE)

    def find_game_objects_by_name(self, name: str) -> list[UnityBlock]:
        """Find GameObjects whose ``m_Name`` line equals ``name`` exactly."""
        pattern = re.compile(rf"^\s*m_Name:\s*{re.escape(name)}\s*$", re.MULTILINE)
        return [
            block
            for block in self.blocks
            if block.class_id == GAME_OBJECT and pattern.search(block.text)
        ]

    def find_transforms_by_name(self, name: str) -> list[int]:
        """Transform fileIDs of GameObjects named ``name``."""
        ids = []
        for block in self.find_game_objects_by_name(name):
            transform_id = block.first_component_id()
            if transform_id is not None:
                ids.append(transform_id)
        return ids

    def file_ids(self) -> set[int]:
        """All nonzero fileIDs in the document."""
        return set(self._index)

    # Mutation

    def append_block(self, block: UnityBlock) -> None:
        """Append a single block to the document."""
        if self.blocks and not self.blocks[-1].text.endswith("\n"):
            self.blocks[-1].replace_text(self.blocks[-1].text + "\n")
        self.blocks.append(block)
        if block.file_id != 0:
            self._index[block.file_id] = len(self.blocks) - 1
        self.structure_dirty = True

    def append_text(self, text: str) -> list[UnityBlock]:
        """Split ``text`` into blocks and append them.

        Returns:
            The newly created blocks
        """
        new_blocks = []
        for part in BLOCK_SPLIT_PATTERN.split(normalize_newlines(text)):
            if not part.startswith("--- !u!"):
                continue
            block = UnityBlock(part)
            self.append_block(block)
            new_blocks.append(block)
        return new_blocks

    def remove_blocks(self, file_ids: Iterable[int]) -> int:
        """Remove all blocks whose fileIDs are in ``file_ids``.

        Returns:
            Number of blocks removed
        """
        targets = set(file_ids)
        before = len(self.blocks)
        self.blocks = [block for block in self.blocks if block.file_id not in targets]
        removed = before - len(self.blocks)
        if removed:
            self._rebuild_index()
            self.structure_dirty = True
        return removed

    def remove_block(self, file_id: int) -> bool:
        return self.remove_blocks([file_id]) == 1

    def clear_references(self, file_ids: Iterable[int]) -> int:
        """Null local references to removed blocks; call after removing them.

        Returns:
            Number of blocks that changed
        """
        null_map = {file_id: 0 for file_id in file_ids if file_id != 0}
        changed = 0
        for block in self.blocks:
            if block.remap(null_map):
                changed += 1
        return changed
