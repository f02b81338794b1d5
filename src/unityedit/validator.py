"""Unity YAML validation.

Two layers:
- commit checks, run on every write: YAML header present, no truncated
  GUIDs, every ``---`` line a well-formed block header, unique non-zero
  fileIDs across the serialized text
- integrity checks for ``unityedit validate``: dangling local references,
  father/children symmetry and component ownership, run over
  rapidyaml-parsed block bodies
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from unityedit.errors import UnityEditError
from unityedit.fast_parser import block_content, iter_references, parse_block_body
from unityedit.parser import (
    BLOCK_HEADER_PATTERN,
    GAME_OBJECT,
    TRANSFORM_CLASS_IDS,
    UnityBlock,
    UnityDocument,
)

SHORT_GUID_PATTERN = re.compile(r"guid:\s*[a-f0-9]{1,29}\b")
MARKER_LINE_PATTERN = re.compile(r"^---.*$", re.MULTILINE)
HEADER_LINE_PATTERN = re.compile(r"^--- !u!\d+ &(-?\d+)", re.MULTILINE)


class Severity(Enum):
    """Validation issue severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single validation issue."""

    severity: Severity
    message: str
    file_id: int | None = None
    property_path: str | None = None
    suggestion: str | None = None

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}]"]
        if self.file_id is not None:
            parts.append(f"(fileID: {self.file_id})")
        parts.append(self.message)
        if self.property_path:
            parts.append(f"at {self.property_path}")
        if self.suggestion:
            parts.append(f"- {self.suggestion}")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"severity": self.severity.value, "message": self.message}
        if self.file_id is not None:
            result["file_id"] = self.file_id
        if self.property_path:
            result["property_path"] = self.property_path
        return result


@dataclass
class ValidationResult:
    """Result of validating a Unity file."""

    path: str
    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        """Get all error-level issues."""
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        """Get all warning-level issues."""
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def __str__(self) -> str:
        lines = [f"Validation result for {self.path}:"]
        lines.append(f"  Status: {'VALID' if self.is_valid else 'INVALID'}")
        lines.append(f"  Errors: {len(self.errors)}, Warnings: {len(self.warnings)}")
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


def check_content(content: str) -> list[ValidationIssue]:
    """Structural checks every document must pass before it is written."""
    issues: list[ValidationIssue] = []

    if not content.startswith("%YAML 1.1"):
        issues.append(ValidationIssue(Severity.ERROR, "Missing or invalid YAML header"))

    short_guid = SHORT_GUID_PATTERN.search(content)
    if short_guid:
        issues.append(
            ValidationIssue(
                Severity.ERROR,
                f"Found invalid GUID format (missing characters): {short_guid.group(0)!r}",
            )
        )

    for marker in MARKER_LINE_PATTERN.finditer(content):
        if not BLOCK_HEADER_PATTERN.match(marker.group(0)):
            issues.append(
                ValidationIssue(
                    Severity.ERROR,
                    f"Unbalanced YAML block marker: {marker.group(0)[:80]!r}",
                )
            )
            break

    issues.extend(check_file_ids(content))
    return issues


def check_file_ids(content: str) -> list[ValidationIssue]:
    """Zero or repeated anchors across every block header in ``content``."""
    issues: list[ValidationIssue] = []
    seen: dict[int, int] = {}
    for i, match in enumerate(HEADER_LINE_PATTERN.finditer(content)):
        file_id = int(match.group(1))
        if file_id == 0:
            issues.append(ValidationIssue(Severity.ERROR, "Block has fileID 0", file_id=0))
        elif file_id in seen:
            issues.append(
                ValidationIssue(
                    Severity.ERROR,
                    f"Duplicate fileID found (first at index {seen[file_id]}, duplicate at index {i})",
                    file_id=file_id,
                    suggestion="Each object must have a unique fileID",
                )
            )
        else:
            seen[file_id] = i
    return issues


class DocumentValidator:
    """Validates Unity YAML documents."""

    def __init__(self, check_integrity: bool = True, strict: bool = False):
        """Initialize the validator.

        Args:
            check_integrity: Run the reference and hierarchy checks too
            strict: Treat warnings as errors
        """
        self.check_integrity = check_integrity
        self.strict = strict

    def validate_file(self, path: str | Path) -> ValidationResult:
        """Validate a Unity YAML file on disk."""
        path = Path(path)
        try:
            doc = UnityDocument.load(path)
        except UnityEditError as e:
            return ValidationResult(
                path=str(path),
                is_valid=False,
                issues=[ValidationIssue(Severity.ERROR, e.message)],
            )
        return self.validate(doc, label=str(path))

    def validate(self, doc: UnityDocument, label: str = "<content>") -> ValidationResult:
        """Validate an in-memory document."""
        issues = check_content(doc.serialize())
        if self.check_integrity:
            issues.extend(self._check_integrity(doc))

        if self.strict:
            for issue in issues:
                if issue.severity == Severity.WARNING:
                    issue.severity = Severity.ERROR

        is_valid = not any(i.severity == Severity.ERROR for i in issues)
        return ValidationResult(path=label, is_valid=is_valid, issues=issues)

    def _check_integrity(self, doc: UnityDocument) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        contents: dict[int, tuple[UnityBlock, dict[str, Any]]] = {}
        for block in doc:
            try:
                contents[block.file_id] = (block, block_content(parse_block_body(block)))
            except ValueError as e:
                issues.append(ValidationIssue(Severity.ERROR, str(e), file_id=block.file_id))

        file_ids = doc.file_ids()
        for file_id, (block, content) in contents.items():
            for path, ref in iter_references(content):
                target = ref.get("fileID")
                if "guid" in ref or not isinstance(target, int) or target == 0:
                    continue
                if target not in file_ids:
                    issues.append(
                        ValidationIssue(
                            Severity.WARNING,
                            f"Internal reference to non-existent fileID: {target}",
                            file_id=file_id,
                            property_path=path,
                        )
                    )

            if block.stripped:
                continue
            if block.class_id in TRANSFORM_CLASS_IDS:
                issues.extend(self._check_transform(file_id, content, contents))
            elif block.class_id == GAME_OBJECT:
                issues.extend(self._check_components(file_id, content, contents))
        return issues

    def _check_transform(
        self,
        file_id: int,
        content: dict[str, Any],
        contents: dict[int, tuple[UnityBlock, dict[str, Any]]],
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        father_id = _ref_id(content.get("m_Father"))
        # Stripped fathers record added children in the PrefabInstance instead
        if father_id and father_id in contents and not contents[father_id][0].stripped:
            father_children = _children(contents[father_id][1])
            if file_id not in father_children:
                issues.append(
                    ValidationIssue(
                        Severity.WARNING,
                        f"Father {father_id} does not list this Transform in m_Children",
                        file_id=file_id,
                        property_path="m_Father",
                    )
                )
        for child_id in _children(content):
            if child_id not in contents:
                continue
            child_block, child_content = contents[child_id]
            if child_block.stripped:
                continue
            if _ref_id(child_content.get("m_Father")) != file_id:
                issues.append(
                    ValidationIssue(
                        Severity.WARNING,
                        f"Child {child_id} has a different m_Father",
                        file_id=file_id,
                        property_path="m_Children",
                    )
                )
        return issues

    def _check_components(
        self,
        file_id: int,
        content: dict[str, Any],
        contents: dict[int, tuple[UnityBlock, dict[str, Any]]],
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for entry in content.get("m_Component") or []:
            component_id = _ref_id(entry.get("component")) if isinstance(entry, dict) else None
            if not component_id or component_id not in contents:
                continue
            owner = _ref_id(contents[component_id][1].get("m_GameObject"))
            if owner != file_id:
                issues.append(
                    ValidationIssue(
                        Severity.WARNING,
                        f"Component {component_id} belongs to GameObject {owner}",
                        file_id=file_id,
                        property_path="m_Component",
                    )
                )
        return issues


def _ref_id(value: Any) -> int | None:
    if isinstance(value, dict) and isinstance(value.get("fileID"), int):
        return value["fileID"]
    return None


def _children(content: dict[str, Any]) -> list[int]:
    return [i for i in (_ref_id(c) for c in content.get("m_Children") or []) if i]


def validate_file(path: str | Path, strict: bool = False) -> ValidationResult:
    """Convenience function to run every check on a file.

    Args:
        path: Path to the Unity YAML file
        strict: Treat warnings as errors

    Returns:
        ValidationResult
    """
    return DocumentValidator(strict=strict).validate_file(path)
