"""Commit protocol: validate, then atomically replace the file.

Write sequence for ``Foo.prefab``:
1. write the new content to ``Foo.prefab.tmp``
2. rename ``Foo.prefab`` to ``Foo.prefab.bak``
3. rename ``Foo.prefab.tmp`` to ``Foo.prefab``
4. delete the backup (unless UNITYEDIT_KEEP_BACKUP is set)

A failure after step 2 restores the original from the backup, so the
target is never left missing or half-written.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable

from unityedit import config
from unityedit.errors import IOFailureError, UnityEditError, ValidationFailedError
from unityedit.parser import UnityDocument
from unityedit.validator import DocumentValidator, ValidationResult

logger = logging.getLogger(__name__)

Operation = Callable[..., dict[str, Any]]


def _sibling(path: Path, suffix: str) -> Path:
    return path.with_name(path.name + suffix)


def atomic_write(path: Path, content: str, keep_backup: bool | None = None) -> int:
    """Replace ``path`` with ``content`` via temp file and backup rename.

    Args:
        path: Target file
        content: New file content
        keep_backup: Keep ``<path>.bak`` afterwards (default from config)

    Returns:
        Number of bytes written

    Raises:
        IOFailureError: If any step fails (the original is restored)
    """
    path = Path(path)
    if keep_backup is None:
        keep_backup = config.UNITYEDIT_KEEP_BACKUP
    tmp_path = _sibling(path, ".tmp")
    bak_path = _sibling(path, ".bak")
    data = content.encode("utf-8")

    try:
        tmp_path.write_bytes(data)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise IOFailureError(f"Failed to write temporary file {tmp_path}: {e}") from e

    had_original = path.exists()
    try:
        if had_original:
            os.replace(path, bak_path)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.warning("Write of %s failed, restoring backup", path)
        if had_original and bak_path.exists():
            os.replace(bak_path, path)
        tmp_path.unlink(missing_ok=True)
        raise IOFailureError(f"Failed to replace {path}: {e}") from e

    if had_original and not keep_backup:
        bak_path.unlink(missing_ok=True)
    logger.debug("Wrote %d bytes to %s", len(data), path)
    return len(data)


def validate_for_commit(doc: UnityDocument, label: str) -> ValidationResult:
    """Run the pre-write checks.

    Raises:
        ValidationFailedError: If the document must not be written
    """
    result = DocumentValidator(check_integrity=False).validate(doc, label=label)
    if not result.is_valid:
        messages = "; ".join(issue.message for issue in result.errors)
        raise ValidationFailedError(f"Validation failed: {messages}", result=result)
    return result


def commit_document(doc: UnityDocument, path: Path | None = None) -> int:
    """Validate ``doc`` and write it to ``path`` (default: where it was loaded)."""
    path = Path(path or doc.source_path)
    validate_for_commit(doc, str(path))
    return atomic_write(path, doc.serialize())


def run_operation(file_path: str | Path, operation: Operation, *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Load a document, apply ``operation`` to it and commit the result.

    ``operation(doc, *args, **kwargs)`` mutates the document and returns
    its result fields. The file is rewritten only when the document
    changed. Expected failures become ``{"success": False, ...}`` results.

    Returns:
        The operation result merged into ``{success, file_path, ...}``
    """
    file_path = Path(file_path)
    try:
        doc = UnityDocument.load(file_path)
        result = operation(doc, *args, **kwargs)
        written = False
        if doc.dirty:
            result["bytes_written"] = commit_document(doc, file_path)
            written = True
        logger.debug("%s on %s done (written=%s)", getattr(operation, "__name__", "operation"), file_path, written)
    except UnityEditError as e:
        return failure_result(file_path, e)
    except OSError as e:
        return failure_result(file_path, IOFailureError(str(e)))
    return {"success": True, "file_path": str(file_path), **result}


def failure_result(file_path: str | Path, error: UnityEditError) -> dict[str, Any]:
    return {"success": False, "file_path": str(file_path), **error.to_dict()}


def run_action(file_path: str | Path, action: Callable[..., dict[str, Any]], *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Run an action that manages its own files (e.g. creating a new asset).

    Returns:
        The action result merged into ``{success, file_path, ...}``
    """
    try:
        result = action(*args, **kwargs)
    except UnityEditError as e:
        return failure_result(file_path, e)
    except OSError as e:
        return failure_result(file_path, IOFailureError(str(e)))
    return {"success": True, "file_path": str(file_path), **result}
