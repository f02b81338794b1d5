"""Unity YAML structural editor.

Adds, removes, duplicates, reparents and edits objects in Unity scene and
prefab files through scoped text edits, keeping the fileID reference graph
intact and every untouched block byte for byte.
"""

from importlib.metadata import version

__version__ = version("unityedit")

from unityedit.errors import (
    AlreadyExistsError,
    ErrorKind,
    InvalidInputError,
    IOFailureError,
    NotFoundError,
    StructuralViolationError,
    UnityEditError,
    UnresolvedReferenceError,
    ValidationFailedError,
)
from unityedit.parser import UnityBlock, UnityDocument
from unityedit.file_ids import FileIDAllocator, generate_file_id
from unityedit.references import FileReference, remap_references
from unityedit.hierarchy import Subtree, collect_subtree
from unityedit.editor import (
    add_component,
    copy_component,
    create_game_object,
    delete_game_object,
    duplicate_game_object,
    edit_batch,
    edit_component,
    edit_game_object,
    edit_transform,
    remove_component,
    reparent_game_object,
)
from unityedit.prefab import create_variant, delete_prefab_instance, unpack_prefab
from unityedit.commit import atomic_write, commit_document, run_operation
from unityedit.validator import DocumentValidator, ValidationResult, validate_file
from unityedit.asset_tracker import GUIDIndex, ProjectGUIDResolver

__all__ = [
    # Errors
    "ErrorKind",
    "UnityEditError",
    "NotFoundError",
    "AlreadyExistsError",
    "InvalidInputError",
    "StructuralViolationError",
    "UnresolvedReferenceError",
    "ValidationFailedError",
    "IOFailureError",
    # Document model
    "UnityBlock",
    "UnityDocument",
    "FileIDAllocator",
    "generate_file_id",
    "FileReference",
    "remap_references",
    "Subtree",
    "collect_subtree",
    # Operations
    "create_game_object",
    "delete_game_object",
    "duplicate_game_object",
    "reparent_game_object",
    "add_component",
    "remove_component",
    "copy_component",
    "edit_game_object",
    "edit_batch",
    "edit_transform",
    "edit_component",
    "create_variant",
    "unpack_prefab",
    "delete_prefab_instance",
    # Commit and validation
    "atomic_write",
    "commit_document",
    "run_operation",
    "DocumentValidator",
    "ValidationResult",
    "validate_file",
    # GUID lookup
    "GUIDIndex",
    "ProjectGUIDResolver",
]
