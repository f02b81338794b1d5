"""Command-line interface for unityedit.

Every command prints one JSON object to stdout, ``{"success": true,
"file_path": ..., ...}`` on success or ``{"success": false, "error": ...,
"error_kind": ...}`` on failure, and exits with 0 or 1 accordingly.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import click

from unityedit import __version__, config, editor, prefab
from unityedit.asset_tracker import (
    ProjectGUIDResolver,
    build_guid_index,
    find_unity_project_root,
    write_guid_cache,
)
from unityedit.commit import failure_result, run_action, run_operation
from unityedit.errors import InvalidInputError, NotFoundError
from unityedit.logging_utils import setup_logging
from unityedit.validator import validate_file

FILE_ARGUMENT = click.argument("file", type=click.Path(dir_okay=False, path_type=Path))


def _emit(result: dict[str, Any]) -> None:
    click.echo(json.dumps(result, indent=2))
    if not result.get("success"):
        sys.exit(1)


def _project_root(ctx: click.Context) -> Path | None:
    return ctx.obj.get("project") if ctx.obj else None


def _resolver(ctx: click.Context, file: Path) -> ProjectGUIDResolver:
    return ProjectGUIDResolver.for_file(file.resolve(), project_root=_project_root(ctx))


@click.group()
@click.version_option(version=__version__, prog_name="unityedit")
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages to stderr")
@click.option(
    "--project",
    type=click.Path(file_okay=False, path_type=Path),
    help="Unity project root for GUID lookups (auto-detected if not specified)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, project: Path | None) -> None:
    """Unity YAML structural editor.

    Edits Unity scene and prefab files (.unity, .prefab) in place without
    opening the editor, keeping fileID references consistent.
    """
    setup_logging(logging.DEBUG if verbose else config.UNITYEDIT_LOG_LEVEL)
    if project is None and config.UNITYEDIT_PROJECT:
        project = Path(config.UNITYEDIT_PROJECT)
    ctx.obj = {"project": project}


# Hierarchy


@main.command()
@FILE_ARGUMENT
@click.argument("name")
@click.option("--parent", help="Parent GameObject name, GameObject fileID or Transform fileID")
def create(file: Path, name: str, parent: str | None) -> None:
    """Create an empty GameObject.

    Examples:

        # Create at the scene root
        unityedit create Scene.unity Enemy

        # Create under another object
        unityedit create Scene.unity Weapon --parent Player
    """
    _emit(run_operation(file, editor.create_game_object, name, parent))


@main.command()
@FILE_ARGUMENT
@click.argument("target")
def delete(file: Path, target: str) -> None:
    """Delete a GameObject with its components and children."""
    _emit(run_operation(file, editor.delete_game_object, target))


@main.command()
@FILE_ARGUMENT
@click.argument("target")
@click.option("--name", "new_name", help='Name of the copy (default: "<name> (1)")')
def duplicate(file: Path, target: str, new_name: str | None) -> None:
    """Duplicate a GameObject and its whole hierarchy."""
    _emit(run_operation(file, editor.duplicate_game_object, target, new_name))


@main.command()
@FILE_ARGUMENT
@click.argument("target")
@click.argument("new_parent")
def reparent(file: Path, target: str, new_parent: str) -> None:
    """Move a GameObject under NEW_PARENT ("root" for the scene root)."""
    _emit(run_operation(file, editor.reparent_game_object, target, new_parent))


# Components


@main.command(name="add-component")
@FILE_ARGUMENT
@click.argument("target")
@click.argument("component")
@click.pass_context
def add_component(ctx: click.Context, file: Path, target: str, component: str) -> None:
    """Add a built-in component or a script to a GameObject.

    COMPONENT is a built-in class name (e.g. BoxCollider), a script name,
    a .cs path or a script GUID.
    """
    resolver = _resolver(ctx, file)
    _emit(
        run_operation(
            file,
            editor.add_component,
            target,
            component,
            resolver=resolver,
            project_root=resolver.project_root,
        )
    )


@main.command(name="remove-component")
@FILE_ARGUMENT
@click.argument("file_id")
def remove_component(file: Path, file_id: str) -> None:
    """Remove the component with FILE_ID."""
    _emit(run_operation(file, editor.remove_component, file_id))


@main.command(name="copy-component")
@FILE_ARGUMENT
@click.argument("file_id")
@click.argument("target")
def copy_component(file: Path, file_id: str, target: str) -> None:
    """Copy the component with FILE_ID onto the GameObject TARGET."""
    _emit(run_operation(file, editor.copy_component, file_id, target))


# Edits


@main.command()
@FILE_ARGUMENT
@click.argument("target")
@click.argument("property_name", metavar="PROPERTY")
@click.argument("value")
def edit(file: Path, target: str, property_name: str, value: str) -> None:
    """Set a GameObject property (Name, TagString, IsActive, Layer, ...)."""
    _emit(run_operation(file, editor.edit_game_object, target, property_name, value))


@main.command(name="edit-batch")
@FILE_ARGUMENT
@click.argument("edits", type=click.File("r"))
def edit_batch(file: Path, edits: TextIO) -> None:
    """Apply several GameObject edits from a JSON file ("-" for stdin).

    The JSON is a list of {"target": ..., "property": ..., "value": ...}
    objects; either all of them are written or none.
    """
    try:
        data = json.load(edits)
    except json.JSONDecodeError as e:
        _emit(failure_result(file, InvalidInputError(f"Invalid edits JSON: {e}")))
        return
    _emit(run_operation(file, editor.edit_batch, data))


@main.command(name="edit-transform")
@FILE_ARGUMENT
@click.argument("transform_id")
@click.option("--position", help="Local position as x,y,z")
@click.option("--rotation", help="Local rotation as Euler degrees x,y,z")
@click.option("--scale", help="Local scale as x,y,z")
def edit_transform(
    file: Path,
    transform_id: str,
    position: str | None,
    rotation: str | None,
    scale: str | None,
) -> None:
    """Set the local position, rotation or scale of a Transform."""
    _emit(run_operation(file, editor.edit_transform, transform_id, position, rotation, scale))


@main.command(name="edit-component")
@FILE_ARGUMENT
@click.argument("file_id")
@click.argument("property_name", metavar="PROPERTY")
@click.argument("value")
def edit_component(file: Path, file_id: str, property_name: str, value: str) -> None:
    """Set PROPERTY of the block with FILE_ID.

    PROPERTY may be a field (m_Mass), a struct field (m_Center.x) or an
    array element (m_Materials.Array.data[0]).
    """
    _emit(run_operation(file, editor.edit_component, file_id, property_name, value))


# Prefabs


@main.command(name="create-variant")
@click.argument("source", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--name", help='Name of the variant root (default: "<root name> Variant")')
def create_variant(source: Path, output: Path, name: str | None) -> None:
    """Create a prefab variant of SOURCE at OUTPUT (with a .meta file)."""
    _emit(run_action(output, prefab.create_variant, source, output, name))


@main.command(name="unpack-prefab")
@FILE_ARGUMENT
@click.argument("instance")
@click.pass_context
def unpack_prefab(ctx: click.Context, file: Path, instance: str) -> None:
    """Replace the PrefabInstance INSTANCE (fileID or name) with plain objects."""
    _emit(run_operation(file, prefab.unpack_prefab, instance, _resolver(ctx, file)))


@main.command(name="delete-prefab-instance")
@FILE_ARGUMENT
@click.argument("instance")
def delete_prefab_instance(file: Path, instance: str) -> None:
    """Delete the PrefabInstance INSTANCE and everything added to it."""
    _emit(run_operation(file, prefab.delete_prefab_instance, instance))


# Checks and project data


@main.command()
@FILE_ARGUMENT
@click.option("--strict", is_flag=True, help="Treat warnings as errors")
def validate(file: Path, strict: bool) -> None:
    """Check a Unity YAML file for structural problems."""
    result = validate_file(file, strict=strict)
    _emit(
        {
            "success": result.is_valid,
            "file_path": str(file),
            "is_valid": result.is_valid,
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "issues": [issue.to_dict() for issue in result.issues],
        }
    )


@main.command()
@click.argument("project", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--include-packages", is_flag=True, help="Also index the Packages folder")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Cache file (default: .unityedit/guid-cache.json in the project)",
)
@click.pass_context
def index(ctx: click.Context, project: Path | None, include_packages: bool, output: Path | None) -> None:
    """Build the GUID cache for a Unity project."""
    root = project or _project_root(ctx) or find_unity_project_root(Path.cwd())
    if root is None or not (root / "Assets").is_dir():
        _emit(failure_result(root or Path.cwd(), NotFoundError("No Unity project (Assets folder) found")))
        return

    def build() -> dict[str, Any]:
        guid_index = build_guid_index(root, include_packages=include_packages)
        cache_path = write_guid_cache(guid_index, output or config.guid_cache_path(root))
        return {"cache_path": str(cache_path), "entries": len(guid_index)}

    _emit(run_action(root, build))


if __name__ == "__main__":
    main()
