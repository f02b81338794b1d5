"""Unity .meta sidecar files.

Writes the sidecar for assets this tool creates (prefab variants) and
reads GUIDs back out of existing ones.
"""

from __future__ import annotations

import hashlib
import logging
import re
import uuid
from enum import Enum
from pathlib import Path

from unityedit.errors import AlreadyExistsError, IOFailureError

logger = logging.getLogger(__name__)

META_GUID_PATTERN = re.compile(r"^guid:\s*([a-f0-9]{32})\s*$", re.MULTILINE)


class AssetType(Enum):
    """Importer written into the sidecar, keyed by asset kind."""

    PREFAB = "PrefabImporter"
    DEFAULT = "DefaultImporter"

    @classmethod
    def for_path(cls, path: Path) -> AssetType:
        return cls.PREFAB if path.suffix.lower() == ".prefab" else cls.DEFAULT


def generate_guid(seed: str | None = None) -> str:
    """Generate a 32-character lowercase hex GUID.

    A seed makes the result deterministic.
    """
    if seed is not None:
        return hashlib.md5(seed.encode("utf-8")).hexdigest()
    return uuid.uuid4().hex


def generate_meta_content(
    path: Path,
    asset_type: AssetType | None = None,
    guid: str | None = None,
) -> str:
    """Sidecar text for ``path``, with a fresh GUID unless one is given."""
    importer = (asset_type or AssetType.for_path(path)).value
    lines = [
        "fileFormatVersion: 2",
        f"guid: {guid or generate_guid()}",
        f"{importer}:",
        "  externalObjects: {}",
        "  userData: ",
        "  assetBundleName: ",
        "  assetBundleVariant: ",
    ]
    return "\n".join(lines) + "\n"


def meta_path_for(path: Path) -> Path:
    return path.with_name(path.name + ".meta")


def write_meta_file(path: Path, asset_type: AssetType | None = None, guid: str | None = None) -> Path:
    """Write the .meta file next to ``path``.

    Returns:
        Path to the written .meta file

    Raises:
        AlreadyExistsError: If the .meta file already exists
        IOFailureError: If the file cannot be written
    """
    path = Path(path)
    meta_path = meta_path_for(path)
    if meta_path.exists():
        raise AlreadyExistsError(f"Meta file already exists: {meta_path}")

    try:
        meta_path.write_text(generate_meta_content(path, asset_type, guid), encoding="utf-8", newline="\n")
    except OSError as e:
        raise IOFailureError(f"Failed to write meta file: {e}") from e
    logger.debug("Wrote %s", meta_path)
    return meta_path


def get_guid_from_meta(meta_path: Path) -> str | None:
    """GUID recorded in a .meta file, or None if unreadable or absent."""
    try:
        content = meta_path.read_text(encoding="utf-8")
    except OSError:
        return None
    match = META_GUID_PATTERN.search(content)
    return match.group(1) if match else None
