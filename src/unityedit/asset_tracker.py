"""Unity project GUID lookup.

Maps asset GUIDs to project-relative paths by reading ``.meta`` sidecar
files, persists that mapping as a JSON cache, and resolves script names
to MonoScript GUIDs for ``add-component``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Protocol

from unityedit import config
from unityedit.errors import IOFailureError, NotFoundError, UnresolvedReferenceError
from unityedit.meta_generator import META_GUID_PATTERN, get_guid_from_meta

logger = logging.getLogger(__name__)

GUID_PATTERN = re.compile(r"^[a-f0-9]{32}$")


class GUIDResolver(Protocol):
    """Anything that can turn a GUID into an asset path."""

    def resolve(self, guid: str) -> Path | None: ...

    def entries(self) -> Iterator[tuple[str, Path]]: ...


@dataclass
class GUIDIndex:
    """Index mapping GUIDs to asset paths."""

    guid_to_path: dict[str, Path] = field(default_factory=dict)
    path_to_guid: dict[Path, str] = field(default_factory=dict)
    project_root: Path | None = None

    def __len__(self) -> int:
        return len(self.guid_to_path)

    def add(self, guid: str, path: Path) -> None:
        self.guid_to_path[guid] = path
        self.path_to_guid[path] = guid

    def get_path(self, guid: str) -> Path | None:
        """Get the asset path for a GUID."""
        return self.guid_to_path.get(guid)

    def get_guid(self, path: Path) -> str | None:
        """Get the GUID for an asset path."""
        if path in self.path_to_guid:
            return self.path_to_guid[path]
        if self.project_root:
            try:
                rel_path = path.relative_to(self.project_root)
            except ValueError:
                return None
            return self.path_to_guid.get(rel_path)
        return None

    def resolve(self, guid: str) -> Path | None:
        """Absolute path of the asset with ``guid``, if indexed."""
        path = self.get_path(guid)
        if path is None:
            return None
        if not path.is_absolute() and self.project_root is not None:
            return self.project_root / path
        return path

    def entries(self) -> Iterator[tuple[str, Path]]:
        return iter(self.guid_to_path.items())

    def to_dict(self) -> dict[str, str]:
        return {guid: path.as_posix() for guid, path in sorted(self.guid_to_path.items())}


def find_unity_project_root(start_path: Path) -> Path | None:
    """Find the Unity project root by looking for Assets folder.

    Args:
        start_path: Starting path to search from

    Returns:
        Path to project root (parent of Assets folder), or None if not found
    """
    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    for _ in range(20):  # Limit search depth
        if (current / "Assets").is_dir():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def build_guid_index(project_root: Path, include_packages: bool = False) -> GUIDIndex:
    """Build an index of all GUIDs in a Unity project.

    Args:
        project_root: Path to Unity project root
        include_packages: Whether to include Packages folder

    Returns:
        GUIDIndex mapping GUIDs to project-relative asset paths
    """
    index = GUIDIndex(project_root=project_root)

    search_paths = [project_root / "Assets"]
    if include_packages:
        search_paths.append(project_root / "Packages")

    for search_path in search_paths:
        if not search_path.is_dir():
            continue
        for meta_path in search_path.rglob("*.meta"):
            try:
                content = meta_path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            match = META_GUID_PATTERN.search(content)
            if not match:
                continue
            asset_path = meta_path.with_suffix("")
            try:
                index.add(match.group(1), asset_path.relative_to(project_root))
            except ValueError:
                index.add(match.group(1), asset_path)

    logger.debug("Indexed %d GUIDs under %s", len(index), project_root)
    return index


def load_guid_cache(cache_path: Path, project_root: Path | None = None) -> GUIDIndex | None:
    """Load a GUID cache JSON file (``{guid: relative_path}``).

    Returns:
        The index, or None if the cache does not exist

    Raises:
        IOFailureError: If the cache exists but is unreadable or malformed
    """
    if not cache_path.is_file():
        return None
    try:
        data = json.loads(cache_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise IOFailureError(f"Failed to read GUID cache {cache_path}: {e}") from e
    if not isinstance(data, dict):
        raise IOFailureError(f"GUID cache {cache_path} is not a JSON object")

    index = GUIDIndex(project_root=project_root)
    for guid, path in data.items():
        index.add(guid, Path(path))
    return index


def write_guid_cache(index: GUIDIndex, cache_path: Path) -> Path:
    """Persist ``index`` as JSON at ``cache_path``."""
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(
            json.dumps(index.to_dict(), indent=2) + "\n", encoding="utf-8", newline="\n"
        )
    except OSError as e:
        raise IOFailureError(f"Failed to write GUID cache {cache_path}: {e}") from e
    return cache_path


class ProjectGUIDResolver:
    """GUID resolver for one Unity project.

    Looks in the JSON cache first; GUIDs missing from it (or a missing
    cache) fall back to one scan of the project's ``.meta`` files.
    """

    def __init__(self, project_root: Path | None, cache_path: Path | None = None):
        self.project_root = project_root
        if cache_path is None and project_root is not None:
            cache_path = config.guid_cache_path(project_root)
        self.cache_path = cache_path
        self._cache: GUIDIndex | None = None
        self._cache_loaded = False
        self._scanned: GUIDIndex | None = None

    @classmethod
    def for_file(cls, file_path: Path, project_root: Path | None = None) -> ProjectGUIDResolver:
        """Resolver for the project containing ``file_path``."""
        if project_root is None and config.UNITYEDIT_PROJECT:
            project_root = Path(config.UNITYEDIT_PROJECT)
        if project_root is None:
            project_root = find_unity_project_root(file_path)
        return cls(project_root)

    @property
    def cache(self) -> GUIDIndex | None:
        if not self._cache_loaded:
            self._cache_loaded = True
            if self.cache_path is not None:
                self._cache = load_guid_cache(self.cache_path, self.project_root)
                if self._cache is None:
                    logger.warning("No GUID cache at %s, scanning .meta files", self.cache_path)
        return self._cache

    def _scan(self) -> GUIDIndex | None:
        if self._scanned is None and self.project_root is not None:
            self._scanned = build_guid_index(self.project_root)
        return self._scanned

    def resolve(self, guid: str) -> Path | None:
        for index in (self.cache, self._scan()):
            if index is not None:
                path = index.resolve(guid)
                if path is not None:
                    return path
        return None

    def entries(self) -> Iterator[tuple[str, Path]]:
        index = self.cache or self._scan()
        return index.entries() if index is not None else iter(())

    def searched_locations(self) -> list[str]:
        locations = []
        if self.cache_path is not None:
            locations.append(str(self.cache_path))
        if self.project_root is not None:
            locations.append(str(self.project_root / "Assets"))
        return locations


def require_path(resolver: GUIDResolver, guid: str) -> Path:
    """Resolve ``guid`` or fail with the locations that were searched.

    Raises:
        UnresolvedReferenceError: If the GUID is unknown
    """
    path = resolver.resolve(guid)
    if path is None:
        searched = getattr(resolver, "searched_locations", lambda: [])()
        where = f" (searched: {', '.join(searched)})" if searched else ""
        raise UnresolvedReferenceError(
            f"GUID {guid} not found in project{where}", guid=guid, searched=searched
        )
    return path


def resolve_script_guid(
    script: str,
    resolver: GUIDResolver | None = None,
    project_root: Path | None = None,
) -> tuple[str, str | None]:
    """Resolve a script reference to its MonoScript GUID.

    Accepted forms, in order: a raw 32-hex GUID; a ``.cs`` path with a
    ``.meta`` sidecar (absolute or relative to the project); a name looked
    up in the GUID cache (exact file stem first, then substring match).

    Returns:
        Tuple of (guid, script path or None)

    Raises:
        NotFoundError: If the script cannot be resolved
    """
    if GUID_PATTERN.match(script.lower()):
        return script.lower(), None

    if script.endswith(".cs"):
        candidates = [Path(script)]
        if project_root is not None and not Path(script).is_absolute():
            candidates.append(project_root / script)
        for candidate in candidates:
            guid = get_guid_from_meta(Path(str(candidate) + ".meta"))
            if guid:
                return guid, str(candidate)

    if resolver is not None:
        stem = Path(script).stem if script.endswith(".cs") else script
        scripts = [(guid, path) for guid, path in resolver.entries() if path.suffix == ".cs"]
        for guid, path in scripts:
            if path.stem == stem:
                return guid, path.as_posix()
        lowered = stem.lower()
        for guid, path in scripts:
            if lowered in path.as_posix().lower():
                return guid, path.as_posix()

    raise NotFoundError(f'Script "{script}" not found (pass a GUID, a .cs path, or a script name)')
