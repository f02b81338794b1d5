import os
from pathlib import Path

UNITYEDIT_PROJECT = os.environ.get("UNITYEDIT_PROJECT") or None
UNITYEDIT_GUID_CACHE = Path(
    os.environ.get("UNITYEDIT_GUID_CACHE", str(Path(".unityedit") / "guid-cache.json"))
)
UNITYEDIT_LOG_LEVEL = os.environ.get("UNITYEDIT_LOG_LEVEL", "WARNING").upper()
UNITYEDIT_KEEP_BACKUP = os.environ.get("UNITYEDIT_KEEP_BACKUP", "").lower() in ("1", "true", "yes")


def guid_cache_path(project_root: Path) -> Path:
    if UNITYEDIT_GUID_CACHE.is_absolute():
        return UNITYEDIT_GUID_CACHE
    return project_root / UNITYEDIT_GUID_CACHE
