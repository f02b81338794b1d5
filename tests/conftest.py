"""Shared fixtures for unityedit tests."""

import logging
import random
import shutil
from pathlib import Path

import pytest

from unityedit.asset_tracker import GUIDIndex
from unityedit.parser import UnityDocument

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ENEMY_GUID = "cccccccccccccccccccccccccccccccc"


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs so they never outlive a test's streams."""
    yield
    package_logger = logging.getLogger("unityedit")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def rng():
    """Seeded random source for reproducible fileIDs."""
    return random.Random(1234)


@pytest.fixture
def basic_scene(tmp_path):
    """Writable copy of the basic scene."""
    path = tmp_path / "basic_scene.unity"
    shutil.copy(FIXTURES_DIR / "basic_scene.unity", path)
    return path


@pytest.fixture
def basic_doc():
    return UnityDocument.load(FIXTURES_DIR / "basic_scene.unity")


@pytest.fixture
def unity_project(tmp_path):
    """Minimal Unity project holding the Enemy prefab and a scene instancing it."""
    assets = tmp_path / "Assets"
    assets.mkdir()
    for name in ("Enemy.prefab", "Enemy.prefab.meta", "prefab_scene.unity"):
        shutil.copy(FIXTURES_DIR / name, assets / name)
    return tmp_path


@pytest.fixture
def prefab_scene(unity_project):
    return unity_project / "Assets" / "prefab_scene.unity"


@pytest.fixture
def resolver(unity_project):
    """GUID index that knows only the Enemy prefab."""
    index = GUIDIndex(project_root=unity_project)
    index.add(ENEMY_GUID, Path("Assets/Enemy.prefab"))
    return index
