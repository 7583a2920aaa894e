"""
Shared pytest fixtures for tagdb tests.

Every test gets a fresh store under tmp_path; nothing touches ~/.tagdb.
"""

import pytest

from tagdb.config import Options, TagDBConfig
from tagdb.models import Action, EntityKind
from tagdb.store import RelationStore


@pytest.fixture
def cfg(tmp_path):
    """An initialized store configuration rooted in tmp_path."""
    config = TagDBConfig(root=tmp_path / ".tagdb")
    config.ensure_dirs()
    return config


@pytest.fixture
def store(cfg):
    return RelationStore(cfg)


@pytest.fixture
def tag_options():
    return Options(mode=EntityKind.TAG)


@pytest.fixture
def file_options():
    return Options(mode=EntityKind.FILE)


def _add_tags(store, file_name, *tag_names):
    """Create ``file_name`` and tag it with ``tag_names``."""
    _, file_element = store.init(EntityKind.FILE, file_name, create=True)
    for name in tag_names:
        _, tag_element = store.init(EntityKind.TAG, name, create=True)
        store.relate(Action.ADD, file_element, tag_element)
    return file_element


@pytest.fixture
def add_tags(store):
    """Helper: add_tags(file_name, *tag_names) -> file Element."""
    def _add(file_name, *tag_names):
        return _add_tags(store, file_name, *tag_names)
    return _add


@pytest.fixture
def music_store(store):
    """Tags mp3, music; file a tagged +mp3; file b tagged +mp3 +music; file c untagged."""
    _add_tags(store, "a", "mp3")
    _add_tags(store, "b", "mp3", "music")
    _add_tags(store, "c")
    return store


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep TAGDB_DIR and HOME pointing inside tmp_path."""
    monkeypatch.delenv("TAGDB_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
