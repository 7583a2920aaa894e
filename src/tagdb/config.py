"""TagDBConfig: location and settings of a tag store.

Default layout:

    ~/.tagdb/             # global store (or ./.tagdb with --local)
        tagdb.toml        # optional settings
        tags/
            <md5>         # one record per tag
            <md5>.01      # collision slot
            <md5>.trash   # soft-deleted record
        files/
            <md5>

tagdb.toml example:

    [store]
    name = "music"
    # digest = "md5"      # record addressing; only md5 is supported

    [defaults]
    mode = "tags"         # tags | files

Root resolution order: explicit --store, --local (./.tagdb), $TAGDB_DIR, ~/.tagdb.
"""

from __future__ import annotations

import enum
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tagdb.fingerprint import DIGEST_NAME
from tagdb.models import EntityKind

_CONFIG_FILENAME = "tagdb.toml"
_STORE_DIRNAME = ".tagdb"
_ENV_VAR = "TAGDB_DIR"


class Verbosity(enum.IntEnum):
    QUIET = 0
    NORMAL = 1
    DEBUG = 2


@dataclass
class Options:
    """Per-invocation settings, passed explicitly to every operation."""

    mode: EntityKind = EntityKind.TAG
    verbosity: Verbosity = Verbosity.NORMAL
    trash: bool = False

    @property
    def quiet(self) -> bool:
        return self.verbosity is Verbosity.QUIET


@dataclass
class TagDBConfig:
    """Resolved configuration for a tag store."""

    root: Path                      # directory holding tags/ and files/
    name: str = ""
    digest: str = DIGEST_NAME
    default_mode: EntityKind = EntityKind.TAG
    local: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    @property
    def tags_dir(self) -> Path:
        return self.root / EntityKind.TAG.dirname

    @property
    def files_dir(self) -> Path:
        return self.root / EntityKind.FILE.dirname

    @property
    def base_dir(self) -> Path | None:
        """Directory file names are stored relative to (local stores only)."""
        return self.root.parent if self.local else None

    def dir_for(self, kind: EntityKind) -> Path:
        return self.root / kind.dirname

    def is_initialized(self) -> bool:
        return self.tags_dir.is_dir() and self.files_dir.is_dir()

    def ensure_dirs(self) -> bool:
        """Create root, tags/ and files/. Returns True if anything was created."""
        created = not self.is_initialized()
        self.tags_dir.mkdir(parents=True, exist_ok=True)
        self.files_dir.mkdir(parents=True, exist_ok=True)
        return created


def _default_root(local: bool) -> Path:
    if local:
        return Path.cwd() / _STORE_DIRNAME
    env_dir = os.environ.get(_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / _STORE_DIRNAME


def _parse_mode(value: str) -> EntityKind:
    try:
        return EntityKind(value)
    except ValueError:
        msg = f"Invalid default mode {value!r} in {_CONFIG_FILENAME} (expected 'tags' or 'files')"
        raise ValueError(msg) from None


def load_config(root: Path | str | None = None, *, local: bool = False) -> TagDBConfig:
    """Load tagdb.toml from the store root (settings are optional)."""
    root_path = Path(root).expanduser() if root else _default_root(local)
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    store_section = raw.get("store", {})
    defaults_section = raw.get("defaults", {})

    digest_name = str(store_section.get("digest", DIGEST_NAME)).lower()
    if digest_name != DIGEST_NAME:
        msg = f"Unsupported digest {digest_name!r} in {config_path} (only {DIGEST_NAME!r} is supported)"
        raise ValueError(msg)

    return TagDBConfig(
        root=root_path,
        name=store_section.get("name", root_path.name),
        digest=digest_name,
        default_mode=_parse_mode(defaults_section.get("mode", EntityKind.TAG.value)),
        local=local,
        extra={k: v for k, v in raw.items() if k not in ("store", "defaults")},
    )


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default tagdb.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"tagdb.toml already exists at {config_path}"
        raise FileExistsError(msg)

    store_name = name or root.name
    content = f"""\
[store]
name = "{store_name}"
# digest = "md5"      # record addressing; changing it orphans existing records

# [defaults]
# mode = "tags"       # tags | files: kind that commands apply to without --tags/--files
"""
    root.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content, encoding="utf-8")
    return config_path
