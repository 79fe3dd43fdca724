"""StoreConfig: project-local config for the flat-file record store.

Default layout (all relative to the project root):

    flatstore.toml        # project config
    .env                  # optional: FLATSTORE_DB_DIR
    db/
        sayings/
            lastId.txt    # identity counter
            <id>.json     # one file per record
            data.json     # snapshot, rebuilt on demand

flatstore.toml example:

    [store]
    db_dir = "db"
    table = "sayings"
    skip_malformed = false   # true: log and skip unparseable record files

    [log]
    level = "WARNING"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "flatstore.toml"
_DEFAULT_DB_DIR = "db"
_DEFAULT_TABLE = "sayings"
_DEFAULT_LOG_LEVEL = "WARNING"
_DB_DIR_ENV = "FLATSTORE_DB_DIR"


@dataclass
class StoreConfig:
    """Resolved configuration for a store project."""

    root: Path                      # directory that contains flatstore.toml
    db_dir: Path = field(default_factory=Path)
    table: str = _DEFAULT_TABLE
    skip_malformed: bool = False
    log_level: str = _DEFAULT_LOG_LEVEL

    @property
    def table_dir(self) -> Path:
        return self.db_dir / self.table


def _load_env(root: Path) -> dict[str, str]:
    """Read KEY=VALUE pairs from <root>/.env (only FLATSTORE_DB_DIR is consulted).

    Blank lines and # comments are ignored; surrounding quotes are stripped.
    """
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def load_config(root: Path | str | None = None) -> StoreConfig:
    """Load flatstore.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    store_section = raw.get("store", {})
    log_section = raw.get("log", {})

    # Process env wins over .env, .env wins over flatstore.toml
    env = _load_env(root_path)
    db_rel = (
        os.environ.get(_DB_DIR_ENV)
        or env.get(_DB_DIR_ENV)
        or str(store_section.get("db_dir", _DEFAULT_DB_DIR))
    )

    table = str(store_section.get("table", _DEFAULT_TABLE))
    if not table or "/" in table or table in (".", ".."):
        msg = f"Invalid table name in {config_path}: {table!r}"
        raise ValueError(msg)

    return StoreConfig(
        root=root_path,
        db_dir=root_path / db_rel,
        table=table,
        skip_malformed=bool(store_section.get("skip_malformed", False)),
        log_level=str(log_section.get("level", _DEFAULT_LOG_LEVEL)).upper(),
    )


def _find_root(start: Path) -> Path:
    """Return the nearest directory at or above start holding flatstore.toml.

    Falls back to start itself, so a bare directory gets the default db/ layout.
    """
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, table: str | None = None) -> Path:
    """Write a default flatstore.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"flatstore.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[store]
# db_dir = "db"           # default; FLATSTORE_DB_DIR (env or .env) overrides
table = "{table or _DEFAULT_TABLE}"
# skip_malformed = false  # true: log and skip unparseable record files in listings

# [log]
# level = "WARNING"
"""
    config_path.write_text(content, encoding="utf-8")
    return config_path
