"""Identity counter: lastId.txt holds the highest id ever issued for a table.

The counter and the record files are separate pieces of state, so every
allocate-then-write sequence runs under an exclusive flock on <table>/.lock.
flock locks belong to the open file description, which serializes threads
that open the lock file separately as well as other processes.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("flatstore.ids")

LAST_ID_FILENAME = "lastId.txt"
LOCK_FILENAME = ".lock"


class IdAllocator:
    """Persistent, monotonically increasing id source for one table dir."""

    def __init__(self, table_dir: Path | str) -> None:
        self.table_dir = Path(table_dir)

    @property
    def path(self) -> Path:
        return self.table_dir / LAST_ID_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.table_dir / LOCK_FILENAME

    @contextlib.contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the table's exclusive write lock for the duration of the block."""
        self.table_dir.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open("a") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)

    def load_last_id(self) -> int:
        """Return the stored counter, or 0 when it is missing or unreadable.

        A missing file is the normal first-run state. A present but corrupt
        file also resets to 0; that can re-issue ids, so it is logged.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return 0
        except UnicodeDecodeError:
            logger.warning("corrupt counter in %s (not utf-8), counter reset to 0", self.path)
            return 0
        except OSError:
            logger.warning("cannot read %s, counter reset to 0", self.path, exc_info=True)
            return 0
        try:
            value = int(raw.strip())
        except ValueError:
            logger.warning("corrupt counter in %s (%r), counter reset to 0", self.path, raw)
            return 0
        if value < 0:
            logger.warning("negative counter in %s (%d), counter reset to 0", self.path, value)
            return 0
        return value

    def save_last_id(self, value: int) -> None:
        """Overwrite the counter file (tmp + rename)."""
        self.table_dir.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".txt.tmp")
        tmp.write_text(str(value), encoding="utf-8")
        tmp.replace(self.path)

    def next_id(self) -> int:
        """Allocate the next id and persist it before returning."""
        with self.lock():
            return self.allocate()

    def allocate(self) -> int:
        """Increment and persist the counter. Caller must hold lock()."""
        value = self.load_last_id() + 1
        self.save_last_id(value)
        logger.debug("allocated id %d in %s", value, self.table_dir)
        return value
