"""Per-table directory of flat record files.

RecordStore is the public API:
    store = RecordStore("/path/to/db", "sayings")
    saying = store.save(Saying("Know thyself", "Socrates"))   # id assigned
    store.find_by_id(saying.id)
    store.find_by_author_like("Soc%")
    store.rebuild_snapshot()

Table layout:
    <base>/<table>/
        lastId.txt      # identity counter (see flatstore.ids)
        .lock           # flock target for writers
        <id>.json       # one record per file, id == filename stem
        data.json       # snapshot of every record, only refreshed by rebuild_snapshot()

The per-record files are the source of truth. data.json is a cache and goes
stale after any write until rebuild_snapshot() runs again.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from flatstore.codec import decode, decode_list, encode, encode_list
from flatstore.errors import MalformedRecord, RecordNotFound
from flatstore.ids import LAST_ID_FILENAME, LOCK_FILENAME, IdAllocator
from flatstore.models import Record, Saying
from flatstore.query import match_like

if TYPE_CHECKING:
    from collections.abc import Callable

    from flatstore.config import StoreConfig

logger = logging.getLogger("flatstore.store")

SNAPSHOT_FILENAME = "data.json"
_RECORD_SUFFIX = ".json"

R = TypeVar("R", bound=Record)


class RecordStore(Generic[R]):
    """Flat-file store for one record type."""

    def __init__(
        self,
        base_dir: Path | str,
        table: str = "sayings",
        record_cls: type[R] = Saying,  # type: ignore[assignment]
        *,
        skip_malformed: bool = False,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.table = table
        self.record_cls = record_cls
        self.skip_malformed = skip_malformed
        self.ids = IdAllocator(self.table_dir)

    @classmethod
    def from_config(cls, cfg: StoreConfig) -> RecordStore[Saying]:
        return cls(cfg.db_dir, cfg.table, Saying, skip_malformed=cfg.skip_malformed)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def table_dir(self) -> Path:
        return self.base_dir / self.table

    @property
    def snapshot_path(self) -> Path:
        return self.table_dir / SNAPSHOT_FILENAME

    def _record_path(self, record_id: int) -> Path:
        return self.table_dir / f"{record_id}{_RECORD_SUFFIX}"

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, record: R) -> R:
        """Insert a transient record, or overwrite a persisted one.

        A persisted record whose file is gone (deleted since it was loaded)
        raises RecordNotFound from update(); save never re-creates it.
        """
        if record.id == 0:
            return self.insert(record)
        return self.update(record)

    def insert(self, record: R) -> R:
        """Assign the next id to a transient record and write its file."""
        if record.id != 0:
            msg = f"Record already persisted with id {record.id}"
            raise ValueError(msg)
        # Fail on unencodable content before an id is spent
        encode(record.to_map())

        with self.ids.lock():
            record.id = self.ids.allocate()
            try:
                self._write(record)
            except OSError:
                # The id stays issued; the counter never goes back
                logger.warning("failed to write %s/%d, id abandoned", self.table, record.id)
                record.id = 0
                raise
        logger.info("inserted %s/%d", self.table, record.id)
        return record

    def update(self, record: R) -> R:
        """Overwrite the file of an already persisted record."""
        if record.id == 0:
            msg = "Cannot update a record that was never saved"
            raise ValueError(msg)
        encode(record.to_map())
        with self.ids.lock():
            if not self._record_path(record.id).is_file():
                raise RecordNotFound(record.id)
            self._write(record)
        logger.info("updated %s/%d", self.table, record.id)
        return record

    def _write(self, record: R) -> None:
        """Write one record file atomically (tmp + rename)."""
        self.table_dir.mkdir(parents=True, exist_ok=True)
        path = self._record_path(record.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(encode(record.to_map()), encoding="utf-8")
        tmp.replace(path)

    def delete(self, record: R) -> None:
        """Remove the record's file. Missing files are not an error."""
        self.delete_by_id(record.id)

    def delete_by_id(self, record_id: int) -> bool:
        """Remove <id>.json. Returns False if there was nothing to remove."""
        try:
            self._record_path(record_id).unlink()
        except FileNotFoundError:
            return False
        logger.info("deleted %s/%d", self.table, record_id)
        return True

    def clear(self, *, reset_ids: bool = False) -> None:
        """Remove every record and the snapshot.

        The identity counter survives unless reset_ids is set, in which case
        lastId.txt goes too and ids start again from 1. The lock file always
        stays so writers waiting on it keep locking the same inode.
        """
        if not self.table_dir.exists():
            return
        keep = {LOCK_FILENAME} if reset_ids else {LAST_ID_FILENAME, LOCK_FILENAME}
        with self.ids.lock():
            for entry in self.table_dir.iterdir():
                if entry.name in keep:
                    continue
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        logger.info("cleared %s%s", self.table_dir, " (ids reset)" if reset_ids else "")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _load(self, path: Path) -> R:
        record = self.record_cls.from_map(decode(_read_text(path)))
        if path.stem != str(record.id):
            msg = f"{path.name} holds id {record.id}"
            raise MalformedRecord(msg)
        return record

    def find_by_id(self, record_id: int) -> R | None:
        """Return the record or None. Unparseable files raise MalformedRecord."""
        if record_id <= 0:
            return None
        path = self._record_path(record_id)
        if not path.is_file():
            return None
        return self._load(path)

    def get_by_id(self, record_id: int) -> R:
        record = self.find_by_id(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    def exists(self, record_id: int) -> bool:
        return record_id > 0 and self._record_path(record_id).is_file()

    def find_all(self) -> list[R]:
        """Load every record file, in directory listing order.

        A malformed file aborts the listing unless skip_malformed is set.
        """
        if not self.table_dir.is_dir():
            return []
        records: list[R] = []
        for path in self.table_dir.iterdir():
            if path.name == SNAPSHOT_FILENAME or not path.name.endswith(_RECORD_SUFFIX):
                continue
            if not path.is_file():
                continue
            try:
                records.append(self._load(path))
            except MalformedRecord as exc:
                if not self.skip_malformed:
                    raise
                logger.warning("skipping malformed record file %s: %s", path, exc)
        return records

    def count(self) -> int:
        return len(self.find_all())

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def rebuild_snapshot(self) -> Path:
        """Rewrite data.json from the current record files."""
        with self.ids.lock():
            records = self.find_all()
            text = encode_list([r.to_map() for r in records])
            tmp = self.snapshot_path.with_suffix(".json.tmp")
            tmp.write_text(text, encoding="utf-8")
            tmp.replace(self.snapshot_path)
        logger.info("rebuilt snapshot %s (%d records)", self.snapshot_path, len(records))
        return self.snapshot_path

    def load_snapshot(self) -> list[R]:
        """Records as of the last rebuild_snapshot(); [] if never built."""
        if not self.snapshot_path.is_file():
            return []
        return [self.record_cls.from_map(m) for m in decode_list(_read_text(self.snapshot_path))]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def find_by_field_like(self, pattern: str, selector: Callable[[R], str] | str) -> list[R]:
        """Wildcard search over one text field (a callable or a field name)."""
        if isinstance(selector, str):
            field_name = selector
            return match_like(pattern, self.find_all(), lambda r: _text_field(r, field_name))
        return match_like(pattern, self.find_all(), selector)

    def find_by_author_like(self, pattern: str) -> list[R]:
        return self.find_by_field_like(pattern, "author")

    def find_by_content_like(self, pattern: str) -> list[R]:
        return self.find_by_field_like(pattern, "content")


def _read_text(path: Path) -> str:
    """Read a record or snapshot file; undecodable bytes count as malformed."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        msg = f"{path.name}: {exc}"
        raise MalformedRecord(msg) from exc


def _text_field(record: Record, name: str) -> str:
    value: Any = record.to_map().get(name)
    if not isinstance(value, str):
        msg = f"{type(record).__name__} has no text field {name!r}"
        raise KeyError(msg)
    return value
