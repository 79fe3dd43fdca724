"""
Tests for RecordStore against a temporary directory.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from flatstore.codec import encode
from flatstore.errors import MalformedRecord, RecordNotFound, UnsafeText
from flatstore.models import Saying
from flatstore.store import RecordStore


@pytest.fixture()
def store(tmp_path):
    return RecordStore(tmp_path / "db", "sayings")


def _names(store):
    return sorted(p.name for p in store.table_dir.iterdir())


def test_save_assigns_id_and_writes_file(store):
    saying = store.save(Saying("Know thyself", "Socrates"))
    assert saying.id == 1
    path = store.table_dir / "1.json"
    assert path.read_text() == '{\n    "id": 1,\n    "content": "Know thyself",\n    "author": "Socrates"\n}'


def test_second_save_does_not_allocate(store):
    saying = store.save(Saying("Know thyself", "Socrates"))
    before = _names(store)
    store.save(saying)
    assert saying.id == 1
    assert _names(store) == before
    assert store.ids.load_last_id() == 1


def test_save_overwrites_persisted_record(store):
    saying = store.save(Saying("Know thyself", "Socrates"))
    saying.modify("The unexamined life", "Socrates")
    store.save(saying)
    assert store.find_by_id(1).content == "The unexamined life"


def test_insert_rejects_persisted_record(store):
    saying = store.insert(Saying("a", "b"))
    with pytest.raises(ValueError):
        store.insert(saying)


def test_update_requires_existing_file(store):
    with pytest.raises(ValueError):
        store.update(Saying("a", "b"))
    with pytest.raises(RecordNotFound):
        store.update(Saying("a", "b", id=99))


def test_unsafe_text_does_not_spend_an_id(store):
    with pytest.raises(UnsafeText):
        store.save(Saying('say "cheese"', "x"))
    assert store.ids.load_last_id() == 0
    assert store.save(Saying("cheese", "x")).id == 1


def test_find_by_id(store):
    store.save(Saying("one", "A"))
    second = store.save(Saying("two", "B"))
    assert store.find_by_id(2) == second
    assert store.find_by_id(3) is None
    assert store.find_by_id(0) is None
    assert store.exists(2)
    assert not store.exists(3)


def test_get_by_id_raises_when_missing(store):
    with pytest.raises(RecordNotFound) as info:
        store.get_by_id(5)
    assert info.value.record_id == 5


def test_find_by_id_on_missing_table(store):
    assert store.find_by_id(1) is None
    assert store.find_all() == []


def test_find_all_ignores_snapshot_and_other_files(store):
    store.save(Saying("one", "A"))
    store.save(Saying("two", "B"))
    store.rebuild_snapshot()
    (store.table_dir / "notes.txt").write_text("ignore me")
    records = store.find_all()
    assert sorted(r.id for r in records) == [1, 2]
    assert store.count() == 2


def test_find_all_aborts_on_malformed_file(store):
    store.save(Saying("one", "A"))
    (store.table_dir / "2.json").write_text("garbage")
    with pytest.raises(MalformedRecord):
        store.find_all()


def test_find_all_can_skip_malformed_files(tmp_path, caplog):
    store = RecordStore(tmp_path, "sayings", skip_malformed=True)
    store.save(Saying("one", "A"))
    (store.table_dir / "2.json").write_text('{"id": x}')
    with caplog.at_level(logging.WARNING, logger="flatstore.store"):
        records = store.find_all()
    assert [r.id for r in records] == [1]
    assert "2.json" in caplog.text


def test_filename_must_match_id(store):
    store.table_dir.mkdir(parents=True)
    (store.table_dir / "3.json").write_text(encode({"id": 4, "content": "c", "author": "a"}))
    with pytest.raises(MalformedRecord):
        store.find_by_id(3)


def test_missing_field_is_malformed(store):
    store.table_dir.mkdir(parents=True)
    (store.table_dir / "1.json").write_text('{"id": 1, "content": "c"}')
    with pytest.raises(MalformedRecord):
        store.find_by_id(1)


def test_save_after_delete_raises_not_found(store):
    saying = store.save(Saying("one", "A"))
    store.delete(saying)
    with pytest.raises(RecordNotFound):
        store.save(saying)
    assert store.find_all() == []
    assert store.ids.load_last_id() == 1


def test_write_failure_after_allocation(store, monkeypatch):
    real_replace = Path.replace

    def fail_replace(self, target):
        if Path(target).suffix == ".json":
            raise PermissionError("read-only table")
        return real_replace(self, target)

    monkeypatch.setattr(Path, "replace", fail_replace)
    saying = Saying("one", "A")
    with pytest.raises(OSError):
        store.insert(saying)
    assert saying.id == 0
    assert store.ids.load_last_id() == 1

    monkeypatch.undo()
    assert store.insert(saying).id == 2
    assert [r.id for r in store.find_all()] == [2]


def test_non_utf8_record_is_malformed(store):
    store.save(Saying("one", "A"))
    (store.table_dir / "2.json").write_bytes(b'{"id": 2, "content": "\xff", "author": "B"}')
    with pytest.raises(MalformedRecord):
        store.find_by_id(2)
    with pytest.raises(MalformedRecord):
        store.find_all()


def test_non_utf8_record_is_skipped_when_configured(tmp_path, caplog):
    store = RecordStore(tmp_path, "sayings", skip_malformed=True)
    store.save(Saying("one", "A"))
    (store.table_dir / "2.json").write_bytes(b'{"id": 2, "content": "\xff", "author": "B"}')
    with caplog.at_level(logging.WARNING, logger="flatstore.store"):
        records = store.find_all()
    assert [r.id for r in records] == [1]
    assert "2.json" in caplog.text


def test_non_utf8_snapshot_is_malformed(store):
    store.table_dir.mkdir(parents=True)
    store.snapshot_path.write_bytes(b"[\n\xfe\n]")
    with pytest.raises(MalformedRecord):
        store.load_snapshot()


def test_delete_is_idempotent(store):
    saying = store.save(Saying("one", "A"))
    store.delete(saying)
    before = _names(store)
    store.delete(saying)
    assert _names(store) == before
    assert store.find_by_id(saying.id) is None
    assert store.delete_by_id(saying.id) is False


def test_deleted_ids_are_not_reused(store):
    first = store.save(Saying("one", "A"))
    store.delete(first)
    assert store.save(Saying("two", "B")).id == 2


def test_clear_keeps_identity_counter(store):
    store.save(Saying("one", "A"))
    store.save(Saying("two", "B"))
    store.rebuild_snapshot()
    store.clear()
    assert store.find_all() == []
    assert not store.snapshot_path.exists()
    assert store.ids.next_id() == 3


def test_clear_with_reset_ids_keeps_only_lock_file(store):
    store.save(Saying("one", "A"))
    store.clear(reset_ids=True)
    assert _names(store) == [".lock"]
    assert store.ids.load_last_id() == 0
    assert store.save(Saying("again", "A")).id == 1


def test_clear_missing_table_is_noop(store):
    store.clear()
    assert not store.table_dir.exists()


def test_snapshot_is_stale_until_rebuilt(store):
    store.save(Saying("one", "A"))
    store.rebuild_snapshot()
    store.save(Saying("two", "B"))

    assert "two" not in store.snapshot_path.read_text()
    assert [r.id for r in store.load_snapshot()] == [1]

    store.rebuild_snapshot()
    assert "two" in store.snapshot_path.read_text()
    assert sorted(r.id for r in store.load_snapshot()) == [1, 2]


def test_snapshot_format(store):
    store.save(Saying("one", "A"))
    path = store.rebuild_snapshot()
    assert path.read_text() == (
        "[\n"
        "    {\n"
        '        "id": 1,\n'
        '        "content": "one",\n'
        '        "author": "A"\n'
        "    }\n"
        "]"
    )


def test_load_snapshot_before_build(store):
    assert store.load_snapshot() == []


def test_find_by_field_like(store):
    for author in ("Mark Twain", "Lao Tzu", "Mark Zuckerberg"):
        store.save(Saying(f"by {author}", author))

    def authors(pattern):
        return sorted(s.author for s in store.find_by_field_like(pattern, lambda s: s.author))

    assert authors("Mark%") == ["Mark Twain", "Mark Zuckerberg"]
    assert authors("%Tzu") == ["Lao Tzu"]
    assert authors("%ar%") == ["Mark Twain", "Mark Zuckerberg"]
    assert authors("Lao Tzu") == ["Lao Tzu"]
    assert authors("%") == ["Lao Tzu", "Mark Twain", "Mark Zuckerberg"]
    assert authors("") == ["Lao Tzu", "Mark Twain", "Mark Zuckerberg"]


def test_named_field_search(store):
    store.save(Saying("Stay hungry", "Steve Jobs"))
    store.save(Saying("Stay foolish", "Steve Jobs"))
    store.save(Saying("Carpe diem", "Horace"))
    assert {s.content for s in store.find_by_content_like("Stay%")} == {"Stay hungry", "Stay foolish"}
    assert [s.content for s in store.find_by_author_like("Hor%")] == ["Carpe diem"]
    assert len(store.find_by_field_like("%diem", "content")) == 1
    with pytest.raises(KeyError):
        store.find_by_field_like("%", "id")


def test_from_config(tmp_path, monkeypatch):
    from flatstore.config import load_config

    monkeypatch.delenv("FLATSTORE_DB_DIR", raising=False)
    cfg = load_config(tmp_path)
    store = RecordStore.from_config(cfg)
    assert store.table_dir == tmp_path / "db" / "sayings"
