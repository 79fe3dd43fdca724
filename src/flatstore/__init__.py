"""Flat-file record store: one text file per record, a persisted id counter.

Layout:
    <db_dir>/
        <table>/
            lastId.txt    # highest id ever issued (never reused)
            <id>.json     # {"id": N, "content": "...", "author": "..."}
            data.json     # snapshot array of every record (rebuilt on demand)

Record files use a flat, escape-free text format (see flatstore.codec):
text values may not contain double quotes, values are text or integers.

Writers: allocate-id-then-write runs under flock(LOCK_EX) on <table>/.lock.
"""

from flatstore.config import StoreConfig, init_config, load_config
from flatstore.errors import InvalidInteger, MalformedRecord, RecordNotFound, StoreError, UnsafeText
from flatstore.ids import IdAllocator
from flatstore.models import Record, Saying
from flatstore.query import like_predicate, match_like
from flatstore.service import Page, SayingService
from flatstore.store import RecordStore

__all__ = [
    "IdAllocator",
    "InvalidInteger",
    "MalformedRecord",
    "Page",
    "Record",
    "RecordNotFound",
    "RecordStore",
    "Saying",
    "SayingService",
    "StoreConfig",
    "StoreError",
    "UnsafeText",
    "init_config",
    "like_predicate",
    "load_config",
    "match_like",
]
