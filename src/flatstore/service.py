"""Use cases over the sayings table: write, modify, delete, paged listing."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from flatstore.models import Saying
from flatstore.query import like_predicate

if TYPE_CHECKING:
    from pathlib import Path

    from flatstore.store import RecordStore


@dataclass
class Page:
    """One page of a newest-first listing."""

    items: list[Saying] = field(default_factory=list)
    total_count: int = 0
    page_size: int = 5
    page_no: int = 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size > 0 else 0


class SayingService:
    def __init__(self, store: RecordStore[Saying]) -> None:
        self.store = store

    def write(self, content: str, author: str) -> Saying:
        return self.store.insert(Saying(content=content, author=author))

    def modify(self, saying: Saying, content: str, author: str) -> Saying:
        saying.modify(content, author)
        return self.store.update(saying)

    def delete(self, saying_id: int) -> bool:
        saying = self.store.find_by_id(saying_id)
        if saying is None:
            return False
        self.store.delete(saying)
        return True

    def find_by_id(self, saying_id: int) -> Saying | None:
        return self.store.find_by_id(saying_id)

    def find_list_desc(
        self,
        keyword: str = "",
        keyword_type: str = "",
        page_size: int = 5,
        page_no: int = 1,
    ) -> Page:
        """Newest first, filtered by keyword, then paginated (page_no from 1).

        keyword_type "content" or "author" searches that field; anything else
        matches either one.
        """
        if page_size <= 0:
            msg = f"page_size must be positive, got {page_size}"
            raise ValueError(msg)
        matches = like_predicate(f"%{keyword}%")
        if keyword_type == "content":
            selected = [s for s in self.store.find_all() if matches(s.content)]
        elif keyword_type == "author":
            selected = [s for s in self.store.find_all() if matches(s.author)]
        else:
            selected = [s for s in self.store.find_all() if matches(s.content) or matches(s.author)]
        selected.sort(key=lambda s: s.id, reverse=True)

        start = (page_no - 1) * page_size
        items = selected[start:start + page_size] if page_no >= 1 else []
        return Page(items=items, total_count=len(selected), page_size=page_size, page_no=page_no)

    def build(self) -> Path:
        return self.store.rebuild_snapshot()
