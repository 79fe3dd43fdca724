"""Data models for the flat-file record store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, Self, runtime_checkable

from flatstore.codec import decode, encode
from flatstore.errors import MalformedRecord


@runtime_checkable
class Record(Protocol):
    """Anything RecordStore can persist: an int id plus a flat mapping form."""

    id: int

    def to_map(self) -> dict[str, Any]: ...

    @classmethod
    def from_map(cls, data: dict[str, Any]) -> Self: ...


@dataclass
class Saying:
    """A wise saying. id == 0 means it has never been written to disk."""

    content: str
    author: str
    id: int = 0

    _FIELDS: ClassVar[tuple[tuple[str, type], ...]] = (
        ("id", int),
        ("content", str),
        ("author", str),
    )

    def is_new(self) -> bool:
        return self.id == 0

    def modify(self, content: str, author: str) -> None:
        self.content = content
        self.author = author

    def to_map(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "author": self.author}

    @property
    def json_str(self) -> str:
        return encode(self.to_map())

    @classmethod
    def from_map(cls, data: dict[str, Any]) -> Saying:
        for name, kind in cls._FIELDS:
            if name not in data:
                msg = f"Missing field {name!r}"
                raise MalformedRecord(msg)
            if not isinstance(data[name], kind):
                msg = f"Field {name!r} must be {kind.__name__}, got {type(data[name]).__name__}"
                raise MalformedRecord(msg)
        if data["id"] < 0:
            msg = f"Negative id: {data['id']}"
            raise MalformedRecord(msg)
        return cls(id=data["id"], content=data["content"], author=data["author"])

    @classmethod
    def from_json_str(cls, text: str) -> Saying:
        return cls.from_map(decode(text))
