"""Flat-record text codec.

Record file layout (one object per file):

    {
        "id": 1,
        "content": "Know thyself",
        "author": "Socrates"
    }

Snapshot layout (data.json) wraps objects in a bracketed list, each object
indented one level:

    [
        {
            "id": 1,
            ...
        },
        {
            ...
        }
    ]

Only text and integer values exist. Text is written between double quotes
with no escaping, so text containing '"' cannot be stored (UnsafeText).
The parser is a flat tokenizer, not a JSON parser: no nesting inside objects,
no escapes, no floats/booleans/null.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import Any

from flatstore.errors import InvalidInteger, MalformedRecord, UnsafeText

_INDENT = "    "
_PUNCT = "{}[]:,"
_INT_RE = re.compile(r"-?[0-9]+")

# Token kinds
_TEXT = "text"
_BARE = "bare"


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        _check_text(value)
        return f'"{value}"'
    # bool is an int subclass but has no literal form in this format
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    msg = f"Unsupported value type: {type(value).__name__}"
    raise TypeError(msg)


def _check_text(value: str) -> None:
    if '"' in value:
        msg = f"Text values cannot contain double quotes: {value!r}"
        raise UnsafeText(msg)


def encode(fields: Mapping[str, Any], *, level: int = 0) -> str:
    """Encode a flat mapping as a brace-delimited, newline-separated object.

    Keys keep the mapping's iteration order. `level` indents every structural
    line by that many steps (text values are never re-indented).
    """
    pad = _INDENT * level
    pairs = []
    for key, value in fields.items():
        _check_text(key)
        pairs.append(f'{pad}{_INDENT}"{key}": {_format_value(value)}')
    return f"{pad}{{\n" + ",\n".join(pairs) + f"\n{pad}}}"


def encode_list(maps: list[Mapping[str, Any]]) -> str:
    """Encode several mappings as the bracketed snapshot document."""
    return "[\n" + ",\n".join(encode(m, level=1) for m in maps) + "\n]"


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _tokenize(text: str) -> Iterator[tuple[str, str, int]]:
    """Yield (kind, value, offset). Punctuation tokens use the char as kind."""
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c.isspace():
            i += 1
        elif c in _PUNCT:
            yield c, c, i
            i += 1
        elif c == '"':
            end = text.find('"', i + 1)
            if end == -1:
                msg = f"Unterminated text starting at offset {i}"
                raise MalformedRecord(msg)
            yield _TEXT, text[i + 1:end], i
            i = end + 1
        else:
            j = i
            while j < n and text[j] not in _PUNCT and text[j] != '"' and not text[j].isspace():
                j += 1
            yield _BARE, text[i:j], i
            i = j


class _Parser:
    def __init__(self, text: str) -> None:
        self.tokens = list(_tokenize(text))
        self.pos = 0

    def peek(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos][0]
        return None

    def take(self, *kinds: str) -> tuple[str, str, int]:
        if self.pos >= len(self.tokens):
            msg = f"Unexpected end of input, expected {' or '.join(kinds)}"
            raise MalformedRecord(msg)
        tok = self.tokens[self.pos]
        if tok[0] not in kinds:
            msg = f"Unexpected {tok[1]!r} at offset {tok[2]}, expected {' or '.join(kinds)}"
            raise MalformedRecord(msg)
        self.pos += 1
        return tok

    def end(self) -> None:
        if self.pos < len(self.tokens):
            tok = self.tokens[self.pos]
            msg = f"Trailing content {tok[1]!r} at offset {tok[2]}"
            raise MalformedRecord(msg)

    def obj(self) -> dict[str, Any]:
        self.take("{")
        result: dict[str, Any] = {}
        if self.peek() == "}":
            self.take("}")
            return result
        while True:
            _, key, _ = self.take(_TEXT, _BARE)
            self.take(":")
            kind, raw, offset = self.take(_TEXT, _BARE)
            result[key] = raw if kind == _TEXT else _parse_int(key, raw, offset)
            sep, _, _ = self.take(",", "}")
            if sep == "}":
                return result

    def array(self) -> list[dict[str, Any]]:
        self.take("[")
        items: list[dict[str, Any]] = []
        if self.peek() == "]":
            self.take("]")
            return items
        while True:
            items.append(self.obj())
            sep, _, _ = self.take(",", "]")
            if sep == "]":
                return items


def _parse_int(key: str, raw: str, offset: int) -> int:
    if not _INT_RE.fullmatch(raw):
        msg = f"Value for {key!r} at offset {offset} is not an integer: {raw!r}"
        raise InvalidInteger(msg)
    return int(raw)


def decode(text: str) -> dict[str, Any]:
    """Parse one encoded object. Raises MalformedRecord / InvalidInteger."""
    parser = _Parser(text)
    result = parser.obj()
    parser.end()
    return result


def decode_list(text: str) -> list[dict[str, Any]]:
    """Parse a snapshot document into a list of mappings."""
    parser = _Parser(text)
    items = parser.array()
    parser.end()
    return items
