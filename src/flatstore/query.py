"""LIKE-style wildcard filter over a text field.

A single % may appear at either end of the pattern:

    "Mark%"    starts with "Mark"
    "%Tzu"     ends with "Tzu"
    "%ar%"     contains "ar"
    "Lao Tzu"  equals "Lao Tzu"
    "%" / ""   everything

Every % is stripped to get the core string, so a % in the middle is not a
wildcard and there is no escape for a literal %. Matching is case-sensitive.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

T = TypeVar("T")


def like_predicate(pattern: str) -> Callable[[str], bool]:
    """Compile a pattern into a str -> bool test."""
    core = pattern.replace("%", "")
    if not core:
        return lambda value: True
    leading = pattern.startswith("%")
    trailing = pattern.endswith("%")
    if leading and trailing:
        return lambda value: core in value
    if leading:
        return lambda value: value.endswith(core)
    if trailing:
        return lambda value: value.startswith(core)
    return lambda value: value == core


def match_like(pattern: str, candidates: Iterable[T], selector: Callable[[T], str]) -> list[T]:
    """Keep candidates whose selected field matches pattern, preserving order."""
    test = like_predicate(pattern)
    return [c for c in candidates if test(selector(c))]
