"""Identifier helpers.

The backend hands out integer ids for some records and UUID strings for
others, and payloads are not consistent about which form they use for
references. All comparisons go through these helpers.
"""

from collections.abc import Iterable
from typing import Annotated, Any, TypeVar

from pydantic import BeforeValidator

T = TypeVar("T")

EntityId = str | int


def normalize_id(value: Any) -> str | None:
    """Normalize an id to its string form, or None for empty values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def same_id(left: Any, right: Any) -> bool:
    """Compare two ids across int / str representations.

    Two missing ids are considered equal; a missing and a present id are not.
    """
    a, b = normalize_id(left), normalize_id(right)
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a == b


def find_by_id(items: Iterable[T], target: Any, attr: str = "id") -> T | None:
    """Return the first item whose ``attr`` matches ``target``."""
    if normalize_id(target) is None:
        return None
    for item in items:
        if same_id(getattr(item, attr, None), target):
            return item
    return None


def id_set(items: Iterable[Any], attr: str = "id") -> set[str]:
    """Normalized ids of ``items`` (missing ids are skipped)."""
    result: set[str] = set()
    for item in items:
        value = normalize_id(getattr(item, attr, None))
        if value is not None:
            result.add(value)
    return result


def _require_id(value: Any) -> str:
    normalized = normalize_id(value)
    if normalized is None:
        raise ValueError("id must not be empty")
    return normalized


# Pydantic field types: ids arrive as ints or strings and are stored as str
RecordId = Annotated[str, BeforeValidator(_require_id)]
OptionalRecordId = Annotated[str | None, BeforeValidator(normalize_id)]
