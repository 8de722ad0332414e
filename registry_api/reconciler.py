"""Validation, coercion and business-key lookup for book rows.

The catalog sheet enforces no schema, so everything written to it passes
through here first: numeric columns always hold a number (``0`` when the input
is blank or unparseable) and every other column holds a string.
"""

import math
import random
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import MissingFieldsError, RecordNotFoundError


@dataclass(frozen=True)
class BookFields:
    columns: tuple[str, ...]
    required: tuple[str, ...]
    numeric: frozenset[str]
    business_key: str = "SrNo"
    position_key: str = "rowIndex"


BOOK_FIELDS = BookFields(
    columns=(
        "Class",
        "SrNo",
        "Book Name",
        "Volume",
        "Date",
        "Book Price",
        "Room",
        "Kapat",
        "other1",
        "other2",
        "Writer",
        "Reader",
    ),
    required=("Class", "Book Name", "Book Price"),
    numeric=frozenset({"SrNo", "Volume", "Book Price"}),
)


class Record(Protocol):
    row_number: int

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class RecordStore(Protocol):
    def persist(self, record: Any) -> None: ...


def _is_blank(value: Any) -> bool:
    # Containers count as present, like any non-empty JSON value.
    if isinstance(value, (list, dict)):
        return False
    return not value


def validate_required(
    payload: Mapping[str, Any],
    required: Iterable[str] = BOOK_FIELDS.required,
    prefix: str = "Missing fields",
) -> None:
    missing = [field for field in required if _is_blank(payload.get(field))]
    if missing:
        raise MissingFieldsError(missing, prefix=prefix)


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def generate_fallback_key(
    now_ms: Callable[[], int] | None = None,
    rng: random.Random | None = None,
) -> int:
    """Best-effort serial number for books created without one.

    Two calls in the same millisecond can collide; nothing checks the sheet for
    an existing row with the same key.
    """
    millis = (now_ms or _epoch_millis)()
    offset = (rng or random).randrange(1000)
    key = int(str(millis)[-6:]) + offset
    return key if key > 0 else 1


def _to_number(value: Any) -> int | float:
    if value is None or isinstance(value, (list, dict)):
        return 0
    if isinstance(value, str):
        value = value.strip()
        # float() accepts digit separators ("1_000"); form input never means that.
        if not value or "_" in value:
            return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_field(key: str, value: Any, numeric: Iterable[str] = BOOK_FIELDS.numeric) -> int | float | str:
    if key in numeric:
        return _to_number(value)
    return _to_text(value)


def normalize_payload(payload: Mapping[str, Any], fields: BookFields = BOOK_FIELDS) -> dict[str, Any]:
    return {
        key: normalize_field(key, value, fields.numeric)
        for key, value in payload.items()
        if key != fields.position_key
    }


def locate_by_business_key(records: Iterable[Record], key: Any, fields: BookFields = BOOK_FIELDS) -> Record:
    target = str(key)
    for record in records:
        if str(record.get(fields.business_key)) == target:
            return record
    raise RecordNotFoundError(f"Book with {fields.business_key} {target} not found.")


def apply_update(
    store: RecordStore,
    record: Record,
    payload: Mapping[str, Any],
    fields: BookFields = BOOK_FIELDS,
) -> None:
    for key, value in normalize_payload(payload, fields).items():
        record.set(key, value)
    store.persist(record)


def to_book(record: Record, fields: BookFields = BOOK_FIELDS) -> dict[str, Any]:
    book: dict[str, Any] = {fields.position_key: record.row_number}
    for column in fields.columns:
        book[column] = normalize_field(column, record.get(column), fields.numeric)
    return book


def filter_books(
    books: Iterable[dict[str, Any]],
    class_filter: str | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    result = list(books)
    if class_filter and class_filter != "All":
        wanted = class_filter.lower()
        result = [book for book in result if _to_text(book.get("Class")).lower() == wanted]
    if search:
        needle = search.lower()
        result = [
            book for book in result if any(needle in _to_text(value).lower() for value in book.values())
        ]
    return result
