import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from gspread.exceptions import APIError, GSpreadException
from gspread.utils import rowcol_to_a1

from .config import Settings
from .errors import StoreIOError
from .handles import LazyHandle
from .secrets import parse_service_account

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
VALUE_INPUT_OPTION = "USER_ENTERED"

_STORE_ERRORS = (GSpreadException, GoogleAuthError, requests.RequestException)


@dataclass
class SheetRecord:
    row_number: int
    columns: tuple[str, ...]
    values: dict[str, Any]
    dirty: set[str] = field(default_factory=set)

    def get(self, key: str) -> Any:
        return self.values.get(key)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value
        self.dirty.add(key)


class CatalogStore(Protocol):
    def enumerate_records(self) -> list[SheetRecord]: ...

    def append_record(self, fields: Mapping[str, Any]) -> None: ...

    def persist(self, record: SheetRecord) -> None: ...

    def delete_record(self, record: SheetRecord) -> None: ...


class GoogleSheetCatalogStore:
    """Book rows kept in one worksheet; the first row holds the column names."""

    def __init__(self, handle: LazyHandle):
        self.handle = handle

    def _worksheet(self) -> gspread.Worksheet:
        return self.handle.get()

    def enumerate_records(self) -> list[SheetRecord]:
        worksheet = self._worksheet()
        try:
            rows = worksheet.get_all_values()
        except _STORE_ERRORS as exc:
            raise StoreIOError(str(exc)) from exc
        if not rows:
            return []
        header = tuple(rows[0])
        records = []
        for offset, row in enumerate(rows[1:]):
            padded = list(row) + [""] * (len(header) - len(row))
            records.append(
                SheetRecord(row_number=offset + 2, columns=header, values=dict(zip(header, padded)))
            )
        return records

    def append_record(self, fields: Mapping[str, Any]) -> None:
        worksheet = self._worksheet()
        try:
            header = worksheet.row_values(1)
            if not header:
                raise StoreIOError("Worksheet has no header row")
            self._warn_unknown(fields.keys(), header)
            worksheet.append_row(
                [fields.get(column, "") for column in header],
                value_input_option=VALUE_INPUT_OPTION,
            )
        except _STORE_ERRORS as exc:
            raise StoreIOError(str(exc)) from exc

    def persist(self, record: SheetRecord) -> None:
        self._warn_unknown(record.dirty, record.columns)
        updates = [
            {
                "range": rowcol_to_a1(record.row_number, index + 1),
                "values": [[record.values[column]]],
            }
            for index, column in enumerate(record.columns)
            if column in record.dirty
        ]
        if not updates:
            return
        worksheet = self._worksheet()
        try:
            worksheet.batch_update(updates, value_input_option=VALUE_INPUT_OPTION)
        except _STORE_ERRORS as exc:
            raise StoreIOError(str(exc)) from exc
        record.dirty.clear()

    def delete_record(self, record: SheetRecord) -> None:
        worksheet = self._worksheet()
        try:
            worksheet.delete_rows(record.row_number)
        except _STORE_ERRORS as exc:
            raise StoreIOError(str(exc)) from exc

    @staticmethod
    def _warn_unknown(keys, header) -> None:
        unknown = sorted(set(keys) - set(header))
        if unknown:
            logger.warning("sheet.unknown_columns", extra={"columns": unknown})


def open_worksheet(settings: Settings) -> gspread.Worksheet:
    if not settings.spreadsheet_id:
        raise ValueError("Spreadsheet id is not configured")
    info = parse_service_account(settings.google_credentials)
    client = gspread.service_account_from_dict(info, scopes=SCOPES)
    try:
        spreadsheet = client.open_by_key(settings.spreadsheet_id)
        return spreadsheet.get_worksheet(settings.sheet_index)
    except (APIError, GoogleAuthError, requests.RequestException) as exc:
        raise StoreIOError(str(exc)) from exc


def build_catalog_handle(settings: Settings) -> LazyHandle:
    return LazyHandle("catalog store", lambda: open_worksheet(settings))
