import os

os.environ.setdefault("APP_OTEL_ENABLED", "false")
os.environ.setdefault("APP_DATABASE_URL", "sqlite://")

import httpx
import pytest
from gspread.utils import a1_to_rowcol
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from registry_api import entities  # noqa: F401
from registry_api.app import app, get_asset_service, get_catalog_service
from registry_api.db import Base
from registry_api.handles import LazyHandle
from registry_api.reconciler import BOOK_FIELDS
from registry_api.service import AssetService, CatalogService
from registry_api.sheets import GoogleSheetCatalogStore


def _cell(value) -> str:
    return "" if value is None else str(value)


class FakeWorksheet:
    """In-memory stand-in for ``gspread.Worksheet`` returning formatted strings."""

    def __init__(self, header=BOOK_FIELDS.columns, rows=()):
        self.rows = [list(header)] + [list(row) for row in rows]
        self.calls: list[str] = []

    def get_all_values(self):
        self.calls.append("get_all_values")
        return [[_cell(value) for value in row] for row in self.rows]

    def row_values(self, row):
        self.calls.append("row_values")
        return [_cell(value) for value in self.rows[row - 1]]

    def append_row(self, values, value_input_option=None):
        self.calls.append("append_row")
        self.rows.append(list(values))

    def batch_update(self, data, value_input_option=None):
        self.calls.append("batch_update")
        for item in data:
            row, col = a1_to_rowcol(item["range"])
            target = self.rows[row - 1]
            target.extend([""] * (col - len(target)))
            target[col - 1] = item["values"][0][0]

    def delete_rows(self, start_index, end_index=None):
        self.calls.append("delete_rows")
        del self.rows[start_index - 1]

    @property
    def writes(self) -> list[str]:
        return [call for call in self.calls if call in {"append_row", "batch_update", "delete_rows"}]

    def book(self, row_number: int) -> dict:
        return dict(zip(self.rows[0], self.rows[row_number - 1]))


@pytest.fixture()
def worksheet_factory():
    return FakeWorksheet


@pytest.fixture()
def worksheet():
    return FakeWorksheet()


@pytest.fixture()
def catalog_store(worksheet):
    return GoogleSheetCatalogStore(LazyHandle("catalog store", lambda: worksheet))


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def overrides(catalog_store, db_session):
    app.dependency_overrides[get_catalog_service] = lambda: CatalogService(catalog_store)
    app.dependency_overrides[get_asset_service] = lambda: AssetService(db_session)
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
