import logging
import random
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .entities import AssetRecord
from .errors import AssetValidationError, DuplicateKeyError, RecordNotFoundError, StoreIOError
from .models import Asset, CreateAsset
from .reconciler import (
    BOOK_FIELDS,
    apply_update,
    filter_books,
    generate_fallback_key,
    locate_by_business_key,
    normalize_field,
    normalize_payload,
    to_book,
    validate_required,
)
from .sheets import CatalogStore

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        store: CatalogStore,
        clock: Callable[[], int] | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.clock = clock
        self.rng = rng

    def list(self, class_filter: str | None = None, search: str | None = None) -> list[dict[str, Any]]:
        books = [to_book(record) for record in self.store.enumerate_records()]
        return filter_books(books, class_filter=class_filter, search=search)

    def create(self, payload: Mapping[str, Any]) -> int | float:
        validate_required(payload)
        fields = {column: normalize_field(column, None) for column in BOOK_FIELDS.columns}
        fields.update(normalize_payload(payload))
        key = BOOK_FIELDS.business_key
        if not fields.get(key):
            fields[key] = generate_fallback_key(self.clock, self.rng)
            logger.warning("book.fallback_key", extra={"sr_no": fields[key]})
        self.store.append_record(fields)
        return fields[key]

    def update(self, sr_no: str, payload: Mapping[str, Any]) -> None:
        validate_required(payload, prefix="Missing required fields for update")
        record = locate_by_business_key(self.store.enumerate_records(), sr_no)
        apply_update(self.store, record, payload)

    def delete(self, sr_no: str) -> None:
        record = locate_by_business_key(self.store.enumerate_records(), sr_no)
        self.store.delete_record(record)


class AssetService:
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> list[Asset]:
        try:
            records = self.session.execute(
                select(AssetRecord).order_by(AssetRecord.created_at.desc(), AssetRecord.id.desc())
            ).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreIOError(str(exc)) from exc
        return [self._to_schema(record) for record in records]

    def get(self, gmr_vmr_no: str) -> Asset:
        try:
            record = self.session.execute(
                select(AssetRecord).where(AssetRecord.gmr_vmr_no == gmr_vmr_no)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreIOError(str(exc)) from exc
        if record is None:
            raise RecordNotFoundError(f"Asset {gmr_vmr_no} not found")
        return self._to_schema(record)

    def create(self, payload: Mapping[str, Any]) -> Asset:
        try:
            data = CreateAsset.model_validate(payload)
        except ValidationError as exc:
            fields = [".".join(str(part) for part in error["loc"]) or "body" for error in exc.errors()]
            raise AssetValidationError(fields) from exc

        record = AssetRecord(**data.model_dump())
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateKeyError(f"Asset with gmrVmrNo {data.gmr_vmr_no} already exists") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreIOError(str(exc)) from exc
        self.session.refresh(record)
        return self._to_schema(record)

    @staticmethod
    def _to_schema(record: AssetRecord) -> Asset:
        return Asset.model_validate(record, from_attributes=True)
