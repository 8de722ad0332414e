import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db import get_session, init_db
from .errors import (
    AssetValidationError,
    DuplicateKeyError,
    MissingFieldsError,
    RecordNotFoundError,
    RegistryError,
)
from .models import Asset, AssetList, BookCreated, BookMessage
from .otel import configure_otel
from .service import AssetService, CatalogService
from .sheets import GoogleSheetCatalogStore, build_catalog_handle

settings = get_settings()
logger = logging.getLogger(__name__)

catalog_handle = build_catalog_handle(settings)


def get_catalog_service() -> CatalogService:
    return CatalogService(GoogleSheetCatalogStore(catalog_handle))


def get_asset_service(session=Depends(get_session)) -> AssetService:
    return AssetService(session)


def _http_error(exc: RegistryError, action: str) -> HTTPException:
    if isinstance(exc, (MissingFieldsError, AssetValidationError)):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": exc.message, "fields": exc.fields},
        )
    if isinstance(exc, DuplicateKeyError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"message": exc.message})
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"message": exc.message})
    logger.error("store.error", extra={"action": action, "error": exc.message})
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": f"Error {action}", "error": exc.message},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_db()
    except (RegistryError, SQLAlchemyError) as exc:
        # Book endpoints stay up when the asset database is unreachable.
        logger.error("asset_store.init_failed", extra={"error": str(exc)})
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="CRUD facade over a spreadsheet-backed library catalog and a case asset registry.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)
if settings.otel_enabled:
    configure_otel(app)

allowed_origins = settings.cors_origin_list
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

router = APIRouter(prefix="/api")


@router.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}


@router.get("/books", response_model=List[Dict[str, Any]], tags=["books"])
def list_books(
    class_filter: Optional[str] = Query(default=None, alias="class"),
    search: Optional[str] = None,
    service: CatalogService = Depends(get_catalog_service),
) -> List[Dict[str, Any]]:
    try:
        return service.list(class_filter=class_filter, search=search)
    except RegistryError as exc:
        raise _http_error(exc, "fetching books") from exc


@router.post("/books", response_model=BookCreated, status_code=status.HTTP_201_CREATED, tags=["books"])
def create_book(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    service: CatalogService = Depends(get_catalog_service),
) -> BookCreated:
    try:
        sr_no = service.create(payload or {})
    except RegistryError as exc:
        raise _http_error(exc, "adding book") from exc
    return BookCreated(message="Book added successfully!", sr_no=sr_no)


@router.put("/books/{sr_no}", response_model=BookMessage, tags=["books"])
def update_book(
    sr_no: str,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    service: CatalogService = Depends(get_catalog_service),
) -> BookMessage:
    try:
        service.update(sr_no, payload or {})
    except RegistryError as exc:
        raise _http_error(exc, "updating book") from exc
    return BookMessage(message=f"Book {sr_no} updated successfully!")


@router.delete("/books/{sr_no}", response_model=BookMessage, tags=["books"])
def delete_book(sr_no: str, service: CatalogService = Depends(get_catalog_service)) -> BookMessage:
    try:
        service.delete(sr_no)
    except RegistryError as exc:
        raise _http_error(exc, "deleting book") from exc
    return BookMessage(message=f"Book {sr_no} deleted successfully!")


@router.get("/assets", response_model=AssetList, tags=["assets"])
def list_assets(service: AssetService = Depends(get_asset_service)) -> AssetList:
    try:
        return AssetList(assets=service.list())
    except RegistryError as exc:
        raise _http_error(exc, "fetching assets") from exc


@router.get("/assets/{gmr_vmr_no}", response_model=Asset, tags=["assets"])
def get_asset(gmr_vmr_no: str, service: AssetService = Depends(get_asset_service)) -> Asset:
    try:
        return service.get(gmr_vmr_no)
    except RegistryError as exc:
        raise _http_error(exc, "fetching asset") from exc


@router.post("/assets", response_model=Asset, status_code=status.HTTP_201_CREATED, tags=["assets"])
def create_asset(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    service: AssetService = Depends(get_asset_service),
) -> Asset:
    try:
        return service.create(payload or {})
    except RegistryError as exc:
        raise _http_error(exc, "creating asset") from exc


app.include_router(router)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    # Raised from dependencies (session setup) before a route can translate it.
    error = _http_error(exc, f"handling {request.method} {request.url.path}")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if not request.url.path.startswith(("/api/books", "/api/assets")):
        return await request_validation_exception_handler(request, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"message": "Invalid request body", "errors": jsonable_encoder(exc.errors())}},
    )


request_logger = logging.getLogger("registry_api.requests")


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    request_logger.info("request.start", extra={"path": request.url.path, "method": request.method})
    response = await call_next(request)
    request_logger.info(
        "request.end",
        extra={"path": request.url.path, "method": request.method, "status": response.status_code},
    )
    return response


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response
