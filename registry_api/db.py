from collections.abc import Generator
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings
from .handles import LazyHandle

Base = declarative_base()


def _build_engine(url: Optional[str] = None) -> Engine:
    return create_engine(url or get_settings().database_url, future=True, pool_pre_ping=True)


engine_handle: LazyHandle[Engine] = LazyHandle("asset store", _build_engine)

_SessionLocal = None


def get_engine() -> Engine:
    return engine_handle.get()


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False)
    return _SessionLocal


def get_session() -> Generator:
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())
