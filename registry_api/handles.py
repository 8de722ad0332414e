import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Generic, TypeVar

from .errors import StoreInitializationError, StoreIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HandleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class LazyHandle(Generic[T]):
    """Process-wide connection object built on first use.

    A factory that raises ``StoreIOError`` is treated as a transient failure and
    retried on the next call. Any other exception fails the handle permanently:
    the diagnostic is kept and re-raised as ``StoreInitializationError`` on every
    later call without running the factory again.
    """

    def __init__(self, name: str, factory: Callable[[], T]):
        self.name = name
        self._factory = factory
        self._lock = threading.Lock()
        self._state = HandleState.UNINITIALIZED
        self._value: T | None = None
        self._failure: str | None = None

    @property
    def state(self) -> HandleState:
        return self._state

    def get(self) -> T:
        if self._state is HandleState.READY:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if self._state is HandleState.READY:
                return self._value  # type: ignore[return-value]
            if self._state is HandleState.FAILED:
                raise StoreInitializationError(self._failure)
            try:
                value = self._factory()
            except StoreIOError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._failure = f"{self.name} initialization failed: {exc}"
                self._state = HandleState.FAILED
                logger.error("store.init_failed", extra={"store": self.name, "error": str(exc)})
                raise StoreInitializationError(self._failure) from exc
            self._value = value
            self._state = HandleState.READY
            logger.info("store.ready", extra={"store": self.name})
            return value

    def reset(self) -> None:
        with self._lock:
            self._state = HandleState.UNINITIALIZED
            self._value = None
            self._failure = None
