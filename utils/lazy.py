"""Single-initialization barrier for process-wide backends (OCR engines, model handles)."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Hashable, TypeVar

from core.exceptions import DependencyError

logger = logging.getLogger(__name__)
T = TypeVar("T")


class LazyBackend(Generic[T]):
    """
    Run factory at most once. Concurrent first callers block on one lock; the single
    outcome (value or DependencyError) is shared with every caller until reset().
    """

    def __init__(self, name: str, factory: Callable[[], T]) -> None:
        self.name = name
        self._factory = factory
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None
        self._error: DependencyError | None = None
        self.attempts = 0

    @property
    def initialized(self) -> bool:
        return self._done

    @property
    def failed(self) -> bool:
        return self._done and self._error is not None

    def get(self) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    self._initialize()
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def _initialize(self) -> None:
        self.attempts += 1
        logger.debug("Initializing backend %s (attempt %s)", self.name, self.attempts)
        try:
            self._value = self._factory()
        except DependencyError as e:
            self._error = e
        except Exception as e:
            self._error = DependencyError(
                f"{self.name} failed to initialize: {e}",
                backend=self.name,
                reason=DependencyError.INIT_FAILED,
            )
            self._error.__cause__ = e
        if self._error is not None:
            logger.warning("Backend %s unavailable: %s", self.name, self._error)
        self._done = True

    def reset(self) -> None:
        with self._lock:
            self._done = False
            self._value = None
            self._error = None


class LazyBackendPool:
    """Keyed LazyBackends (e.g. one EasyOCR reader per language set). Entry creation is locked."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._backends: dict[Hashable, LazyBackend] = {}

    def backend(self, key: Hashable, name: str, factory: Callable[[], T]) -> LazyBackend[T]:
        with self._lock:
            entry = self._backends.get(key)
            if entry is None:
                entry = LazyBackend(name, factory)
                self._backends[key] = entry
            return entry

    def get(self, key: Hashable, name: str, factory: Callable[[], T]) -> T:
        return self.backend(key, name, factory).get()

    def reset(self) -> None:
        with self._lock:
            backends = list(self._backends.values())
            self._backends.clear()
        for entry in backends:
            entry.reset()
