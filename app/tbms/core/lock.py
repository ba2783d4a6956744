from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.core.metrics import metrics

logger = logging.getLogger(__name__)


class RequestSerializer:
    """Process-wide gate around every store operation.

    One lock covers all tables. Acquisition waits at most ``timeout_sec``
    and fails with ``LOCK_TIMEOUT`` before any work starts; the lock is
    released when the operation ends, including when it raises.
    """

    def __init__(self, timeout_sec: float) -> None:
        self.timeout_sec = timeout_sec
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        started = time.perf_counter()
        if not self._lock.acquire(timeout=self.timeout_sec):
            metrics.increment_lock_wait_timeout()
            logger.warning(
                "lock_wait_timeout",
                extra={"timeout_sec": self.timeout_sec},
            )
            raise AppError(
                ErrorCatalog.LOCK_TIMEOUT,
                details={"timeout_sec": self.timeout_sec},
            )
        waited_ms = (time.perf_counter() - started) * 1000
        if waited_ms > 1000:
            logger.info("lock_wait_slow", extra={"waited_ms": round(waited_ms, 2)})
        try:
            yield
        finally:
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()
