from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from fastapi import Request

from app.tbms.core.config import settings
from app.tbms.core.lock import RequestSerializer
from app.tbms.db.workbook import GridWorkbook, WorkbookStore
from app.tbms.repos.codec import RowCodec
from app.tbms.repos.rows import RowRepository
from app.tbms.repos.settings import SettingsRepository
from app.tbms.services.photos import PhotoStorage


@dataclass
class Backend:
    """Collaborators available to one serialized operation."""

    workbook: GridWorkbook
    rows: RowRepository
    settings: SettingsRepository
    photos: PhotoStorage
    clock: Callable[[], datetime]

    def timestamp(self) -> str:
        return self.clock().isoformat(timespec="seconds")


class BackendContext:
    """Handle owning the request lock and every store behind it.

    ``session()`` is the only way in: it serializes the caller against all
    other operations, then saves the workbook and commits settings when the
    block succeeds, or discards both when it raises.
    """

    def __init__(
        self,
        *,
        workbooks: WorkbookStore,
        session_factory: Callable,
        photos: PhotoStorage,
        serializer: RequestSerializer,
        timezone: tzinfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.workbooks = workbooks
        self.session_factory = session_factory
        self.photos = photos
        self.serializer = serializer
        self.timezone = timezone
        self.clock = clock or (lambda: datetime.now(self.timezone))
        self.codec = RowCodec(timezone)

    @contextmanager
    def session(self) -> Iterator[Backend]:
        with self.serializer.hold():
            workbook = self.workbooks.open()
            db = self.session_factory()
            try:
                yield Backend(
                    workbook=workbook,
                    rows=RowRepository(workbook, self.codec),
                    settings=SettingsRepository(db),
                    photos=self.photos,
                    clock=self.clock,
                )
                self.workbooks.commit(workbook)
                db.commit()
            except Exception:
                db.rollback()
                self.workbooks.discard()
                raise
            finally:
                db.close()


def build_backend_context(session_factory: Callable) -> BackendContext:
    return BackendContext(
        workbooks=WorkbookStore(settings.WORKBOOK_PATH),
        session_factory=session_factory,
        photos=PhotoStorage(settings.PHOTO_STORAGE_PATH, max_bytes=settings.PHOTO_MAX_BYTES),
        serializer=RequestSerializer(settings.LOCK_TIMEOUT_SEC),
        timezone=ZoneInfo(settings.TIMEZONE),
    )


def get_backend_context(request: Request) -> BackendContext:
    return request.app.state.backend
