from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import uuid

logger = logging.getLogger(__name__)

_DATA_URL_PATTERN = re.compile(r"^data:(?P<content_type>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)
_CONTENT_TYPE_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
_DEFAULT_EXTENSION = "jpg"


class PhotoStorageError(Exception):
    pass


class PhotoStorage:
    """Stores attendance photos as files and hands back an opaque reference.

    The reference is the stored file name; the row store keeps it as plain
    text in ``photoIn`` / ``photoOut``.
    """

    def __init__(self, base_path: str, *, max_bytes: int) -> None:
        self.base_path = base_path
        self.max_bytes = max_bytes

    def _decode(self, photo: str) -> tuple[bytes, str]:
        content_type = None
        payload = photo.strip()
        match = _DATA_URL_PATTERN.match(payload)
        if match:
            content_type = match.group("content_type")
            payload = match.group("data")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PhotoStorageError("photo is not valid base64") from exc
        if not data:
            raise PhotoStorageError("photo is empty")
        if len(data) > self.max_bytes:
            raise PhotoStorageError(f"photo exceeds max size of {self.max_bytes} bytes")
        return data, _CONTENT_TYPE_TO_EXT.get(content_type or "", _DEFAULT_EXTENSION)

    def store(self, photo: str, *, prefix: str) -> str:
        data, extension = self._decode(photo)
        os.makedirs(self.base_path, exist_ok=True)
        reference = f"{prefix}_{uuid.uuid4().hex}.{extension}"
        path = os.path.join(self.base_path, reference)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "wb") as handle:
            handle.write(data)
        os.replace(tmp_path, path)
        logger.info("photo_stored", extra={"reference": reference, "bytes": len(data)})
        return reference

    def store_or_empty(self, photo: str | None, *, prefix: str) -> str:
        """Best-effort store: failures are logged and yield an empty reference."""
        if not photo:
            return ""
        try:
            return self.store(photo, prefix=prefix)
        except Exception:
            logger.exception("photo_store_failed", extra={"prefix": prefix})
            return ""

