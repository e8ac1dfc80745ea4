import logging
import secrets
import time
from pathlib import Path
from typing import Optional, Protocol

from hire_ledger.error import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class ImageStore(Protocol):
    def put(self, path: str, data: bytes, content_type: str) -> None: ...

    def get(self, path: str) -> Optional[tuple[bytes, str]]: ...

    def delete(self, path: str) -> bool: ...


class LocalImageStore:
    """图片存在本地目录里；content-type 另存一个 .type 旁路文件。"""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        path = (path or "").strip().lstrip("/")
        if not path:
            raise ValidationError("Image path required", code="INVALID_PATH")
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise ValidationError(f"Invalid image path: {path}", code="INVALID_PATH")
        return target

    def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        target.with_name(target.name + ".type").write_text(content_type, encoding="utf-8")

    def get(self, path: str) -> Optional[tuple[bytes, str]]:
        target = self._resolve(path)
        if not target.is_file():
            return None
        type_file = target.with_name(target.name + ".type")
        content_type = type_file.read_text(encoding="utf-8") if type_file.is_file() else "image/jpeg"
        return target.read_bytes(), content_type

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        target.with_name(target.name + ".type").unlink(missing_ok=True)
        return True


def new_image_path(filename: Optional[str], content_type: str) -> str:
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    if not ext.isalnum() or len(ext) > 5:
        ext = ALLOWED_CONTENT_TYPES.get(content_type, "jpg")
    return f"catalog/{int(time.time() * 1000)}-{secrets.token_hex(3)}.{ext}"


def store_upload(
    store: ImageStore, data: bytes, content_type: Optional[str], filename: Optional[str], max_bytes: int
) -> str:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type. Allowed: JPEG, PNG, WebP, GIF", code="INVALID_FILE_TYPE")
    if not data:
        raise ValidationError("No file provided", code="EMPTY_FILE")
    if len(data) > max_bytes:
        raise ValidationError(f"File too large. Max {max_bytes // (1024 * 1024)}MB", code="FILE_TOO_LARGE")

    path = new_image_path(filename, content_type)
    store.put(path, data, content_type)
    logger.info("image stored at %s (%d bytes)", path, len(data))
    return path
