"""
Image storage adapters.

Services only ever see storage keys such as ``cats/<id>.png``; turning a key
into a public URL is the job of whatever serves the files.
"""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path
from typing import Optional, Tuple

from core.config import MAX_IMAGE_BYTES, logger
from core.errors import StorageFailure, ValidationIssue

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_DATA_URL_RE = re.compile(r"^data:(?P<content_type>[\w/+.-]+);base64,(?P<payload>.*)$", re.DOTALL)


def decode_base64_image(value: Optional[str], content_type: Optional[str] = None) -> Tuple[bytes, str]:
    """
    Decode a base64 image, optionally wrapped in a ``data:`` URL.

    Returns:
        The raw bytes and the content type
    """
    if not value or not isinstance(value, str):
        raise ValidationIssue("Missing image_base64", field="image_base64", error_type="required")
    match = _DATA_URL_RE.match(value.strip())
    if match:
        content_type = match.group("content_type")
        value = match.group("payload")
    content_type = (content_type or "image/jpeg").lower()
    validate_content_type(content_type, field="image_base64")
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationIssue("Invalid image_base64", field="image_base64", error_type="invalid_format") from exc
    validate_image(data)
    return data, content_type


def validate_content_type(content_type: str, field: str = "content_type") -> None:
    if content_type not in IMAGE_EXTENSIONS:
        raise ValidationIssue(
            f"Unsupported image type: {content_type}",
            field=field,
            error_type="invalid_format",
        )


def validate_image(data: bytes) -> None:
    if not data:
        raise ValidationIssue("Image is empty", field="image_base64", error_type="required")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationIssue(
            f"Image exceeds max size {MAX_IMAGE_BYTES} bytes",
            field="image_base64",
            error_type="max_size",
        )


def cat_image_key(cat_id: str, content_type: str) -> str:
    return f"cats/{cat_id}.{IMAGE_EXTENSIONS[content_type]}"


def avatar_image_key(username: str, content_type: str) -> str:
    return f"avatars/{username}.{IMAGE_EXTENSIONS[content_type]}"


class ImageStore:
    def put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class FilesystemImageStore(ImageStore):
    def __init__(self, root):
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationIssue("Invalid image key", field="image_key", error_type="invalid_format")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.warning("image_store_failed", extra={"key": key, "error": exc.__class__.__name__})
            raise StorageFailure("Failed to store image") from exc
        return key

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("image_delete_failed", extra={"key": key, "error": exc.__class__.__name__})


class MemoryImageStore(ImageStore):
    """Keeps images in a dict; used by tests and throwaway deployments."""

    def __init__(self):
        self.objects: dict[str, Tuple[bytes, str]] = {}

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return key

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)
