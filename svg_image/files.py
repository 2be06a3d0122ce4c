from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import re
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.core.files.storage import Storage, storages

from .observability import record_metric

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
_SCHEME_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://(.*)$", re.DOTALL)

_UNAVAILABLE_MESSAGES = {
    "missing": "File %s (ID: %s) does not exist in storage.",
    "unreadable": "File %s (ID: %s) could not be read from storage.",
    "too_large": "File %s (ID: %s) exceeds the inline size limit.",
    "unknown_scheme": "File %s (ID: %s) uses a storage scheme with no configured backend.",
}


@dataclass(frozen=True, slots=True)
class FileItem:
    file_id: str
    uri: str
    mime_type: str | None = None
    filename: str | None = None
    content: bytes | None = None
    # Storage the file lives in when it did not come through a scheme URI.
    storage: Storage | None = field(default=None, compare=False, repr=False)

    @property
    def is_loaded(self) -> bool:
        return self.content is not None

    @property
    def cache_tags(self) -> list[str]:
        return [f"file:{self.file_id}"]

    @property
    def name(self) -> str:
        if self.filename:
            return self.filename
        return split_uri(self.uri)[1].rsplit("/", 1)[-1]

    def with_content(self, content: bytes) -> "FileItem":
        return replace(self, content=bytes(content))

    @classmethod
    def from_field_file(cls, field_file: Any, *, mime_type: str | None = None) -> "FileItem":
        """Adapt a Django ``FieldFile`` (FileField/ImageField value)."""
        name = str(getattr(field_file, "name", "") or "")
        return cls(
            file_id=name,
            uri=name,
            mime_type=mime_type,
            filename=name.rsplit("/", 1)[-1] or None,
            storage=getattr(field_file, "storage", None),
        )


@dataclass(frozen=True, slots=True)
class FileUnavailable:
    file_id: str
    uri: str
    reason: str = "missing"


def normalize_storage_path(path: str | None) -> str:
    if not path:
        return ""
    text = str(path).strip()
    if not text:
        return ""
    normalized = text.replace("\\", "/").lstrip("/")
    normalized = re.sub(r"/{2,}", "/", normalized)
    return normalized.strip("/")


def split_uri(uri: str) -> tuple[str | None, str]:
    """Split ``public://a/b.svg`` into ``("public", "a/b.svg")``."""
    match = _SCHEME_PATTERN.match(uri or "")
    if not match:
        return None, normalize_storage_path(uri)
    return match.group(1).lower(), normalize_storage_path(match.group(2))


class StorageFileGateway:
    """
    Reads field files through Django storages.

    Missing or unusable files are reported, never raised: ``read`` logs the
    file id and URI and hands back a ``FileUnavailable`` so the caller can
    skip the one item and keep rendering the rest of the field.
    """

    def __init__(
        self,
        storages_map: Mapping[str, Storage] | None = None,
        logger: logging.Logger | None = None,
        max_bytes: int | None = None,
    ):
        self._storages = dict(storages_map) if storages_map is not None else None
        self.logger = logger or LOGGER
        if max_bytes is None:
            max_bytes = int(getattr(settings, "SVG_IMAGE_MAX_BYTES", DEFAULT_MAX_BYTES) or 0)
        self.max_bytes = max_bytes

    def _schemes(self) -> dict[str, str]:
        return dict(getattr(settings, "SVG_IMAGE_STORAGE_SCHEMES", None) or {"public": "default"})

    def resolve(self, uri: str) -> tuple[Storage | None, str]:
        scheme, path = split_uri(uri)
        alias = "default" if scheme is None else self._schemes().get(scheme)
        if alias is None:
            return None, path
        if self._storages is not None:
            return self._storages.get(alias), path
        try:
            return storages[alias], path
        except KeyError:
            return None, path

    def locate(self, file: FileItem) -> tuple[Storage | None, str]:
        if file.storage is not None:
            return file.storage, split_uri(file.uri)[1]
        return self.resolve(file.uri)

    def read(self, file: FileItem) -> bytes | FileUnavailable:
        if file.content is not None:
            return file.content
        storage, path = self.locate(file)
        if storage is None:
            return self._unavailable(file, "unknown_scheme")
        try:
            exists = bool(path) and storage.exists(path)
        except SuspiciousFileOperation:
            return self._unavailable(file, "unreadable")
        if not exists:
            return self._unavailable(file, "missing")
        try:
            if self.max_bytes > 0 and storage.size(path) > self.max_bytes:
                return self._unavailable(file, "too_large")
        except (NotImplementedError, OSError):
            pass
        try:
            with storage.open(path, "rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            return self._unavailable(file, "missing")
        except OSError:
            return self._unavailable(file, "unreadable")
        if isinstance(data, str):
            data = data.encode("utf-8")
        if self.max_bytes > 0 and len(data) > self.max_bytes:
            return self._unavailable(file, "too_large")
        return data

    def load(self, file: FileItem) -> FileItem | FileUnavailable:
        """Return ``file`` with its content attached, or the read failure."""
        data = self.read(file)
        if isinstance(data, FileUnavailable):
            return data
        return file.with_content(data)

    def url(self, file: FileItem) -> str:
        storage, path = self.locate(file)
        if storage is not None and path:
            try:
                return storage.url(path)
            except (NotImplementedError, AttributeError, ValueError):
                pass
        return _default_media_url(path)

    def _unavailable(self, file: FileItem, reason: str) -> FileUnavailable:
        message = _UNAVAILABLE_MESSAGES.get(reason, _UNAVAILABLE_MESSAGES["unreadable"])
        self.logger.error(
            message,
            file.uri,
            file.file_id,
            extra={"file_uri": file.uri, "file_id": file.file_id},
        )
        record_metric("svg_image.file_unavailable", file_id=file.file_id, file_uri=file.uri, reason=reason)
        return FileUnavailable(file_id=file.file_id, uri=file.uri, reason=reason)


def _default_media_url(normalized: str) -> str:
    base = (getattr(settings, "MEDIA_URL", "") or "").rstrip("/")
    if not base:
        return "/" + normalized
    return f"{base}/{normalized}"
