from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any
import json
import logging
import os
import threading

try:  # pragma: no cover - platform specific
    import fcntl  # type: ignore
except Exception:  # pragma: no cover
    fcntl = None  # type: ignore

from django.conf import settings

_METRIC_LOCK = threading.Lock()
LOGGER = logging.getLogger(__name__)


def _metrics_path() -> Path | None:
    configured = getattr(settings, "SVG_IMAGE_METRICS_PATH", None)
    if not configured:
        return None
    return Path(configured)


def _metrics_max_bytes() -> int:
    return int(getattr(settings, "SVG_IMAGE_METRICS_MAX_BYTES", 5 * 1024 * 1024) or 0)


def _lock_file_handle(handle: IO[str]) -> None:
    if fcntl:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _unlock_file_handle(handle: IO[str]) -> None:
    if fcntl:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def record_metric(event: str, **fields: Any) -> None:
    """Append one telemetry line for ``event``; ``None`` fields are dropped."""
    path = _metrics_path()
    if path is None:
        return
    ts = datetime.now(timezone.utc)
    entry = {
        "event": event,
        "ts": ts.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
    }
    entry.update({k: v for k, v in fields.items() if v is not None})
    try:
        payload = json.dumps(entry, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        LOGGER.warning("Failed to serialize metric %s: %s", event, exc)
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with _METRIC_LOCK:
            _rotate_metrics_file(path)
            with path.open("a", encoding="utf-8") as fh:
                _lock_file_handle(fh)
                try:
                    fh.write(payload + "\n")
                    fh.flush()
                finally:
                    _unlock_file_handle(fh)
    except OSError as exc:
        LOGGER.warning("Failed to write metric %s: %s", event, exc)


def _rotate_metrics_file(path: Path) -> None:
    """Size-based rotation: keep one ``.1`` backup next to the live file."""
    max_bytes = _metrics_max_bytes()
    if max_bytes <= 0 or not path.exists():
        return
    if path.stat().st_size <= max_bytes:
        return
    backup = path.with_name(f"{path.name}.1")
    backup.unlink(missing_ok=True)
    os.replace(path, backup)
