# File: access_scout/utils.py
"""access_scout.utils: мелкие утилиты для URL, времени и кодирования изображений."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Sequence
from urllib.parse import urlparse

__all__: Sequence[str] = (
    "utc_timestamp",
    "is_http_url",
    "png_data_url",
)


def utc_timestamp() -> str:
    """Текущее время UTC в ISO-8601 с миллисекундами и суффиксом ``Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_http_url(url: str) -> bool:
    """Проверяет, что URL использует http(s) и содержит хост."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def png_data_url(data: bytes) -> str:
    """Кодирует PNG-байты в ``data:`` URL."""
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")
