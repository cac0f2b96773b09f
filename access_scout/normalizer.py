# File: access_scout/normalizer.py
"""access_scout.normalizer: приведение результатов к стабильной форме ответа."""

from __future__ import annotations

from typing import List, Optional

from access_scout.models import NormalizedResult, RawAuditResult, Violation

__all__ = ["normalize"]


def normalize(
    raw: RawAuditResult,
    enriched: List[Violation],
    fallback_url: str,
    fallback_timestamp: str,
) -> NormalizedResult:
    """Собирает итоговый результат.

    URL и время из ответа движка аудита важнее запасных значений конвейера.
    Чистая функция: ничего не ждёт и ничего не пишет.
    """
    return NormalizedResult(
        violations=list(enriched),
        passes=int(raw.passes),
        incomplete=int(raw.incomplete),
        url=_first(raw.url, fallback_url),
        timestamp=_first(raw.timestamp, fallback_timestamp),
    )


def _first(preferred: Optional[str], fallback: str) -> str:
    return preferred if preferred else fallback
