# File: access_scout/audit.py
"""access_scout.audit: внедрение axe-core в страницу и запуск проверки.

Набор тегов и категорий результатов фиксирован и одинаков для всех запросов.
После внедрения обязательно проверяется, что ``window.axe.run`` существует:
молча не загрузившийся движок не должен дойти до этапа аудита.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Tuple

from access_scout.backends.base import RenderSession
from access_scout.config import AuditSettings
from access_scout.errors import AuditError, InjectionError
from access_scout.logger import get_logger
from access_scout.models import RawAuditResult

__all__ = [
    "AuditConfiguration",
    "AXE_CONFIG",
    "resolve_axe_path",
    "load_axe_source",
    "inject",
    "run_audit",
]

log = get_logger("audit")

AXE_ENV = "AXE_CORE_PATH"

AXE_READY_PROBE = "() => typeof window.axe === 'object' && window.axe !== null && typeof window.axe.run === 'function'"
AXE_RUN = "(options) => window.axe.run(document, options)"


@dataclass(frozen=True, slots=True)
class AuditConfiguration:
    """Фиксированный фильтр правил axe и запрашиваемые категории результатов."""

    tags: Tuple[str, ...] = ("wcag2a", "wcag2aa", "wcag21a", "wcag21aa")
    result_types: Tuple[str, ...] = ("violations", "passes", "incomplete")

    def options(self, *, iframes: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "runOnly": {"type": "tag", "values": list(self.tags)},
            "resultTypes": list(self.result_types),
        }
        if not iframes:
            # только верхний документ: быстрее и без ошибок cross-origin
            options["iframes"] = False
        return options


AXE_CONFIG = AuditConfiguration()


def resolve_axe_path(settings: AuditSettings) -> Path:
    """Путь к axe.min.js: настройка, затем $AXE_CORE_PATH, затем node_modules."""
    if settings.axe_script is not None:
        return Path(settings.axe_script)
    env_path = os.environ.get(AXE_ENV)
    if env_path:
        return Path(env_path)
    return Path(settings.node_modules) / "axe-core" / "axe.min.js"


@lru_cache(maxsize=4)
def _read_bundle(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def load_axe_source(settings: AuditSettings) -> str:
    """Читает локальный бандл axe-core (кэшируется на процесс)."""
    path = resolve_axe_path(settings).expanduser().resolve()
    try:
        source = _read_bundle(path)
    except OSError as exc:
        raise InjectionError(f"Failed to load axe-core library: {path} is not readable") from exc
    if not source.strip():
        raise InjectionError(f"Failed to load axe-core library: {path} is empty")
    return source


async def inject(session: RenderSession, source: str, timeout: float) -> None:
    """Выполняет бандл в глобальной области страницы и проверяет ``window.axe``."""
    try:
        await asyncio.wait_for(session.execute_script(source), timeout=timeout)
        ready = await asyncio.wait_for(session.evaluate(AXE_READY_PROBE), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise InjectionError(f"Failed to load axe-core library: injection timed out after {timeout:g}s") from exc
    except InjectionError:
        raise
    except Exception as exc:
        raise InjectionError(f"Failed to load axe-core library: {exc}") from exc
    if not ready:
        raise InjectionError("Failed to load axe-core library")
    log.debug("axe-core injected into %s session", session.kind.value)


async def run_audit(
    session: RenderSession,
    timeout: float,
    config: AuditConfiguration = AXE_CONFIG,
) -> RawAuditResult:
    """Запускает ``axe.run`` и возвращает сырые результаты."""
    options = config.options(iframes=not session.kind.is_browser)
    try:
        raw = await asyncio.wait_for(session.evaluate(AXE_RUN, options), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise AuditError(f"Accessibility audit timed out after {timeout:g}s") from exc
    except Exception as exc:
        raise AuditError(f"Accessibility audit failed: {exc}") from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("violations"), list):
        raise AuditError("Accessibility audit returned an unexpected result")

    return RawAuditResult(
        violations=raw["violations"],
        passes=len(raw.get("passes") or []),
        incomplete=len(raw.get("incomplete") or []),
        url=raw.get("url") or None,
        timestamp=raw.get("timestamp") or None,
    )
