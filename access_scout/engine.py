# File: access_scout/engine.py
"""access_scout.engine: оркестрация конвейера анализа одной страницы.

Порядок этапов фиксирован::

    validate -> select -> acquire -> inject -> audit -> enrich -> normalize

Сессия закрывается ровно один раз на любом пути (успех, типизированная
ошибка, неожиданное исключение, общий таймаут, отмена).
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, Mapping, Optional

from access_scout.acquirer import acquire
from access_scout.audit import AXE_CONFIG, inject, load_axe_source, run_audit
from access_scout.backends import RenderSession, create_session
from access_scout.config import AnalyzerConfig, load_config
from access_scout.enricher import enrich
from access_scout.errors import AnalysisError, NavigationError, PageTimeoutError
from access_scout.logger import get_logger
from access_scout.models import NormalizedResult, RenderBackend, ScanRequest, Violation
from access_scout.normalizer import normalize
from access_scout.reaper import reaping
from access_scout.selector import select_backend
from access_scout.utils import png_data_url, utc_timestamp

__all__ = ["Engine", "SessionFactory"]

log = get_logger("engine")

SessionFactory = Callable[[RenderBackend, AnalyzerConfig], RenderSession]

# время после скриншотов на нормализацию и ответ
RESPONSE_MARGIN = 0.2


class _Scan:
    """Состояние одного запроса: текущий этап и крайний срок конвейера."""

    __slots__ = ("url", "backend", "stage", "deadline")

    def __init__(self, url: str, backend: RenderBackend) -> None:
        self.url = url
        self.backend = backend
        self.stage = "select"
        #: момент (по часам цикла событий), к которому конвейер должен завершиться
        self.deadline: Optional[float] = None

    def remaining(self, margin: float = 0.0) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - asyncio.get_running_loop().time() - margin)


class Engine:
    """Фасад для HTTP-сервера, CLI и тестов."""

    @staticmethod
    def load_config(path: Optional[str]) -> AnalyzerConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: AnalyzerConfig,
        *,
        env: Optional[Mapping[str, str]] = None,
        profile: Optional[str] = None,
        backend: Optional[str] = None,
        session_factory: SessionFactory = create_session,
    ) -> None:
        self.config = config
        self.env = env
        self.profile = profile
        self.backend = backend
        self.session_factory = session_factory

    def select(self) -> RenderBackend:
        """Бэкенд для очередного запроса (окружение читается заново каждый раз)."""
        env = self.env if self.env is not None else os.environ
        return select_backend(env, self.config, profile=self.profile, backend=self.backend)

    # ------------------------------------------------------------------ #
    # POST /analyze                                                      #
    # ------------------------------------------------------------------ #

    async def analyze(self, payload: Any) -> NormalizedResult:
        """Полный анализ доступности одной страницы.

        Ошибки проверки запроса выбрасываются до создания сессии. Все прочие
        сбои приходят наружу как :class:`AnalysisError`.
        """
        request = ScanRequest.from_payload(payload)
        backend = self.select()
        scan = _Scan(request.url, backend)
        log.info("Analyzing %s with %s backend (%s profile)", request.url, backend.kind.value, backend.profile)
        result: NormalizedResult = await self._run(scan, self._analyze, "Failed to analyze URL")
        log.info(
            "Analysis of %s complete: %d violations, %d passes, %d incomplete",
            request.url,
            len(result.violations),
            result.passes,
            result.incomplete,
        )
        return result

    async def _analyze(self, scan: _Scan, session: RenderSession) -> NormalizedResult:
        started = utc_timestamp()
        profile = session.profile

        scan.stage = "acquire"
        await acquire(session, scan.url)

        scan.stage = "inject"
        source = load_axe_source(self.config.audit)
        await inject(session, source, profile.script_timeout)

        scan.stage = "audit"
        raw = await run_audit(session, profile.script_timeout, AXE_CONFIG)
        violations = [Violation.from_raw(v) for v in raw.violations]

        scan.stage = "enrich"
        enriched = await enrich(violations, session, self.config.enrichment, budget=scan.remaining(RESPONSE_MARGIN))

        scan.stage = "normalize"
        return normalize(raw, enriched, fallback_url=scan.url, fallback_timestamp=started)

    # ------------------------------------------------------------------ #
    # POST /screenshot                                                   #
    # ------------------------------------------------------------------ #

    async def screenshot_page(self, payload: Any) -> str:
        """Скриншот всей страницы как ``data:image/png;base64,...``."""
        request = ScanRequest.from_payload(payload)
        backend = self.select()
        if not backend.kind.is_browser:
            raise AnalysisError(
                "Failed to capture screenshot",
                details="Screenshots need a browser backend. Use a deployment profile with playwright or selenium.",
            )
        scan = _Scan(request.url, backend)
        log.info("Capturing %s with %s backend", request.url, backend.kind.value)
        return await self._run(scan, self._screenshot, "Failed to capture screenshot")

    async def _screenshot(self, scan: _Scan, session: RenderSession) -> str:
        scan.stage = "acquire"
        await acquire(session, scan.url)
        scan.stage = "screenshot"
        timeout = session.profile.script_timeout
        try:
            data = await asyncio.wait_for(session.page_screenshot(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise PageTimeoutError(f"Screenshot timed out after {timeout:g}s") from exc
        return png_data_url(data)

    # ------------------------------------------------------------------ #
    # Общая граница ошибок                                               #
    # ------------------------------------------------------------------ #

    async def _run(self, scan: _Scan, pipeline: Callable[..., Any], generic_message: str) -> Any:
        profile = self.config.profile(scan.backend.profile)
        budget = profile.deadline - profile.teardown_timeout
        session = self.session_factory(scan.backend, self.config)
        try:
            async with reaping(session):
                scan.deadline = asyncio.get_running_loop().time() + budget
                return await asyncio.wait_for(pipeline(scan, session), timeout=budget)
        except AnalysisError as exc:
            exc.stage = scan.stage
            self._log_failure(scan, exc)
            raise
        except asyncio.TimeoutError as exc:
            error = PageTimeoutError(f"Analysis timed out ({budget:g}s limit) during {scan.stage}")
            error.stage = scan.stage
            self._log_failure(scan, error)
            raise error from exc
        except Exception as exc:
            log.exception("Unexpected failure while processing %s at stage %s", scan.url, scan.stage)
            error = AnalysisError(generic_message, details=str(exc) or type(exc).__name__)
            error.stage = scan.stage
            raise error from exc

    @staticmethod
    def _log_failure(scan: _Scan, exc: AnalysisError) -> None:
        step = ""
        if isinstance(exc, NavigationError) and exc.wait_until:
            step = f" (last step: {exc.wait_until})"
        log.error(
            "%s failed for %s [backend=%s, stage=%s]%s: %s",
            exc.category,
            scan.url,
            scan.backend.kind.value,
            scan.stage,
            step,
            exc.message,
        )
