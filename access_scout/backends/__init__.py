# File: access_scout/backends/__init__.py
"""access_scout.backends: бэкенды отрисовки страницы (статический, Playwright, Selenium)."""

from __future__ import annotations

from access_scout.backends.base import RenderSession, ScriptError
from access_scout.config import AnalyzerConfig
from access_scout.models import BackendKind, RenderBackend


def create_session(backend: RenderBackend, config: AnalyzerConfig) -> RenderSession:
    """Создаёт новую (ещё не запущенную) сессию для выбранного бэкенда.

    Драйверы браузеров импортируются лениво: статическому пути они не нужны.
    """
    profile = config.profile(backend.profile)
    if backend.kind is BackendKind.NONE:
        from access_scout.backends.static import StaticSession

        return StaticSession(backend, config, profile)
    if backend.kind is BackendKind.PLAYWRIGHT:
        from access_scout.backends.playwright_backend import PlaywrightSession

        return PlaywrightSession(backend, config, profile)
    if backend.kind is BackendKind.SELENIUM:
        from access_scout.backends.selenium_backend import SeleniumSession

        return SeleniumSession(backend, config, profile)
    raise ValueError(f"Unsupported backend: {backend.kind}")


__all__ = ["RenderSession", "ScriptError", "create_session"]
