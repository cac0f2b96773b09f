# File: access_scout/selector.py
"""access_scout.selector: выбор бэкенда отрисовки по сигналам окружения.

Чистая функция без ввода-вывода: окружение передаётся явно, поэтому тесты
подставляют обычный словарь вместо ``os.environ``.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Tuple

from access_scout.config import AnalyzerConfig
from access_scout.models import BackendKind, LaunchOptions, RenderBackend

__all__: Sequence[str] = ("select_backend", "detect_profile", "chromium_args")

PROFILE_ENV = "ACCESS_SCOUT_PROFILE"
BACKEND_ENV = "ACCESS_SCOUT_BACKEND"
EXECUTABLE_ENV = "CHROME_EXECUTABLE_PATH"

# (переменные окружения, профиль); проверяются по порядку
_PLATFORM_SIGNALS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("RAILWAY_ENVIRONMENT", "RAILWAY_PROJECT_ID"), "railway"),
    (("AWS_LAMBDA_FUNCTION_NAME",), "lambda"),
    (("VERCEL",), "vercel"),
)

_BASE_CHROMIUM_ARGS: Tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
)


def detect_profile(env: Mapping[str, str], default: str) -> str:
    """Имя профиля развёртывания: явное указание, платформа или значение по умолчанию."""
    explicit = (env.get(PROFILE_ENV) or "").strip()
    if explicit:
        return explicit
    for names, profile in _PLATFORM_SIGNALS:
        if any(env.get(name) for name in names):
            return profile
    return default


def chromium_args(config: AnalyzerConfig) -> Tuple[str, ...]:
    args = list(_BASE_CHROMIUM_ARGS)
    if config.browser.disable_http2:
        args.append("--disable-http2")
    for extra in config.browser.extra_args:
        if extra not in args:
            args.append(extra)
    return tuple(args)


def select_backend(
    env: Mapping[str, str],
    config: AnalyzerConfig,
    *,
    profile: Optional[str] = None,
    backend: Optional[str] = None,
) -> RenderBackend:
    """Детерминированно выбирает :class:`RenderBackend` для одного запроса.

    ``profile``/``backend``: явные значения (например, из CLI), они важнее
    переменных окружения. Неизвестные имена дают ValueError.
    """
    name = profile or detect_profile(env, config.default_profile)
    deployment = config.profile(name)

    override = backend or (env.get(BACKEND_ENV) or "").strip().lower()
    if override:
        try:
            kind = BackendKind(override)
        except ValueError:
            raise ValueError(f"Unknown render backend: {override}") from None
    else:
        kind = deployment.backend

    if not kind.is_browser:
        return RenderBackend(kind=kind, profile=name)

    launch = LaunchOptions(
        headless=config.browser.headless,
        executable_path=(env.get(EXECUTABLE_ENV) or None),
        args=chromium_args(config),
    )
    return RenderBackend(kind=kind, profile=name, launch=launch)
