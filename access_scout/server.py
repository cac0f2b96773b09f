# File: access_scout/server.py
"""access_scout.server: HTTP-интерфейс сервиса на aiohttp.web.

Маршруты:
  POST /analyze     ``{url}`` -> результат анализа доступности
  POST /screenshot  ``{url}`` -> ``{screenshot: "data:image/png;base64,..."}``
  GET  /health      состояние сервиса и выбранный бэкенд

Все ошибки возвращаются в одной форме ``{error, details?, timestamp}``.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from aiohttp import web

from access_scout import __version__
from access_scout.config import AnalyzerConfig
from access_scout.engine import Engine
from access_scout.errors import AnalysisError, error_body
from access_scout.logger import get_logger

__all__ = ["ENGINE_KEY", "create_app", "run_server"]

log = get_logger("server")

ENGINE_KEY = web.AppKey("engine", Engine)


async def _read_payload(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(
            text=json.dumps(error_body("Invalid JSON body", "Send a JSON object like {\"url\": \"https://example.com\"}.")),
            content_type="application/json",
        ) from None


def _error_response(exc: AnalysisError) -> web.Response:
    return web.json_response(exc.to_response(), status=exc.status)


async def _handle(
    request: web.Request,
    action: Callable[[Engine, Any], Awaitable[Any]],
    generic_message: str,
) -> web.Response:
    payload = await _read_payload(request)
    engine = request.app[ENGINE_KEY]
    try:
        body = await action(engine, payload)
    except AnalysisError as exc:
        return _error_response(exc)
    except ValueError as exc:
        # неизвестный профиль или бэкенд в окружении сервера
        log.error("Configuration error: %s", exc)
        return web.json_response(error_body(generic_message, str(exc)), status=500)
    return web.json_response(body)


async def analyze(request: web.Request) -> web.Response:
    async def _action(engine: Engine, payload: Any) -> Any:
        result = await engine.analyze(payload)
        return result.to_dict()

    return await _handle(request, _action, "Failed to analyze URL")


async def screenshot(request: web.Request) -> web.Response:
    async def _action(engine: Engine, payload: Any) -> Any:
        return {"screenshot": await engine.screenshot_page(payload)}

    return await _handle(request, _action, "Failed to capture screenshot")


async def health(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    try:
        backend = engine.select()
    except ValueError as exc:
        return web.json_response(error_body("Misconfigured backend", str(exc)), status=500)
    return web.json_response(
        {
            "status": "ok",
            "profile": backend.profile,
            "backend": backend.kind.value,
            "version": __version__,
        }
    )


def create_app(engine: Engine) -> web.Application:
    app = web.Application()
    app[ENGINE_KEY] = engine
    app.router.add_post("/analyze", analyze)
    app.router.add_post("/screenshot", screenshot)
    app.router.add_get("/health", health)
    return app


def run_server(config: AnalyzerConfig, host: str | None = None, port: int | None = None) -> None:
    """Блокирующий запуск сервера (используется командой ``serve``)."""
    engine = Engine(config)
    host = host or config.server.host
    port = port or config.server.port
    log.info("Serving on http://%s:%d", host, port)
    web.run_app(create_app(engine), host=host, port=port, print=None)
