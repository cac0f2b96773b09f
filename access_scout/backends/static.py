# access_scout/backends/static.py
"""
No-browser backend: one HTTP fetch (with retry/backoff) and a parsed DOM.

The body is fetched with aiohttp, checked for usable content with
BeautifulSoup, and only then loaded into the offline jsdom context where the
audit engine runs. No browser process is ever started.
"""
from __future__ import annotations

import asyncio
from typing import Any, ClassVar, List, Optional, Sequence, Tuple, Type

from aiohttp import ClientError, ClientResponseError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from access_scout.backends.base import RenderSession, ScriptError
from access_scout.backends.jsdom import JsdomContext
from access_scout.errors import AcquisitionError, FetchError, InjectionError, PageTimeoutError
from access_scout.logger import get_logger
from access_scout.models import BackendKind
from access_scout.policy import Attempt, AttemptsExhausted, retry_plan

__all__ = ("StaticSession", "has_meaningful_content")

log = get_logger("backends.static")

_RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

# elements that carry accessibility meaning even without any text
_CONTENT_TAGS = ("img", "input", "select", "textarea", "button", "a", "iframe", "video", "audio", "svg", "object", "embed", "canvas", "form", "table")


def has_meaningful_content(html: str) -> bool:
    """True if the document body has visible text or at least one content element."""
    if not html or not html.strip():
        return False
    soup = BeautifulSoup(html, "html.parser")
    # html.parser builds no <body> for fragments
    body = soup.body or soup
    for element in body(["head", "script", "style", "noscript", "template"]):
        element.decompose()
    if body.get_text(strip=True):
        return True
    return body.find(_CONTENT_TAGS) is not None


class StaticSession(RenderSession):
    """Static HTML parse rendered into an offline jsdom context."""

    kind = BackendKind.NONE
    supports_screenshots = False
    retryable: ClassVar[Tuple[Type[BaseException], ...]] = (ClientError,)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.http: Optional[ClientSession] = None
        self.context: Optional[JsdomContext] = None
        self.html: str = ""
        self.final_url: Optional[str] = None
        self.status: Optional[int] = None

    async def launch(self) -> None:
        # per-attempt deadlines come from the attempt plan, not the session
        self.http = ClientSession(
            timeout=ClientTimeout(total=None),
            headers=self.config.http.request_headers(),
            raise_for_status=False,
        )

    def navigation_plan(self) -> List[Attempt]:
        return retry_plan(self.profile.fetch)

    async def navigate(self, url: str, attempt: Attempt) -> None:
        if self.http is None:
            raise RuntimeError("Session not initialized")
        async with self.http.get(url, timeout=ClientTimeout(total=attempt.timeout)) as resp:
            if resp.status in _RETRY_STATUS:
                raise ClientResponseError(
                    resp.request_info, resp.history, status=resp.status, message=f"retryable status {resp.status}"
                )
            if resp.status >= 400:
                raise FetchError(f"Failed to fetch URL: {resp.status} {resp.reason or ''}".rstrip())
            self.status = resp.status
            self.final_url = str(resp.url)
            self.html = await resp.text(errors="replace")
        log.debug("Fetched %s (%d bytes, HTTP %s)", url, len(self.html), self.status)

    def exhausted(self, url: str, failure: AttemptsExhausted) -> AcquisitionError:
        if failure.timed_out:
            return PageTimeoutError(
                f"Website timeout ({self.profile.fetch.per_attempt_timeout:g}s limit). "
                "The site is too slow or unresponsive for this deployment."
            )
        error = failure.last_error
        if isinstance(error, ClientResponseError):
            return FetchError(f"Failed to fetch URL: {error.status} {error.message}")
        return FetchError(f"Failed to fetch URL: {error}")

    async def verify_content(self) -> bool:
        return has_meaningful_content(self.html)

    async def render(self) -> None:
        self.context = JsdomContext(
            node_binary=self.config.audit.node_binary,
            node_modules=self.config.audit.node_modules,
            timeout=self.profile.script_timeout,
        )
        await self.context.start()
        try:
            await self.context.load(self.html, self.final_url or "about:blank")
        except (ScriptError, asyncio.TimeoutError) as exc:
            raise InjectionError(f"Failed to build the offline DOM: {exc}") from exc

    async def execute_script(self, source: str) -> None:
        await self._require_context().request("exec", source=source)

    async def evaluate(self, function: str, arg: Any = None) -> Any:
        return await self._require_context().request("call", source=function, arg=arg)

    def _require_context(self) -> JsdomContext:
        if self.context is None:
            raise ScriptError("document has not been rendered")
        return self.context

    async def _teardown(self) -> None:
        try:
            if self.context is not None:
                await self.context.close()
        finally:
            if self.http is not None and not self.http.closed:
                await self.http.close()
