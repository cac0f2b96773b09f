# access_scout/backends/playwright_backend.py
"""
Browser backend A: headless Chromium driven by Playwright's async API.
"""
from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from access_scout.backends.base import RenderSession
from access_scout.errors import AcquisitionError, EnrichmentError, NavigationError
from access_scout.logger import get_logger
from access_scout.models import BackendKind
from access_scout.policy import Attempt, AttemptsExhausted

__all__ = ("PlaywrightSession",)

log = get_logger("backends.playwright")


class PlaywrightSession(RenderSession):
    kind = BackendKind.PLAYWRIGHT
    supports_screenshots = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Page not initialized")
        return self._page

    async def launch(self) -> None:
        launch = self.backend.launch
        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(
            headless=launch.headless,
            args=list(launch.args),
            executable_path=launch.executable_path,
            timeout=self.profile.launch_timeout * 1000,
        )
        log.debug("Chromium %s launched", self._browser.version)

    async def new_page(self) -> None:
        if self._browser is None:
            raise RuntimeError("Browser not launched")
        settings = self.config.browser
        self._context = await self._browser.new_context(
            viewport={"width": settings.viewport_width, "height": settings.viewport_height},
            user_agent=self.config.http.user_agent,
            extra_http_headers=self.config.http.headers,
            # axe is injected as an inline script; page CSP must not block it
            bypass_csp=True,
        )
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.profile.script_timeout * 1000)

    async def navigate(self, url: str, attempt: Attempt) -> None:
        response = await self.page.goto(url, wait_until=attempt.wait_until, timeout=attempt.timeout * 1000)
        if response is not None and response.status >= 400:
            log.warning("%s answered HTTP %s, auditing the error page", url, response.status)

    def exhausted(self, url: str, failure: AttemptsExhausted) -> AcquisitionError:
        return NavigationError(
            str(failure),
            last_error=failure.last_error,
            wait_until=failure.attempt.wait_until,
            timed_out=failure.timed_out,
        )

    async def execute_script(self, source: str) -> None:
        await self.page.add_script_tag(content=source)

    async def evaluate(self, function: str, arg: Any = None) -> Any:
        return await self.page.evaluate(function, arg)

    async def screenshot(self, selector: str) -> bytes:
        locator = self.page.locator(selector).first
        if await locator.count() == 0:
            raise EnrichmentError(f"No element matches {selector!r}")
        timeout = self.profile.screenshot_timeout * 1000
        return await locator.screenshot(type="png", timeout=timeout, animations="disabled")

    async def page_screenshot(self) -> bytes:
        return await self.page.screenshot(type="png", full_page=True, timeout=self.profile.script_timeout * 1000)

    async def _teardown(self) -> None:
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._pw is not None:
                await self._pw.stop()
            self._page = self._context = self._browser = self._pw = None
