# access_scout/backends/selenium_backend.py
"""
Browser backend B: headless Chrome through Selenium WebDriver.

WebDriver is synchronous and not safe for concurrent commands, so every
driver call goes through :meth:`SeleniumSession._call`, which holds one
lock per page and runs the call in a worker thread.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, Optional, TypeVar

from selenium import webdriver
from selenium.common.exceptions import NoSuchElementException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait

from access_scout.backends.base import RenderSession, ScriptError
from access_scout.errors import AcquisitionError, EnrichmentError, NavigationError
from access_scout.logger import get_logger
from access_scout.models import BackendKind
from access_scout.policy import Attempt, AttemptsExhausted

__all__ = ("SeleniumSession", "READY_PROBES")

T = TypeVar("T")

log = get_logger("backends.selenium")

# Navigation happens with pageLoadStrategy "none"; readiness is polled per wait condition.
READY_PROBES: Dict[str, str] = {
    "commit": "return document.readyState !== undefined && location.href !== 'about:blank';",
    "domcontentloaded": "return document.readyState === 'interactive' || document.readyState === 'complete';",
    "load": "return document.readyState === 'complete';",
    "networkidle": (
        "if (document.readyState !== 'complete') return false;"
        "const n = performance.getEntriesByType('resource').length;"
        "const idle = window.__accessScoutResources === n;"
        "window.__accessScoutResources = n;"
        "return idle;"
    ),
}

# Runs an arbitrary function expression through execute_async_script and
# reports the outcome as a plain object, so page errors are never lost.
_ASYNC_CALL = """
var done = arguments[arguments.length - 1];
try {
  Promise.resolve((__FUNCTION__)(arguments[0])).then(
    function (value) { done({ok: true, value: value === undefined ? null : value}); },
    function (err) { done({ok: false, error: String((err && err.message) || err)}); }
  );
} catch (err) {
  done({ok: false, error: String((err && err.message) || err)});
}
"""


class SeleniumSession(RenderSession):
    kind = BackendKind.SELENIUM
    supports_screenshots = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._driver: Optional[webdriver.Chrome] = None
        self._lock = asyncio.Lock()

    @property
    def driver(self) -> webdriver.Chrome:
        if self._driver is None:
            raise RuntimeError("Driver not started")
        return self._driver

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        """Run one driver command in a worker thread, one command at a time.

        A cancelled caller (attempt or screenshot timeout) does not stop the
        thread, so the lock is released only when the thread itself is done.
        """
        await self._lock.acquire()
        try:
            job = asyncio.ensure_future(asyncio.to_thread(func, *args))
        except BaseException:
            self._lock.release()
            raise
        job.add_done_callback(self._command_done)
        return await asyncio.shield(job)

    def _command_done(self, job: "asyncio.Future[Any]") -> None:
        self._lock.release()
        if not job.cancelled() and job.exception() is not None:
            log.debug("Driver command finished with %r", job.exception())

    def _options(self) -> Options:
        launch = self.backend.launch
        settings = self.config.browser
        options = Options()
        if launch.headless:
            options.add_argument("--headless=new")
        for arg in launch.args:
            options.add_argument(arg)
        options.add_argument(f"--window-size={settings.viewport_width},{settings.viewport_height}")
        options.add_argument(f"--user-agent={self.config.http.user_agent}")
        if launch.executable_path:
            options.binary_location = launch.executable_path
        options.page_load_strategy = "none"
        return options

    async def launch(self) -> None:
        options = self._options()

        def start() -> webdriver.Chrome:
            # Selenium Manager resolves chromedriver unless one is on PATH
            driver = webdriver.Chrome(options=options, service=Service())
            driver.set_script_timeout(self.profile.script_timeout)
            driver.set_page_load_timeout(max(step.timeout for step in self.profile.navigation))
            return driver

        self._driver = await self._call(start)
        log.debug("Chrome session %s started", self._driver.session_id)

    async def new_page(self) -> None:
        settings = self.config.browser

        def prepare() -> None:
            self.driver.set_window_size(settings.viewport_width, settings.viewport_height)
            if self.config.http.headers:
                try:
                    self.driver.execute_cdp_cmd("Network.enable", {})
                    self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": dict(self.config.http.headers)})
                except WebDriverException as exc:
                    log.debug("Extra headers not applied: %s", exc.msg)

        await self._call(prepare)

    async def navigate(self, url: str, attempt: Attempt) -> None:
        probe = READY_PROBES[attempt.wait_until or "load"]

        def go() -> None:
            self.driver.get(url)
            # stop polling before the attempt deadline so the lock is free for the next step
            wait = WebDriverWait(self.driver, attempt.timeout * 0.8, poll_frequency=min(0.25, attempt.timeout / 20))
            wait.until(
                lambda d: bool(d.execute_script(probe)),
                message=f"Timeout {attempt.timeout:g}s exceeded waiting for '{attempt.wait_until}'",
            )

        await self._call(go)

    def exhausted(self, url: str, failure: AttemptsExhausted) -> AcquisitionError:
        error = failure.last_error
        message = error.msg if isinstance(error, WebDriverException) and error.msg else str(failure)
        return NavigationError(
            message,
            last_error=error,
            wait_until=failure.attempt.wait_until,
            timed_out=failure.timed_out,
        )

    async def execute_script(self, source: str) -> None:
        await self._call(self.driver.execute_script, source)

    async def evaluate(self, function: str, arg: Any = None) -> Any:
        script = _ASYNC_CALL.replace("__FUNCTION__", function)
        try:
            reply = await self._call(self.driver.execute_async_script, script, arg)
        except WebDriverException as exc:
            raise ScriptError(exc.msg or str(exc)) from exc
        if not isinstance(reply, dict):
            raise ScriptError(f"unexpected script reply: {json.dumps(reply)[:200]}")
        if not reply.get("ok"):
            raise ScriptError(reply.get("error") or "unknown script error")
        return reply.get("value")

    async def screenshot(self, selector: str) -> bytes:
        def capture() -> bytes:
            try:
                element = self.driver.find_element(By.CSS_SELECTOR, selector)
            except NoSuchElementException as exc:
                raise EnrichmentError(f"No element matches {selector!r}") from exc
            return element.screenshot_as_png

        return await self._call(capture)

    async def page_screenshot(self) -> bytes:
        def capture() -> bytes:
            height = self.driver.execute_script("return document.documentElement.scrollHeight")
            self.driver.set_window_size(self.config.browser.viewport_width, int(height or 0) or self.config.browser.viewport_height)
            return self.driver.get_screenshot_as_png()

        return await self._call(capture)

    async def _teardown(self) -> None:
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        try:
            # half of the teardown budget goes to waiting for a command still in flight
            await asyncio.wait_for(self._lock.acquire(), timeout=self.profile.teardown_timeout / 2)
        except asyncio.TimeoutError:
            log.warning("Driver command still running at teardown; quitting anyway")
            await asyncio.to_thread(driver.quit)
            return
        try:
            await asyncio.to_thread(driver.quit)
        finally:
            self._lock.release()
