# access_scout/backends/base.py
"""
Common contract for rendering backends.

A :class:`RenderSession` is the *acquired page* of one scan: it owns either a
static document plus an offline script context, or a live browser process
with a single page. The pipeline drives every backend through the same
methods::

    launch -> new_page -> navigate(url, attempt) x N -> settle -> verify_content
           -> render -> execute_script / evaluate / screenshot -> close
"""
from __future__ import annotations

import abc
import asyncio
from typing import Any, ClassVar, List, Tuple, Type

from access_scout.config import AnalyzerConfig, DeploymentProfile
from access_scout.errors import AcquisitionError, EnrichmentError
from access_scout.logger import get_logger
from access_scout.models import BackendKind, RenderBackend
from access_scout.policy import Attempt, AttemptsExhausted, navigation_plan

log = get_logger("backends")

# Expression evaluated in the page to decide whether the document is worth auditing.
CONTENT_PROBE = """() => {
  const body = document.body;
  if (!body) return false;
  return body.children.length > 0 || (body.textContent || '').trim().length > 0;
}"""


class ScriptError(Exception):
    """A script evaluated inside the page threw or returned garbage."""


class RenderSession(abc.ABC):
    """One acquired page, owned by exactly one scan."""

    kind: ClassVar[BackendKind]
    #: a live browser exists, so element screenshots are possible
    supports_screenshots: ClassVar[bool] = False

    def __init__(self, backend: RenderBackend, config: AnalyzerConfig, profile: DeploymentProfile) -> None:
        self.backend = backend
        self.config = config
        self.profile = profile
        self.closed = False

    # -- acquisition -------------------------------------------------------

    @abc.abstractmethod
    async def launch(self) -> None:
        """Start whatever the backend needs (HTTP session, browser process)."""

    async def new_page(self) -> None:
        """Open the single page/tab of this scan."""

    def navigation_plan(self) -> List[Attempt]:
        return navigation_plan(self.profile.navigation)

    #: failures of :meth:`navigate` that move on to the next attempt
    retryable: ClassVar[Tuple[Type[BaseException], ...]] = (Exception,)

    @abc.abstractmethod
    async def navigate(self, url: str, attempt: Attempt) -> None:
        """Load *url* under the rules of one attempt."""

    @abc.abstractmethod
    def exhausted(self, url: str, failure: AttemptsExhausted) -> AcquisitionError:
        """Map a fully failed plan to the typed acquisition error."""

    @property
    def settle_delay(self) -> float:
        return self.profile.settle_delay if self.kind.is_browser else 0.0

    async def verify_content(self) -> bool:
        return bool(await self.evaluate(CONTENT_PROBE))

    async def render(self) -> None:
        """Materialize the loaded document in a script context (no-op for browsers)."""

    # -- scripting ---------------------------------------------------------

    @abc.abstractmethod
    async def execute_script(self, source: str) -> None:
        """Run *source* in the page's global scope."""

    @abc.abstractmethod
    async def evaluate(self, function: str, arg: Any = None) -> Any:
        """Call a JS function expression with *arg*; promises are awaited."""

    # -- evidence ----------------------------------------------------------

    async def screenshot(self, selector: str) -> bytes:
        """PNG bytes of the first element matching *selector*."""
        raise EnrichmentError(f"{self.kind.value} backend has no live browser to capture screenshots")

    async def page_screenshot(self) -> bytes:
        raise EnrichmentError(f"{self.kind.value} backend has no live browser to capture screenshots")

    # -- teardown ----------------------------------------------------------

    @abc.abstractmethod
    async def _teardown(self) -> None:
        """Release backend resources; may raise."""

    async def close(self) -> None:
        """Release resources exactly once. Never raises; failures are logged."""
        if self.closed:
            return
        self.closed = True
        try:
            await asyncio.wait_for(self._teardown(), timeout=self.profile.teardown_timeout)
        except Exception as exc:  # noqa: BLE001
            log.warning("Teardown of %s session failed: %r", self.kind.value, exc)
        else:
            log.debug("%s session closed", self.kind.value)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__} profile={self.backend.profile} {state}>"
