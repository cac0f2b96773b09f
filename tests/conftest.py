# File: tests/conftest.py
from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from PIL import Image

from access_scout.audit import AXE_READY_PROBE, AXE_RUN
from access_scout.backends.base import CONTENT_PROBE, RenderSession, ScriptError
from access_scout.config import AnalyzerConfig, DeploymentProfile, NavigationStep, RetryPolicy
from access_scout.errors import AcquisitionError, NavigationError
from access_scout.models import BackendKind, RenderBackend
from access_scout.policy import Attempt, AttemptsExhausted


def make_png(width: int = 4, height: int = 4, color: str = "red") -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


TINY_PNG = make_png()


def sample_axe_result(url: str = "http://example.test/") -> Dict[str, Any]:
    """A trimmed ``axe.run`` result with one image-alt violation on two nodes."""
    return {
        "url": url,
        "timestamp": "2024-05-01T10:00:00.000Z",
        "violations": [
            {
                "id": "image-alt",
                "impact": "critical",
                "description": "Ensures <img> elements have alternate text or a role of none or presentation",
                "help": "Images must have alternate text",
                "helpUrl": "https://dequeuniversity.com/rules/axe/4.10/image-alt",
                "tags": ["cat.text-alternatives", "wcag2a", "wcag111"],
                "nodes": [
                    {
                        "html": '<img src="a.png">',
                        "target": ["img:nth-child(1)"],
                        "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                        "any": [],
                    },
                    {
                        "html": '<img src="b.png">',
                        "target": ["img:nth-child(2)"],
                        "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                    },
                ],
            }
        ],
        "passes": [{"id": "document-title"}, {"id": "html-has-lang"}],
        "incomplete": [],
    }


class SessionTracker:
    """Counts sessions created and closed by the engine (leak counter)."""

    def __init__(self) -> None:
        self.sessions: List["FakeSession"] = []

    @property
    def open(self) -> int:
        return sum(1 for s in self.sessions if not s.closed)

    @property
    def close_calls(self) -> int:
        return sum(s.close_calls for s in self.sessions)


class FakeSession(RenderSession):
    """Scriptable render session: every stage can be told to fail or hang."""

    kind = BackendKind.PLAYWRIGHT
    supports_screenshots = True
    retryable = (Exception,)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fail: Dict[str, BaseException] = {}
        self.hang: set[str] = set()
        self.nav_errors: List[Optional[BaseException]] = []
        self.has_content = True
        self.axe_loaded = True
        self.axe_result: Any = sample_axe_result()
        self.shots: Dict[str, Any] = {}
        self.navigations: List[Attempt] = []
        self.calls: List[str] = []
        self.close_calls = 0
        self.audit_options: Any = None

    async def _stage(self, name: str) -> None:
        self.calls.append(name)
        if name in self.hang:
            await asyncio.sleep(3600)
        if name in self.fail:
            raise self.fail[name]

    async def launch(self) -> None:
        await self._stage("launch")

    async def new_page(self) -> None:
        await self._stage("new_page")

    async def navigate(self, url: str, attempt: Attempt) -> None:
        self.navigations.append(attempt)
        index = len(self.navigations) - 1
        if index < len(self.nav_errors) and self.nav_errors[index] is not None:
            raise self.nav_errors[index]
        await self._stage("navigate")

    def exhausted(self, url: str, failure: AttemptsExhausted) -> AcquisitionError:
        return NavigationError(
            str(failure.last_error),
            last_error=failure.last_error,
            wait_until=failure.attempt.wait_until,
            timed_out=failure.timed_out,
        )

    async def execute_script(self, source: str) -> None:
        await self._stage("inject")

    async def evaluate(self, function: str, arg: Any = None) -> Any:
        if function == CONTENT_PROBE:
            await self._stage("verify")
            return self.has_content
        if function == AXE_READY_PROBE:
            return self.axe_loaded
        if function == AXE_RUN:
            await self._stage("audit")
            self.audit_options = arg
            return self.axe_result
        raise ScriptError(f"unexpected script: {function[:40]}")

    async def screenshot(self, selector: str) -> bytes:
        self.calls.append(f"screenshot:{selector}")
        outcome = self.shots.get(selector, TINY_PNG)
        if outcome == "hang":
            await asyncio.sleep(3600)
        if isinstance(outcome, float):
            # медленный, но успешный снимок
            await asyncio.sleep(outcome)
            return TINY_PNG
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def page_screenshot(self) -> bytes:
        await self._stage("page_screenshot")
        return TINY_PNG

    async def close(self) -> None:
        self.close_calls += 1
        await super().close()

    async def _teardown(self) -> None:
        if "teardown" in self.fail:
            raise self.fail["teardown"]


class FakeStaticSession(FakeSession):
    kind = BackendKind.NONE
    supports_screenshots = False


def _test_profiles() -> Dict[str, DeploymentProfile]:
    return {
        "test": DeploymentProfile(
            backend=BackendKind.PLAYWRIGHT,
            deadline=10.0,
            navigation=(
                NavigationStep(wait_until="networkidle", timeout=0.5),
                NavigationStep(wait_until="domcontentloaded", timeout=0.5),
                NavigationStep(wait_until="load", timeout=0.5),
            ),
            launch_timeout=1.0,
            settle_delay=0.0,
            script_timeout=1.0,
            screenshot_timeout=0.3,
            teardown_timeout=0.5,
        ),
        "test-static": DeploymentProfile(
            backend=BackendKind.NONE,
            deadline=10.0,
            fetch=RetryPolicy(attempts=2, per_attempt_timeout=1.0, backoff=0.05, max_backoff=0.1),
            script_timeout=1.0,
            teardown_timeout=0.5,
        ),
    }


@pytest.fixture()
def axe_stub(tmp_path: Path) -> Path:
    """Fake axe bundle; the fake sessions never execute it."""
    path = tmp_path / "axe.min.js"
    path.write_text("window.axe = { run: function () {} };", encoding="utf-8")
    return path


@pytest.fixture()
def config(axe_stub: Path) -> AnalyzerConfig:
    return AnalyzerConfig(
        audit={"axe_script": axe_stub},
        profiles=_test_profiles(),
        default_profile="test",
    )


@pytest.fixture()
def tracker() -> SessionTracker:
    return SessionTracker()


@pytest.fixture()
def session_factory(tracker: SessionTracker) -> Callable[..., Callable[[RenderBackend, AnalyzerConfig], FakeSession]]:
    """``session_factory(configure)`` builds a factory whose sessions pass through *configure*."""

    def make(configure: Callable[[FakeSession], None] = lambda s: None):
        def factory(backend: RenderBackend, cfg: AnalyzerConfig) -> FakeSession:
            cls = FakeSession if backend.kind.is_browser else FakeStaticSession
            session = cls(backend, cfg, cfg.profile(backend.profile))
            configure(session)
            tracker.sessions.append(session)
            return session

        return factory

    return make

