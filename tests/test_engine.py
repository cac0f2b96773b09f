# File: tests/test_engine.py
"""Тесты конвейера Engine на подставных сессиях.

Главное свойство: на любом этапе сбоя сессия закрывается ровно один раз,
а счётчик открытых сессий возвращается к нулю.
"""
from __future__ import annotations

import asyncio
from io import BytesIO

import pytest
from PIL import Image
from conftest import TINY_PNG, make_png, sample_axe_result

from access_scout.config import AnalyzerConfig, DeploymentProfile, NavigationStep
from access_scout.engine import Engine
from access_scout.enricher import BUDGET_EXHAUSTED, enrich, fit_png
from access_scout.errors import (
    AnalysisError,
    AuditError,
    EmptyContentError,
    InjectionError,
    NavigationError,
    RequestValidationError,
)
from access_scout.models import BackendKind, RenderBackend, Violation

URL = "http://example.test/"


def make_engine(config, factory, **kwargs) -> Engine:
    return Engine(config, env={}, session_factory=factory, **kwargs)


# --------------------------------------------------------------------------- #
#                               Validation                                    #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "payload",
    [None, {}, {"url": ""}, {"url": "   "}, {"url": 42}, {"url": "ftp://example.test/"}, {"url": "http://"}, ["x"]],
)
async def test_invalid_request_creates_no_session(config, session_factory, tracker, payload):
    engine = make_engine(config, session_factory())
    with pytest.raises(RequestValidationError) as info:
        await engine.analyze(payload)
    assert info.value.status == 400
    assert info.value.message == "Invalid URL provided"
    assert tracker.sessions == []


# --------------------------------------------------------------------------- #
#                               Happy path                                    #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_analyze_returns_normalized_result(config, session_factory, tracker):
    engine = make_engine(config, session_factory())
    result = await engine.analyze({"url": URL})

    body = result.to_dict()
    assert set(body) == {"violations", "passes", "incomplete", "url", "timestamp"}
    assert body["passes"] == 2
    assert body["incomplete"] == 0
    assert body["url"] == URL
    assert body["timestamp"] == "2024-05-01T10:00:00.000Z"

    (violation,) = body["violations"]
    assert violation["id"] == "image-alt"
    assert violation["helpUrl"].endswith("/image-alt")
    assert set(violation["nodes"][0]) == {"html", "target", "failureSummary", "screenshot"}
    assert all(n["screenshot"].startswith("data:image/png;base64,") for n in violation["nodes"])

    session = tracker.sessions[0]
    assert session.calls[:5] == ["launch", "new_page", "navigate", "verify", "inject"]
    assert session.audit_options["runOnly"] == {"type": "tag", "values": ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa"]}
    assert session.audit_options["iframes"] is False
    assert tracker.open == 0
    assert tracker.close_calls == 1


@pytest.mark.asyncio()
async def test_static_backend_has_null_screenshots(config, session_factory, tracker):
    engine = make_engine(config, session_factory(), backend="none")
    result = await engine.analyze({"url": URL})
    nodes = result.violations[0].nodes
    assert [n.screenshot for n in nodes] == [None, None]
    assert all(n.evidence.status == "skipped" for n in nodes)
    assert "iframes" not in tracker.sessions[0].audit_options
    assert not any(c.startswith("screenshot:") for c in tracker.sessions[0].calls)


@pytest.mark.asyncio()
async def test_engine_fallbacks_when_audit_omits_url_and_timestamp(config, session_factory):
    def configure(session):
        session.axe_result = {"violations": [], "passes": [], "incomplete": [{"id": "x"}]}

    result = await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert result.url == URL
    assert result.timestamp.endswith("Z")
    assert result.incomplete == 1
    assert result.violations == []


@pytest.mark.asyncio()
async def test_analysis_is_repeatable_on_identical_page(config, session_factory):
    engine = make_engine(config, session_factory())
    first = await engine.analyze({"url": URL})
    second = await engine.analyze({"url": URL})

    def shape(result):
        return [(v.id, [tuple(n.target) for n in v.nodes]) for v in result.violations]

    assert shape(first) == shape(second)


# --------------------------------------------------------------------------- #
#                     Teardown on every failure stage                         #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "stage, exc, expected",
    [
        ("launch", RuntimeError("no chromium"), AnalysisError),
        ("new_page", RuntimeError("context crashed"), AnalysisError),
        ("verify", None, EmptyContentError),
        ("inject", RuntimeError("CSP"), InjectionError),
        ("audit", RuntimeError("axe exploded"), AuditError),
    ],
)
async def test_session_closed_once_on_failure(config, session_factory, tracker, stage, exc, expected):
    def configure(session):
        if stage == "verify":
            session.has_content = False
        else:
            session.fail[stage] = exc

    engine = make_engine(config, session_factory(configure))
    with pytest.raises(expected) as info:
        await engine.analyze({"url": URL})

    assert info.value.to_response()["error"]
    assert tracker.close_calls == 1
    assert tracker.open == 0


@pytest.mark.asyncio()
@pytest.mark.parametrize("stage", ["launch", "navigate", "verify", "audit"])
async def test_session_closed_once_when_stage_hangs(config, session_factory, tracker, stage):
    def configure(session):
        session.hang.add(stage)

    engine = make_engine(config, session_factory(configure))
    with pytest.raises(AnalysisError):
        await engine.analyze({"url": URL})
    assert tracker.close_calls == 1
    assert tracker.open == 0


@pytest.mark.asyncio()
async def test_empty_page_message(config, session_factory, tracker):
    def configure(session):
        session.has_content = False

    with pytest.raises(EmptyContentError) as info:
        await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert info.value.message == "Page has no content"
    assert info.value.to_response()["details"] == "The page appears to be empty."
    assert info.value.stage == "acquire"


@pytest.mark.asyncio()
async def test_injection_check_rejects_missing_axe(config, session_factory, tracker):
    def configure(session):
        session.axe_loaded = False

    with pytest.raises(InjectionError) as info:
        await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert "axe-core" in info.value.message
    assert tracker.open == 0


@pytest.mark.asyncio()
async def test_missing_axe_bundle_is_injection_error(config, session_factory, tracker, tmp_path):
    cfg = config.model_copy(update={"audit": config.audit.model_copy(update={"axe_script": tmp_path / "nope.js"})})
    with pytest.raises(InjectionError):
        await make_engine(cfg, session_factory()).analyze({"url": URL})
    assert tracker.close_calls == 1


@pytest.mark.asyncio()
async def test_unexpected_error_gets_generic_message(config, session_factory, tracker):
    def configure(session):
        session.axe_result = {"violations": [{"id": "x", "nodes": "not-a-list-of-nodes"}]}

    with pytest.raises(AnalysisError) as info:
        await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert info.value.message == "Failed to analyze URL"
    assert tracker.open == 0


@pytest.mark.asyncio()
async def test_teardown_failure_does_not_mask_result(config, session_factory, tracker):
    def configure(session):
        session.fail["teardown"] = RuntimeError("browser already gone")

    result = await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert result.violations
    assert tracker.close_calls == 1


@pytest.mark.asyncio()
async def test_cancellation_still_closes_session(config, session_factory, tracker):
    def configure(session):
        session.hang.add("audit")

    task = asyncio.create_task(make_engine(config, session_factory(configure)).analyze({"url": URL}))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert tracker.close_calls == 1
    assert tracker.sessions[0].closed


# --------------------------------------------------------------------------- #
#                          Navigation strategy                                #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_navigation_falls_through_steps_in_order(config, session_factory, tracker):
    def configure(session):
        session.nav_errors = [RuntimeError("net::ERR_HTTP2_PROTOCOL_ERROR"), None]

    await make_engine(config, session_factory(configure)).analyze({"url": URL})
    steps = [a.wait_until for a in tracker.sessions[0].navigations]
    assert steps == ["networkidle", "domcontentloaded"]


@pytest.mark.asyncio()
async def test_navigation_error_carries_last_step_message(config, session_factory, tracker):
    def configure(session):
        session.nav_errors = [
            RuntimeError("first failure"),
            RuntimeError("second failure"),
            RuntimeError("net::ERR_NAME_NOT_RESOLVED at http://example.test/"),
        ]

    with pytest.raises(NavigationError) as info:
        await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert info.value.message == "net::ERR_NAME_NOT_RESOLVED at http://example.test/"
    assert info.value.wait_until == "load"
    assert not info.value.timed_out
    assert info.value.to_response()["details"]
    assert len(tracker.sessions[0].navigations) == 3
    assert tracker.open == 0


@pytest.mark.asyncio()
async def test_navigation_timeouts_are_flagged(config, session_factory, tracker):
    def configure(session):
        session.hang.add("navigate")

    with pytest.raises(NavigationError) as info:
        await make_engine(config, session_factory(configure)).analyze({"url": URL})
    assert info.value.timed_out
    assert "Timed out" in info.value.message
    assert "too long" in info.value.details


# --------------------------------------------------------------------------- #
#                         Enrichment isolation                                #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_one_failed_screenshot_does_not_affect_siblings(config, session_factory, tracker):
    def configure(session):
        session.shots["img:nth-child(1)"] = RuntimeError("element detached")

    result = await make_engine(config, session_factory(configure)).analyze({"url": URL})
    first, second = result.violations[0].nodes
    assert first.screenshot is None
    assert first.evidence.status == "failed"
    assert second.screenshot and second.screenshot.startswith("data:image/png;base64,")
    assert tracker.open == 0


@pytest.mark.asyncio()
async def test_hanging_screenshot_is_bounded(config, session_factory, tracker):
    def configure(session):
        session.shots["img:nth-child(2)"] = "hang"

    result = await make_engine(config, session_factory(configure)).analyze({"url": URL})
    first, second = result.violations[0].nodes
    assert first.screenshot is not None
    assert second.screenshot is None
    assert "timed out" in str(second.evidence.error)


# --------------------------------------------------------------------------- #
#                           Whole-request budget                              #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def tight_config(axe_stub) -> AnalyzerConfig:
    profile = DeploymentProfile(
        backend=BackendKind.PLAYWRIGHT,
        deadline=1.0,
        navigation=(NavigationStep(wait_until="load", timeout=0.2),),
        launch_timeout=0.2,
        settle_delay=0.0,
        script_timeout=0.2,
        screenshot_timeout=0.3,
        enrichment_reserve=0.1,
        teardown_timeout=0.1,
    )
    return AnalyzerConfig(audit={"axe_script": axe_stub}, profiles={"tight": profile}, default_profile="tight")


@pytest.mark.asyncio()
async def test_slow_screenshots_stop_at_budget_and_keep_violations(tight_config, session_factory, tracker):
    def configure(session):
        nodes = [{"html": f"<img id=i{n}>", "target": [f"#i{n}"]} for n in range(6)]
        session.axe_result = {"violations": [{"id": "image-alt", "nodes": nodes}], "passes": [], "incomplete": []}
        for n in range(6):
            session.shots[f"#i{n}"] = 0.2

    result = await make_engine(tight_config, session_factory(configure)).analyze({"url": URL})
    nodes = result.violations[0].nodes
    assert len(nodes) == 6
    assert nodes[0].screenshot is not None
    assert nodes[-1].screenshot is None
    assert str(nodes[-1].evidence.error) == BUDGET_EXHAUSTED
    assert result.to_dict()["violations"][0]["nodes"][-1]["screenshot"] is None
    assert tracker.close_calls == 1


@pytest.mark.asyncio()
async def test_enrich_without_budget_left_captures_nothing(config, session_factory):
    session = session_factory()(RenderBackend(profile="test", kind=BackendKind.PLAYWRIGHT), config)
    violations = [Violation.from_raw(v) for v in sample_axe_result()["violations"]]
    await enrich(violations, session, config.enrichment, budget=0.0)
    assert [n.evidence.status for n in violations[0].nodes] == ["failed", "failed"]
    assert all(str(n.evidence.error) == BUDGET_EXHAUSTED for n in violations[0].nodes)
    assert not [c for c in session.calls if c.startswith("screenshot:")]


# --------------------------------------------------------------------------- #
#                              Screenshot                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_page_screenshot_returns_data_url(config, session_factory, tracker):
    shot = await make_engine(config, session_factory()).screenshot_page({"url": URL})
    assert shot.startswith("data:image/png;base64,")
    assert tracker.close_calls == 1


@pytest.mark.asyncio()
async def test_page_screenshot_requires_browser(config, session_factory, tracker):
    with pytest.raises(AnalysisError) as info:
        await make_engine(config, session_factory(), backend="none").screenshot_page({"url": URL})
    assert info.value.message == "Failed to capture screenshot"
    assert tracker.sessions == []


def test_large_screenshots_are_downscaled():
    small = fit_png(TINY_PNG, 800, 600)
    assert small == TINY_PNG
    big = fit_png(make_png(1600, 900), 800, 600)
    with Image.open(BytesIO(big)) as im:
        assert im.width <= 800 and im.height <= 600
