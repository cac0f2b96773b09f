# access_scout/enricher.py
"""
Evidence Enricher: attaches an element screenshot to every violation node.

A failed capture never fails the scan. Each node ends up with a typed
:class:`~access_scout.models.EvidenceOutcome`; only ``captured`` outcomes
produce a ``screenshot`` in the response.
"""
from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Any, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

from access_scout.backends.base import RenderSession
from access_scout.config import EnrichmentSettings
from access_scout.errors import EnrichmentError
from access_scout.logger import get_logger
from access_scout.models import EvidenceOutcome, Violation, ViolationNode
from access_scout.utils import png_data_url

__all__ = ("BUDGET_EXHAUSTED", "plain_selector", "fit_png", "enrich")

log = get_logger("enricher")


def plain_selector(target: Sequence[Any]) -> Optional[str]:
    """First target entry if it is a plain CSS selector string.

    axe reports nodes inside iframes or shadow roots as nested lists; those
    cannot be located from the top document.
    """
    if not target:
        return None
    first = target[0]
    if isinstance(first, str) and first.strip():
        return first
    return None


def fit_png(data: bytes, max_width: int, max_height: int) -> bytes:
    """Shrink a PNG to fit inside ``max_width x max_height``, keeping the aspect ratio."""
    try:
        with Image.open(BytesIO(data)) as im:
            im.load()
            if im.width <= max_width and im.height <= max_height:
                return data
            im.thumbnail((max_width, max_height))
            out = BytesIO()
            im.save(out, format="PNG", optimize=True)
    except (UnidentifiedImageError, OSError) as exc:
        raise EnrichmentError(f"Screenshot is not a valid PNG: {exc}") from exc
    return out.getvalue()


BUDGET_EXHAUSTED = "enrichment budget exhausted"


async def _capture(
    node: ViolationNode,
    session: RenderSession,
    settings: EnrichmentSettings,
    timeout: float,
    capped: bool = False,
) -> EvidenceOutcome:
    selector = plain_selector(node.target)
    if selector is None:
        return EvidenceOutcome.failed(EnrichmentError(f"Target {node.target!r} is not a plain CSS selector"))
    try:
        data = await asyncio.wait_for(session.screenshot(selector), timeout=timeout)
        data = fit_png(data, settings.max_width, settings.max_height)
    except asyncio.TimeoutError:
        if capped:
            return EvidenceOutcome.failed(EnrichmentError(BUDGET_EXHAUSTED))
        return EvidenceOutcome.failed(EnrichmentError(f"Screenshot of {selector} timed out after {timeout:g}s"))
    except EnrichmentError as exc:
        return EvidenceOutcome.failed(exc)
    except Exception as exc:
        return EvidenceOutcome.failed(EnrichmentError(f"Screenshot of {selector} failed: {exc}"))
    return EvidenceOutcome.captured(png_data_url(data))


async def enrich(
    violations: List[Violation],
    session: RenderSession,
    settings: EnrichmentSettings,
    budget: Optional[float] = None,
) -> List[Violation]:
    """Fill ``node.evidence`` for every node of *violations* (in place) and return them.

    *budget* caps the whole enrichment stage in seconds. Once it runs out no
    new capture starts and the remaining nodes are marked failed, so the
    violations themselves always come back.
    """
    nodes = [node for violation in violations for node in violation.nodes]
    if not nodes:
        return violations
    if not session.supports_screenshots or not settings.enabled:
        for node in nodes:
            node.evidence = EvidenceOutcome.skipped()
        return violations

    per_node = session.profile.screenshot_timeout
    loop = asyncio.get_running_loop()
    deadline = None if budget is None else loop.time() + budget
    semaphore = asyncio.Semaphore(settings.concurrency)

    async def _one(node: ViolationNode) -> None:
        async with semaphore:
            left = per_node if deadline is None else deadline - loop.time()
            if left <= 0:
                node.evidence = EvidenceOutcome.failed(EnrichmentError(BUDGET_EXHAUSTED))
            else:
                node.evidence = await _capture(node, session, settings, min(per_node, left), capped=left < per_node)
        if node.evidence.status == "failed":
            log.debug("No screenshot for %s: %s", node.target, node.evidence.error)

    await asyncio.gather(*(_one(node) for node in nodes))

    failed = sum(1 for node in nodes if node.evidence.status == "failed")
    starved = sum(1 for node in nodes if str(node.evidence.error) == BUDGET_EXHAUSTED)
    if starved:
        log.warning("Enrichment budget of %.2fs ran out; %d node(s) left without screenshots", budget, starved)
    log.info("Captured %d/%d node screenshots", len(nodes) - failed, len(nodes))
    return violations
