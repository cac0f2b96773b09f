# access_scout/acquirer.py
"""
Acquirer: turns a URL into a loaded, verified document inside a session.
"""
from __future__ import annotations

import asyncio

from access_scout.backends.base import RenderSession
from access_scout.errors import AcquisitionError, AnalysisError, EmptyContentError, PageTimeoutError
from access_scout.logger import get_logger
from access_scout.policy import AttemptsExhausted, run_attempts

__all__ = ("acquire",)

log = get_logger("acquirer")


async def acquire(session: RenderSession, url: str) -> RenderSession:
    """Launch, navigate under the session's attempt plan, settle and verify.

    Raises a typed :class:`~access_scout.errors.AcquisitionError` subclass;
    the caller owns ``session`` and must close it on every path.
    """
    profile = session.profile
    try:
        await asyncio.wait_for(session.launch(), timeout=profile.launch_timeout)
        await asyncio.wait_for(session.new_page(), timeout=profile.launch_timeout)
    except asyncio.TimeoutError as exc:
        raise PageTimeoutError(f"Browser did not start within {profile.launch_timeout:g}s") from exc
    except AnalysisError:
        raise
    except Exception as exc:
        raise AcquisitionError(
            f"Failed to start the {session.kind.value} backend: {exc}",
            details="The rendering backend is not available on this server. Check the browser installation.",
        ) from exc

    plan = session.navigation_plan()
    try:
        _, attempt = await run_attempts(
            plan,
            lambda a: session.navigate(url, a),
            retry_on=session.retryable,
            label=f"load {url}",
        )
    except AttemptsExhausted as failure:
        raise session.exhausted(url, failure) from failure.last_error
    log.debug("Loaded %s via %s", url, attempt.describe())

    if session.settle_delay:
        await asyncio.sleep(session.settle_delay)

    try:
        has_content = await asyncio.wait_for(session.verify_content(), timeout=profile.script_timeout)
    except asyncio.TimeoutError as exc:
        raise PageTimeoutError("Page did not respond to the content check in time") from exc
    except Exception as exc:
        raise AcquisitionError(f"Content check failed: {exc}") from exc
    if not has_content:
        raise EmptyContentError("Page has no content")

    await session.render()
    return session
