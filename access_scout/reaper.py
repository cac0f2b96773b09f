# access_scout/reaper.py
"""
Resource Reaper: the only place a scan's session gets released.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, TypeVar

from access_scout.backends.base import RenderSession

__all__ = ("reaping",)

S = TypeVar("S", bound=RenderSession)


@asynccontextmanager
async def reaping(session: S) -> AsyncIterator[S]:
    """Yield *session* and close it exactly once, whatever happens inside.

    Teardown is shielded so a cancelled or timed-out scan still releases its
    browser process.
    """
    try:
        yield session
    finally:
        await asyncio.shield(session.close())
