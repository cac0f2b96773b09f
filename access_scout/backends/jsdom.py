# access_scout/backends/jsdom.py
"""
Offline script context for the no-browser backend.

There is no DOM-capable JavaScript engine inside CPython, so the parsed
document lives in a small Node.js sidecar (``jsdom_runner.js``) that speaks
JSON lines over stdin/stdout. It runs no page scripts, fetches nothing and
paints nothing; it only hosts the DOM and whatever we inject into it.

Protocol: one request per line ``{"id", "op", ...}``, one reply per line
``{"id", "ok", "value" | "error"}``. Ops: ``load``, ``exec``, ``call``,
``close``.
"""
from __future__ import annotations

import asyncio
import itertools
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from access_scout.backends.base import ScriptError
from access_scout.errors import InjectionError
from access_scout.logger import get_logger

__all__ = ("JsdomContext", "RUNNER_PATH")

RUNNER_PATH = Path(__file__).with_name("jsdom_runner.js")

# axe results for big pages easily exceed asyncio's default 64 KiB line limit
_STREAM_LIMIT = 64 * 1024 * 1024

log = get_logger("backends.jsdom")


class JsdomContext:
    """Owns one ``node jsdom_runner.js`` process."""

    def __init__(self, node_binary: str, node_modules: Path, timeout: float, runner: Path = RUNNER_PATH) -> None:
        self.node_binary = node_binary
        self.node_modules = Path(node_modules)
        self.timeout = timeout
        self.runner = runner
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        #: a request was abandoned mid-flight; its late reply would be read by the next one
        self._stale = False

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        env = dict(os.environ)
        env["NODE_PATH"] = str(self.node_modules.resolve())
        try:
            self._proc = await asyncio.create_subprocess_exec(
                self.node_binary,
                str(self.runner),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=_STREAM_LIMIT,
            )
        except FileNotFoundError as exc:
            raise InjectionError(f"Offline script context unavailable: '{self.node_binary}' not found") from exc
        log.debug("jsdom runner started (pid %s)", self._proc.pid)

    async def request(self, op: str, **payload: Any) -> Any:
        if not self.running:
            raise ScriptError("offline script context is not running")
        assert self._proc is not None and self._proc.stdin is not None and self._proc.stdout is not None
        async with self._lock:
            if self._stale:
                raise ScriptError("offline script context is out of sync after an abandoned request")
            message: Dict[str, Any] = {"id": next(self._ids), "op": op, **payload}
            try:
                self._proc.stdin.write(json.dumps(message).encode("utf-8") + b"\n")
                await self._proc.stdin.drain()
            except ConnectionError as exc:
                raise ScriptError(f"offline script context exited: {await self._stderr_tail()}") from exc
            try:
                line = await asyncio.wait_for(self._proc.stdout.readline(), timeout=self.timeout)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._stale = True
                raise
        if not line:
            raise ScriptError(f"offline script context exited: {await self._stderr_tail()}")
        try:
            reply = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ScriptError(f"malformed reply from offline script context: {exc}") from exc
        if reply.get("id") != message["id"]:
            self._stale = True
            raise ScriptError(f"reply {reply.get('id')!r} does not answer request {message['id']}")
        if not reply.get("ok"):
            raise ScriptError(reply.get("error") or "unknown script error")
        return reply.get("value")

    async def load(self, html: str, url: str) -> None:
        await self.request("load", html=html, url=url)

    async def close(self) -> None:
        proc = self._proc
        if proc is None:
            return
        self._proc = None
        if proc.returncode is None:
            try:
                if proc.stdin is not None and not proc.stdin.is_closing():
                    proc.stdin.write(b'{"id": 0, "op": "close"}\n')
                    await proc.stdin.drain()
                    proc.stdin.close()
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except (asyncio.TimeoutError, ConnectionError):
                proc.kill()
                await proc.wait()
        log.debug("jsdom runner exited with %s", proc.returncode)

    async def _stderr_tail(self) -> str:
        if self._proc is None or self._proc.stderr is None:
            return ""
        try:
            data = await asyncio.wait_for(self._proc.stderr.read(4096), timeout=0.5)
        except asyncio.TimeoutError:
            return ""
        return data.decode("utf-8", "replace").strip()
