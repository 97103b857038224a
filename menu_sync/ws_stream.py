import asyncio
import contextlib
import json
import logging
import os
import random
import ssl
import time
from typing import Callable, Optional, Set

from websockets.asyncio.client import connect as ws_connect  # type: ignore
from websockets.exceptions import ConnectionClosed  # type: ignore

from menu_core.protocol import MENU_UPDATE


# Sessions shorter than this would reconnect in a tight loop.
MIN_SESSION_S = 60.0


class MenuWSStream:
    """Async websocket wrapper for the menu broadcast channel.

    Inbound `menu:update` envelopes go to `on_update`; every other type is ignored.
    `send` is fire-and-forget from the loop the stream runs on.
    """

    def __init__(
        self,
        ws_url: str,
        on_update: Callable[[dict, int], None],
        on_open: Optional[Callable[[], None]] = None,
        on_status: Optional[Callable[[str, dict], None]] = None,
        token: Optional[str] = None,
        insecure_tls: bool = False,
        ping_interval_s: int = 20,
        ping_timeout_s: int = 60,
        reconnect_backoff_s: float = 1.0,
        reconnect_backoff_max_s: float = 30.0,
        max_session_s: float = 23 * 3600 + 50 * 60,
        recv_poll_timeout_s: float = 5.0,
        max_queue: int = 256,
    ):
        self.ws_url = ws_url
        self.on_update = on_update
        self.on_open_cb = on_open
        self.on_status_cb = on_status
        self.token = token
        self.insecure_tls = insecure_tls

        self.ping_interval_s = max(0, int(ping_interval_s))
        self.ping_timeout_s = max(1, int(ping_timeout_s))
        self.reconnect_backoff_s = max(0.0, float(reconnect_backoff_s))
        self.reconnect_backoff_max_s = max(self.reconnect_backoff_s, float(reconnect_backoff_max_s))
        self.max_session_s = max(MIN_SESSION_S, float(max_session_s))
        self.recv_poll_timeout_s = max(0.01, float(recv_poll_timeout_s))
        self.max_queue = max(1, int(max_queue))

        self._ws = None
        self._stop = False
        self._log = logging.getLogger("websocket")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def _emit_status(self, typ: str, details: dict) -> None:
        try:
            if self.on_status_cb:
                self.on_status_cb(typ, details)
        except Exception:
            self._log.exception("Status callback error (type=%s)", typ)

    async def _ping_loop(self) -> None:
        if self.ping_interval_s <= 0 or self._ws is None:
            return
        while not self._stop:
            await asyncio.sleep(self.ping_interval_s)
            if self._stop or self._ws is None:
                return
            try:
                payload = os.urandom(4)
                pong_waiter = await self._ws.ping(payload)
                self._emit_status("ws_ping", {"nbytes": len(payload)})
                await asyncio.wait_for(pong_waiter, timeout=self.ping_timeout_s)
                self._emit_status("ws_pong", {"nbytes": len(payload)})
            except Exception as exc:
                self._emit_status("ws_ping_timeout", {"error": str(exc)})
                with contextlib.suppress(Exception):
                    await self._ws.close()
                return

    async def _read_loop(self, session_deadline: float) -> None:
        assert self._ws is not None
        while not self._stop:
            if time.monotonic() >= session_deadline:
                self._emit_status("ws_session_expired", {"max_session_s": self.max_session_s})
                return

            try:
                msg = await asyncio.wait_for(self._ws.recv(), timeout=self.recv_poll_timeout_s)
            except asyncio.TimeoutError:
                continue
            except ConnectionClosed as exc:
                self._emit_status("ws_close", {"code": getattr(exc, "code", None), "msg": str(exc)})
                return
            except Exception as exc:
                self._emit_status("ws_error", {"error": str(exc)})
                return

            if msg is None:
                return

            recv_ms = int(time.time() * 1000)
            try:
                payload = json.loads(msg)
            except ValueError:
                self._log.warning("Failed to parse WS message (%d bytes)", len(msg))
                continue

            if not isinstance(payload, dict) or payload.get("type") != MENU_UPDATE:
                continue

            try:
                self.on_update(payload, recv_ms)
            except Exception:
                self._log.exception("Update callback error")

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.insecure_tls:
            return None
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    async def run_async(self) -> None:
        """Connect and read until `close()`, reconnecting with backoff."""
        self._loop = asyncio.get_running_loop()
        self._stop = False
        attempt = 0

        while not self._stop:
            attempt += 1
            session_deadline = time.monotonic() + self.max_session_s
            ssl_ctx = self._ssl_context()
            try:
                connect_kwargs = {
                    "ping_interval": None,
                    "ping_timeout": None,
                    "close_timeout": 5,
                    "max_queue": self.max_queue,
                }
                if ssl_ctx is not None:
                    connect_kwargs["ssl"] = ssl_ctx
                if self.token:
                    connect_kwargs["additional_headers"] = {"Authorization": f"Bearer {self.token}"}
                async with ws_connect(self.ws_url, **connect_kwargs) as ws:
                    self._ws = ws
                    if self.on_open_cb:
                        self.on_open_cb()
                    self._emit_status("ws_connect", {"attempt": attempt})

                    ping_task = asyncio.create_task(self._ping_loop())
                    try:
                        await self._read_loop(session_deadline=session_deadline)
                    finally:
                        ping_task.cancel()
                        with contextlib.suppress(asyncio.CancelledError, Exception):
                            await ping_task
            except Exception as exc:
                self._emit_status("ws_run_exception", {"error": str(exc)})
                self._log.exception("WebSocket run exception")
            finally:
                self._ws = None

            if self._stop:
                break

            # Exponential backoff with jitter so reconnecting clients spread out.
            base = self.reconnect_backoff_s
            cap = self.reconnect_backoff_max_s
            if base <= 0.0 or cap <= 0.0:
                backoff = 0.0
            else:
                backoff = min(cap, base * (2 ** max(0, attempt - 1)))
                backoff = backoff * (0.7 + 0.6 * random.random())
            self._emit_status("ws_reconnect_wait", {"sleep_s": float(backoff), "attempt": attempt})
            await asyncio.sleep(backoff)

    def run(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            raise RuntimeError("MenuWSStream.run() cannot be called from an active event loop; await run_async().")
        asyncio.run(self.run_async())

    async def _send_text(self, ws, text: str) -> None:
        try:
            await ws.send(text)
        except Exception as exc:
            self._emit_status("ws_send_error", {"error": str(exc)})
            self._log.warning("Failed to send WS message: %s", exc)

    def send(self, message: dict) -> bool:
        """Queue one envelope for sending. Returns False when it could not be queued."""
        ws = self._ws
        if ws is None:
            self._log.warning("Not connected; dropping outbound %s message", message.get("type"))
            return False
        try:
            text = json.dumps(message, ensure_ascii=False)
        except (TypeError, ValueError):
            self._log.exception("Outbound message is not JSON-serializable")
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None and running is self._loop:
            task = running.create_task(self._send_text(ws, text))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return True
        loop = self._loop
        if loop and loop.is_running():
            asyncio.run_coroutine_threadsafe(self._send_text(ws, text), loop)
            return True
        return False

    def close(self) -> None:
        self._stop = True
        ws = self._ws
        if ws is None:
            return
        try:
            loop = asyncio.get_running_loop()
            loop.create_task(ws.close())
            return
        except RuntimeError:
            loop = self._loop
        if loop and loop.is_running():
            asyncio.run_coroutine_threadsafe(ws.close(), loop)
