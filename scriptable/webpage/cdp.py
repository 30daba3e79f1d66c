"""Low-level Chrome DevTools Protocol connection (websocket-client)."""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websocket

from .errors import CdpError

logger = logging.getLogger("webpage.cdp")


def _is_timeout(exc: Exception) -> bool:
    msg = str(exc).lower()
    if isinstance(exc, (TimeoutError, BlockingIOError, websocket.WebSocketTimeoutException)):
        return True
    return "timed out" in msg or "would block" in msg


class CdpConnection:
    """Synchronous CDP WebSocket connection.

    Events received while waiting for a command response are queued (bounded)
    and handed out in arrival order by `read_events()`. An optional immediate
    sink sees each event as soon as it is read; it may issue nested commands,
    whose out-of-order responses are stashed for the outer waiter.
    """

    def __init__(self, ws_url: str, timeout: float = 5.0, *, ws: Any = None):
        self.ws = ws if ws is not None else websocket.create_connection(ws_url, timeout=timeout)
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 5000
        self._responses: dict[int, dict[str, Any]] = {}
        self._event_sink: Callable[[dict[str, Any]], bool] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_event_sink(self, sink: Callable[[dict[str, Any]], bool] | None) -> None:
        """Attach a sink called for every event as it is read.

        When the sink returns True the event is considered consumed and is not queued.
        """
        self._event_sink = sink

    def _push_event(self, event: dict[str, Any]) -> None:
        sink = self._event_sink
        if sink is not None:
            try:
                if sink(event):
                    return
            except Exception:
                logger.exception("cdp event sink failed for %s", event.get("method"))

        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            dropped = len(self._event_queue) - self._max_event_queue
            del self._event_queue[:dropped]
            logger.warning("cdp event queue overflow, dropped %d event(s)", dropped)

    def _handle_raw(self, raw: Any) -> dict[str, Any] | None:
        """Route one raw frame; return it if it is a command response."""
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        if isinstance(data.get("method"), str) and "id" not in data:
            self._push_event(data)
            return None
        if isinstance(data.get("id"), int):
            return data
        return None

    def _recv_one(self, timeout: float) -> dict[str, Any] | None:
        try:
            # A zero timeout would switch the socket to non-blocking mode.
            self.ws.settimeout(max(0.001, timeout))
            raw = self.ws.recv()
        except Exception as exc:  # noqa: BLE001
            if _is_timeout(exc):
                return None
            raise CdpError(str(exc)) from exc
        return self._handle_raw(raw)

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        if self._closed:
            raise CdpError(f"connection closed ({method})")
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        try:
            self.ws.send(json.dumps(msg))
        except Exception as exc:  # noqa: BLE001
            raise CdpError(str(exc)) from exc
        return self._recv_until(msg_id, method)

    def send_many(self, commands: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Send multiple CDP commands sequentially; the first failure propagates."""
        out: list[dict[str, Any]] = []
        for cmd in commands:
            method = cmd.get("method") if isinstance(cmd, dict) else None
            if not isinstance(method, str) or not method.strip():
                raise CdpError("send_many: each command must include a non-empty 'method'")
            params = cmd.get("params") if isinstance(cmd.get("params"), dict) else None
            out.append(self.send(method, params))
        return out

    def _recv_until(self, expected_id: int, method: str = "") -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.monotonic() + self.timeout
        while True:
            stashed = self._responses.pop(expected_id, None)
            if stashed is not None:
                return self._unwrap(stashed)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CdpError(f"CDP response timed out ({method or expected_id})")

            data = self._recv_one(min(0.5, remaining))
            if data is None:
                continue
            if data.get("id") == expected_id:
                return self._unwrap(data)
            # Response to an outer command issued before a nested one.
            self._responses[int(data["id"])] = data

    @staticmethod
    def _unwrap(data: dict[str, Any]) -> dict[str, Any]:
        if "error" in data:
            raise CdpError(str(data["error"]))
        result = data.get("result")
        return result if isinstance(result, dict) else {}

    def read_events(self, timeout: float = 0.0, *, max_messages: int = 200) -> list[dict[str, Any]]:
        """Return queued events, reading from the socket for up to `timeout` first."""
        if not self._closed and not self._event_queue:
            deadline = time.monotonic() + max(0.0, timeout)
            while not self._event_queue:
                remaining = deadline - time.monotonic()
                self._recv_or_stash(max(0.0, remaining))
                if remaining <= 0:
                    break
        # Drain whatever else is already buffered without blocking.
        if not self._closed:
            for _ in range(max(0, int(max_messages))):
                before = len(self._event_queue)
                if not self._recv_or_stash(0.0) and len(self._event_queue) == before:
                    break
        events, self._event_queue = self._event_queue, []
        return events

    def _recv_or_stash(self, timeout: float) -> bool:
        data = self._recv_one(timeout)
        if data is None:
            return False
        self._responses[int(data["id"])] = data
        return True

    def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return
        self._closed = True
        self._event_queue.clear()
        # Raw-socket shutdown first: websocket-client close() can block on its handshake.
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
        with suppress(Exception):
            self.ws.close()


__all__ = ["CdpConnection"]
