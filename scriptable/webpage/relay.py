"""Network/lifecycle relay.

Sits between the engine's network tracer and the controller. It forwards
request/response notifications in tracer order, but enforces the lifecycle
envelope of each navigation:

- load-started is delivered before any resource event of that navigation
  (resource events seen between issuing a navigation and its load-start
  are held, then flushed right after load-started);
- load-finished is delivered exactly once, after every resource event;
- a failed navigation gets one synthetic terminal resource event, because
  engines emit none on network failure.

After `detach()` every notification is ignored, including ones already
queued by the transport.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Protocol

from .engine import EngineSession, NetworkTracer
from .events import NetworkEvent, ResourceRequest, failure_event

logger = logging.getLogger("webpage.relay")

LOAD_SUCCESS = "success"
LOAD_FAIL = "fail"


class RelaySink(Protocol):
    """Canonical session events, consumed by the controller."""

    def load_started(self) -> None: ...

    def url_changed(self, url: str) -> None: ...

    def resource_requested(self, request: ResourceRequest) -> None: ...

    def resource_received(self, event: NetworkEvent) -> None: ...

    def content_loaded(self, success: bool) -> None: ...

    def load_finished(self, status: str) -> None: ...


class LifecycleRelay:
    def __init__(self, sink: RelaySink) -> None:
        self._sink = sink
        self._tracer: NetworkTracer | None = None
        self._session: EngineSession | None = None
        self._attached = False
        self._callback: Callable[[str], None] | None = None

        # Envelope of the navigation in flight.
        self._url = ""
        self._active = False
        self._started = False
        self._failure_sent = False
        self._held: list[ResourceRequest | NetworkEvent] = []

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def navigation_active(self) -> bool:
        return self._active

    # ─────────────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────────────

    def attach(
        self,
        tracer: NetworkTracer,
        session: EngineSession,
        capture_types: Sequence[re.Pattern[str]] = (),
    ) -> None:
        """Register with the tracer for `session` (re-registering replaces the old one)."""
        if self._attached and self._tracer is not None and self._session is not None:
            self._tracer.unregister_session(self._session)
        self._tracer = tracer
        self._session = session
        self._attached = True
        tracer.register_session(session, self, capture_types)

    def detach(self) -> None:
        if self._attached and self._tracer is not None and self._session is not None:
            self._tracer.unregister_session(self._session)
        self._attached = False
        self._tracer = None
        self._session = None
        self._callback = None
        self._active = False
        self._started = False
        self._held.clear()

    def begin_navigation(self, url: str, callback: Callable[[str], None] | None = None) -> None:
        """Open the envelope for a navigation the controller is about to issue."""
        self._url = url
        self._callback = callback
        self._active = True
        self._started = False
        self._failure_sent = False
        self._held.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Envelope helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _ensure_started(self) -> None:
        if self._started:
            return
        self._started = True
        self._active = True
        self._sink.load_started()
        if self._held:
            logger.debug("flushing %d held resource event(s)", len(self._held))
        held, self._held = self._held, []
        for item in held:
            self._deliver(item)

    def _deliver(self, item: ResourceRequest | NetworkEvent) -> None:
        if isinstance(item, ResourceRequest):
            self._sink.resource_requested(item)
        else:
            self._sink.resource_received(item)

    def _resource(self, item: ResourceRequest | NetworkEvent) -> None:
        if not self._attached:
            return
        if self._active and not self._started:
            logger.debug("holding resource event until load start: %s", item.url)
            self._held.append(item)
            return
        self._deliver(item)

    def _send_failure(self) -> None:
        if self._failure_sent:
            return
        self._failure_sent = True
        self._sink.resource_received(failure_event(self._url))

    # ─────────────────────────────────────────────────────────────────────────
    # TracerListener
    # ─────────────────────────────────────────────────────────────────────────

    def on_request(self, request: ResourceRequest) -> None:
        self._resource(request)

    def on_response(self, event: NetworkEvent) -> None:
        self._resource(event)

    def on_load_started(self) -> None:
        if not self._attached:
            return
        if self._active and self._started:
            # A new load replaced the one in flight (redirect by script, reload, history).
            logger.debug("load started while another was in flight")
            self._sink.load_started()
            return
        if not self._active:
            # Navigation initiated by the page itself; it gets its own envelope.
            self._failure_sent = False
        self._ensure_started()

    def on_url_changed(self, url: str) -> None:
        if not self._attached:
            return
        if self._active:
            self._url = url
        self._sink.url_changed(url)

    def on_content_loaded(self, success: bool) -> None:
        if not self._attached or not self._active:
            return
        self._ensure_started()
        if success:
            self._sink.content_loaded(True)
        else:
            self._send_failure()

    def on_load_finished(self, success: bool) -> None:
        if not self._attached:
            return
        if not self._active:
            logger.debug("dropping load finished outside of a navigation")
            return
        self._ensure_started()
        if not success:
            self._send_failure()
        self._active = False
        self._started = False
        status = LOAD_SUCCESS if success else LOAD_FAIL
        callback, self._callback = self._callback, None
        self._sink.load_finished(status)
        if callback is not None and self._attached:
            callback(status)


__all__ = ["LOAD_FAIL", "LOAD_SUCCESS", "LifecycleRelay", "RelaySink"]
