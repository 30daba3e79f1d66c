"""
Chrome DevTools Protocol backend.

Provides:
- CdpEngine: NavigationEngine that opens one browser target per page
- CdpPageSession: EngineSession over a single target connection
- CdpNetworkTracer: NetworkTracer fed by the session's raw CDP events

Everything runs on the caller's thread. Events are read from the socket
and dispatched in `process_events()`; JavaScript dialogs are the exception
and are answered as soon as they are read, because the page is blocked
until they are.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from collections.abc import Callable, Sequence
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any

from .cdp import CdpConnection
from .config import PageConfig
from .engine import ConsoleHandler, DialogHandler, TracerListener
from .errors import CdpError, EvaluationError
from .events import ConsoleMessage, NetworkEvent, ResourceRequest, split_content_type
from .input import Modifier, PrimitiveEvent
from .launcher import BrowserLauncher

logger = logging.getLogger("webpage.cdp_engine")

_INCLUDE_BINDING = "__webpageIncludeLoaded"

# Session-local notices, queued in order with the CDP events they follow.
_NAVIGATION_REQUESTED = "webpage.navigationRequested"
_NAVIGATION_FAILED = "webpage.navigationFailed"

_MOUSE_TYPES = {"mousedown": "mousePressed", "mouseup": "mouseReleased", "mousemove": "mouseMoved"}
_MOUSE_BUTTONS = ("left", "middle", "right")

# PhantomJS modifier bits -> CDP Input modifier bits (Alt=1, Ctrl=2, Meta=4, Shift=8).
_CDP_MODIFIERS = (
    (Modifier.ALT, 1),
    (Modifier.CTRL, 2),
    (Modifier.META, 4),
    (Modifier.SHIFT, 8),
)

_CONTENT_JS = (
    "(function () {"
    " var dt = document.doctype, head = '';"
    " if (dt) { head = '<!DOCTYPE ' + dt.name"
    " + (dt.publicId ? ' PUBLIC \"' + dt.publicId + '\"' : '')"
    " + (dt.systemId ? ' \"' + dt.systemId + '\"' : '') + '>\\n'; }"
    " return head + (document.documentElement ? document.documentElement.outerHTML : '');"
    "})()"
)

_PLAIN_TEXT_JS = "document.body ? document.body.innerText : ''"

_INCLUDE_JS = """(function (src, token) {
  var s = document.createElement('script');
  s.type = 'text/javascript';
  s.src = src;
  s.addEventListener('load', function () { window.%s(token); }, true);
  (document.body || document.documentElement).appendChild(s);
})(%s, %s);"""


def _cdp_modifiers(mods: Modifier) -> int:
    out = 0
    for phantom, cdp in _CDP_MODIFIERS:
        if mods & phantom:
            out |= cdp
    return out


def _remote_value(result: dict[str, Any]) -> Any:
    """Unwrap a RemoteObject from Runtime.evaluate (undefined/null -> None)."""
    value = result.get("result")
    if not isinstance(value, dict):
        return None
    if value.get("type") == "undefined":
        return None
    if value.get("type") == "object" and value.get("subtype") == "null":
        return None
    if "value" in value:
        return value["value"]
    return value.get("unserializableValue", value.get("description"))


def _remote_obj_to_str(obj: Any) -> str:
    if not isinstance(obj, dict):
        return str(obj)
    for k in ("value", "unserializableValue", "description"):
        if obj.get(k) is not None:
            return str(obj[k])
    typ = obj.get("type")
    subtype = obj.get("subtype")
    return f"<{typ}{('/' + subtype) if subtype else ''}>"


def _headers(raw: Any) -> tuple[tuple[str, str], ...]:
    if not isinstance(raw, dict):
        return ()
    return tuple((str(k), str(v)) for k, v in raw.items())


def _header_value(raw: Any, name: str) -> str | None:
    if not isinstance(raw, dict):
        return None
    lname = name.lower()
    for k, v in raw.items():
        if isinstance(k, str) and k.lower() == lname:
            return str(v)
    return None


def _event_time(params: dict[str, Any]) -> datetime:
    wall = params.get("wallTime")
    if isinstance(wall, (int, float)) and wall > 0:
        return datetime.fromtimestamp(wall, timezone.utc)
    return datetime.now(timezone.utc)


class CdpPageSession:
    """One browser target driven over its own CDP connection."""

    def __init__(self, conn: CdpConnection, target_id: str, *, sandbox_world: str = "isolated") -> None:
        self.conn = conn
        self.target_id = target_id
        self.sandbox_world = sandbox_world
        self._main_frame = target_id
        self._frame_parents: dict[str, str | None] = {}
        self._context_frames: dict[int, str] = {}
        self._handlers: list[Callable[[dict[str, Any]], None]] = []
        self._console_handler: ConsoleHandler | None = None
        self._dialog_handler: DialogHandler | None = None
        self._includes: dict[str, Callable[[], None]] = {}
        self._include_seq = 0
        self._backlog: list[dict[str, Any]] = []
        conn.set_event_sink(self._handle_immediate)

    def setup(self) -> None:
        """Enable the domains the controller depends on."""
        self.conn.send_many(
            [
                {"method": "Page.enable"},
                {"method": "Runtime.enable"},
                {"method": "Network.enable"},
                {"method": "Runtime.addBinding", "params": {"name": _INCLUDE_BINDING}},
            ]
        )
        with suppress(CdpError):
            tree = self.conn.send("Page.getFrameTree")
            frame = (tree.get("frameTree") or {}).get("frame") or {}
            if isinstance(frame.get("id"), str):
                self._main_frame = frame["id"]
        self._frame_parents[self._main_frame] = None

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.conn.send(method, params)

    def close(self) -> None:
        self._handlers.clear()
        self._includes.clear()
        self._backlog.clear()
        self.conn.set_event_sink(None)
        self.conn.close()

    @property
    def window_id(self) -> str:
        return self._main_frame

    # ─────────────────────────────────────────────────────────────────────────
    # Event plumbing
    # ─────────────────────────────────────────────────────────────────────────

    def add_event_handler(self, handler: Callable[[dict[str, Any]], None]) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_event_handler(self, handler: Callable[[dict[str, Any]], None]) -> None:
        with suppress(ValueError):
            self._handlers.remove(handler)

    def set_console_handler(self, handler: ConsoleHandler | None) -> None:
        self._console_handler = handler

    def set_dialog_handler(self, handler: DialogHandler | None) -> None:
        self._dialog_handler = handler

    def _handle_immediate(self, event: dict[str, Any]) -> bool:
        if event.get("method") != "Page.javascriptDialogOpening":
            return False
        params = event.get("params") or {}
        kind = str(params.get("type") or "alert")
        message = str(params.get("message") or "")
        default = params.get("defaultPrompt")
        handler = self._dialog_handler

        answer = handler(kind, message, default) if handler is not None else None
        reply: dict[str, Any] = {"accept": True}
        if kind == "confirm":
            reply["accept"] = bool(answer)
        elif kind == "prompt":
            if answer is None:
                reply["accept"] = False
            else:
                reply["promptText"] = str(answer)
        logger.debug("dialog %s answered accept=%s", kind, reply["accept"])
        self.conn.send("Page.handleJavaScriptDialog", reply)
        return True

    def process_events(self, timeout: float = 0.0) -> int:
        events, self._backlog = self._backlog, []
        events += self.conn.read_events(0.0 if events else timeout)
        for event in events:
            self._dispatch(event)
        return len(events)

    def _dispatch(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        params = event.get("params")
        if not isinstance(params, dict):
            params = {}

        if method == "Runtime.executionContextCreated":
            ctx = params.get("context") or {}
            frame_id = (ctx.get("auxData") or {}).get("frameId")
            if isinstance(ctx.get("id"), int) and isinstance(frame_id, str):
                self._context_frames[ctx["id"]] = frame_id
        elif method == "Runtime.executionContextDestroyed":
            self._context_frames.pop(params.get("executionContextId"), None)
        elif method == "Runtime.executionContextsCleared":
            self._context_frames.clear()
        elif method == "Page.frameAttached":
            if isinstance(params.get("frameId"), str):
                self._frame_parents[params["frameId"]] = params.get("parentFrameId")
        elif method == "Page.frameNavigated":
            frame = params.get("frame") or {}
            if isinstance(frame.get("id"), str):
                self._frame_parents[frame["id"]] = frame.get("parentId")
        elif method == "Page.frameDetached":
            self._frame_parents.pop(params.get("frameId"), None)
        elif method == "Runtime.consoleAPICalled":
            self._console(params)
        elif method == "Runtime.bindingCalled" and params.get("name") == _INCLUDE_BINDING:
            callback = self._includes.pop(str(params.get("payload")), None)
            if callback is not None:
                callback()

        for handler in list(self._handlers):
            handler(event)

    def _console(self, params: dict[str, Any]) -> None:
        handler = self._console_handler
        if handler is None:
            return
        args = params.get("args")
        message = _remote_obj_to_str(args[0]) if isinstance(args, list) and args else ""
        line = None
        source = None
        frames = (params.get("stackTrace") or {}).get("callFrames")
        if isinstance(frames, list) and frames and isinstance(frames[0], dict):
            if isinstance(frames[0].get("lineNumber"), int):
                line = frames[0]["lineNumber"] + 1
            source = frames[0].get("url") or None
        frame_id = self._context_frames.get(params.get("executionContextId"), self._main_frame)
        handler(frame_id, ConsoleMessage(message, line, source))

    def top_window_of(self, window_id: Any) -> Any:
        if window_id not in self._frame_parents:
            return None
        seen: set[Any] = set()
        current = window_id
        while current not in seen:
            seen.add(current)
            parent = self._frame_parents.get(current)
            if parent is None:
                return current
            current = parent
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def _hold(self, method: str, params: dict[str, Any]) -> None:
        try:
            self._backlog.extend(self.conn.read_events(0.0))
        except CdpError as exc:
            logger.debug("event read before %s failed: %s", method, exc)
        self._backlog.append({"method": method, "params": params})

    def load_url(self, url: str) -> None:
        """Issue the navigation; a rejected one is reported as a failed load, never raised."""
        self._hold(_NAVIGATION_REQUESTED, {"url": url})
        try:
            result = self.conn.send("Page.navigate", {"url": url})
        except CdpError as exc:
            error = str(exc)
        else:
            error = result.get("errorText")
            if not error:
                return
        logger.info("navigate failed url=%s error=%s", url, error)
        self._hold(_NAVIGATION_FAILED, {"url": url, "errorText": str(error)})

    def stop(self) -> None:
        self.conn.send("Page.stopLoading")

    def reload(self) -> None:
        self.conn.send("Page.reload")

    def _history(self) -> tuple[int, list[dict[str, Any]]]:
        result = self.conn.send("Page.getNavigationHistory")
        entries = result.get("entries")
        if not isinstance(entries, list):
            entries = []
        index = result.get("currentIndex")
        return (index if isinstance(index, int) else len(entries) - 1), entries

    def history_index(self) -> int:
        return self._history()[0]

    def history_count(self) -> int:
        return len(self._history()[1])

    def history_go(self, index: int) -> None:
        _, entries = self._history()
        if 0 <= index < len(entries):
            self.conn.send("Page.navigateToHistoryEntry", {"entryId": entries[index]["id"]})

    def can_go_back(self) -> bool:
        return self._history()[0] > 0

    def can_go_forward(self) -> bool:
        index, entries = self._history()
        return index < len(entries) - 1

    # ─────────────────────────────────────────────────────────────────────────
    # Document
    # ─────────────────────────────────────────────────────────────────────────

    def url(self) -> str:
        index, entries = self._history()
        if 0 <= index < len(entries):
            return str(entries[index].get("url") or "")
        return ""

    def title(self) -> str:
        return self.evaluate_in(None, "document.title") or ""

    def content(self) -> str:
        return self.evaluate_in(None, _CONTENT_JS) or ""

    def plain_text(self) -> str:
        return self.evaluate_in(None, _PLAIN_TEXT_JS) or ""

    def viewport_size(self) -> tuple[int, int]:
        metrics = self.conn.send("Page.getLayoutMetrics")
        viewport = metrics.get("cssLayoutViewport") or metrics.get("layoutViewport") or {}
        return int(viewport.get("clientWidth") or 0), int(viewport.get("clientHeight") or 0)

    def set_viewport_size(self, width: int, height: int) -> None:
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": int(width), "height": int(height), "deviceScaleFactor": 1, "mobile": False},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Script contexts
    # ─────────────────────────────────────────────────────────────────────────

    def create_sandbox(self, name: str) -> int | None:
        if self.sandbox_world == "main":
            return None
        result = self.conn.send(
            "Page.createIsolatedWorld",
            {"frameId": self._main_frame, "worldName": f"webpage:{name}", "grantUniveralAccess": True},
        )
        context_id = result.get("executionContextId")
        if not isinstance(context_id, int):
            raise CdpError(f"Page.createIsolatedWorld returned no context: {result!r}")
        return context_id

    def evaluate_in(self, handle: Any, source: str) -> Any:
        params: dict[str, Any] = {"expression": source, "returnByValue": True, "awaitPromise": True}
        if handle is not None:
            params["contextId"] = handle
        result = self.conn.send("Runtime.evaluate", params)
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") or {}
            message = exc.get("description") or details.get("text") or "Uncaught exception"
            raise EvaluationError(str(message), details)
        return _remote_value(result)

    def schedule_in(self, handle: Any, source: str) -> None:
        self.evaluate_in(handle, "setTimeout(function () {\n%s\n}, 0); undefined" % source)

    def include_script(self, url: str, on_load: Callable[[], None]) -> None:
        self._include_seq += 1
        token = str(self._include_seq)
        self._includes[token] = on_load
        self.evaluate_in(None, _INCLUDE_JS % (_INCLUDE_BINDING, json.dumps(url), json.dumps(token)))

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def _key_command(self, ev: PrimitiveEvent) -> dict[str, Any]:
        params: dict[str, Any] = {
            "modifiers": _cdp_modifiers(ev.modifiers),
            "windowsVirtualKeyCode": ev.key_code,
            "nativeVirtualKeyCode": ev.key_code,
            "key": ev.key,
        }
        if ev.modifiers & Modifier.KEYPAD:
            params["location"] = 3
        if ev.type == "keydown":
            params["type"] = "rawKeyDown"
        elif ev.type == "keyup":
            params["type"] = "keyUp"
        else:
            params["type"] = "char"
            text = chr(ev.char_code) if ev.char_code else ("\r" if ev.key_code == 13 else "")
            params["text"] = text
            params["unmodifiedText"] = text
        return {"method": "Input.dispatchKeyEvent", "params": params}

    def _mouse_command(self, ev: PrimitiveEvent) -> dict[str, Any]:
        moving = ev.type == "mousemove"
        params = {
            "type": _MOUSE_TYPES[ev.type],
            "x": ev.x,
            "y": ev.y,
            "modifiers": _cdp_modifiers(ev.modifiers),
            "button": "none" if moving else _MOUSE_BUTTONS[ev.button],
            "clickCount": 0 if moving else ev.click_count,
        }
        return {"method": "Input.dispatchMouseEvent", "params": params}

    def inject(self, events: Sequence[PrimitiveEvent]) -> None:
        commands = [self._key_command(ev) if ev.is_key else self._mouse_command(ev) for ev in events]
        self.conn.send_many(commands)

    # ─────────────────────────────────────────────────────────────────────────
    # Capture
    # ─────────────────────────────────────────────────────────────────────────

    def capture_viewport(self, clip: Any, scale: float) -> bytes:
        if clip is not None:
            region = {"x": clip.left, "y": clip.top, "width": clip.width, "height": clip.height}
        else:
            metrics = self.conn.send("Page.getLayoutMetrics")
            vv = metrics.get("cssVisualViewport") or metrics.get("visualViewport") or {}
            region = {
                "x": vv.get("pageX", 0),
                "y": vv.get("pageY", 0),
                "width": vv.get("clientWidth", 0),
                "height": vv.get("clientHeight", 0),
            }
        region["scale"] = scale
        result = self.conn.send(
            "Page.captureScreenshot",
            {"format": "png", "clip": region, "captureBeyondViewport": clip is not None},
        )
        data = result.get("data")
        if not isinstance(data, str):
            raise CdpError("Page.captureScreenshot returned no data")
        return base64.b64decode(data)


class CdpEngine:
    """Navigation engine: one browser target per page session."""

    def __init__(
        self,
        config: PageConfig | None = None,
        *,
        launcher: BrowserLauncher | None = None,
        connect: Callable[[str, float], CdpConnection] | None = None,
    ) -> None:
        self.config = config or PageConfig.from_env()
        self.launcher = launcher or BrowserLauncher(self.config)
        self._connect = connect or (lambda ws_url, timeout: CdpConnection(ws_url, timeout))

    def create_session(self, on_ready: Callable[[CdpPageSession], None]) -> None:
        launch = self.launcher.ensure_running()
        if not launch.started:
            raise CdpError(launch.message)
        target = self.launcher.new_target()
        conn = self._connect(target["webSocketDebuggerUrl"], self.config.cdp_timeout)
        session = CdpPageSession(conn, str(target.get("id") or ""), sandbox_world=self.config.sandbox_world)
        try:
            session.setup()
        except CdpError:
            session.close()
            raise
        logger.info("target ready id=%s", session.target_id)
        on_ready(session)

    def close_session(self, session: CdpPageSession) -> None:
        session.close()
        if not session.target_id:
            return
        try:
            self.launcher.close_target(session.target_id)
        except CdpError as exc:
            logger.debug("close target %s failed: %s", session.target_id, exc)

    def shutdown(self) -> None:
        self.launcher.stop()


class _SessionTrace:
    """Per-session network state; turns raw CDP events into tracer notifications."""

    def __init__(
        self,
        session: CdpPageSession,
        listener: TracerListener,
        capture_types: Sequence[re.Pattern[str]],
    ) -> None:
        self.session = session
        self.listener = listener
        self.capture_types = capture_types
        self._ids: dict[str, int] = {}
        self._next_id = 1
        self._req: dict[str, dict[str, Any]] = {}
        self._document_request: str | None = None
        self._doc_failed = False

    def _assign_id(self, request_id: str) -> int:
        rid = self._next_id
        self._next_id += 1
        self._ids[request_id] = rid
        return rid

    def _wants_body(self, content_type: str | None) -> bool:
        if not content_type:
            return False
        return any(p.search(content_type) for p in self.capture_types)

    def ingest(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        params = event.get("params")
        if not isinstance(params, dict):
            params = {}
        main = self.session.window_id

        # ──────────────────────────────────────────────────────────────────
        # Page lifecycle
        # ──────────────────────────────────────────────────────────────────
        if method == _NAVIGATION_REQUESTED:
            self._doc_failed = False
            self._document_request = None
            return

        if method == _NAVIGATION_FAILED:
            # Chrome rejected the navigation outright or its document load already failed.
            if not self._doc_failed:
                self._doc_failed = True
                logger.info("navigation rejected: %s", params.get("errorText"))
                self.listener.on_content_loaded(False)
                self.listener.on_load_finished(False)
            return

        if method == "Page.frameStartedLoading":
            if params.get("frameId") == main:
                self._doc_failed = False
                self.listener.on_load_started()
            return

        if method == "Page.frameNavigated":
            frame = params.get("frame") or {}
            if frame.get("id") != main or frame.get("parentId"):
                return
            url = str(frame.get("url") or "")
            if self._doc_failed and url.startswith("chrome-error://"):
                return
            self.listener.on_url_changed(url)
            return

        if method == "Page.navigatedWithinDocument":
            if params.get("frameId") == main:
                self.listener.on_url_changed(str(params.get("url") or ""))
            return

        if method == "Page.domContentEventFired":
            if not self._doc_failed:
                self.listener.on_content_loaded(True)
            return

        if method == "Page.loadEventFired":
            if not self._doc_failed:
                self.listener.on_load_finished(True)
            return

        # ──────────────────────────────────────────────────────────────────
        # Network
        # ──────────────────────────────────────────────────────────────────
        request_id = params.get("requestId")
        if not isinstance(request_id, str):
            return

        if method == "Network.requestWillBeSent":
            self._request(request_id, params)
        elif method == "Network.responseReceived":
            self._response(request_id, params)
        elif method == "Network.loadingFinished":
            self._finished(request_id, params)
        elif method == "Network.loadingFailed":
            self._failed(request_id, params)

    def _request(self, request_id: str, params: dict[str, Any]) -> None:
        req = params.get("request") or {}
        redirect = params.get("redirectResponse")
        if isinstance(redirect, dict) and request_id in self._ids:
            # The previous hop of this request ends here.
            meta = self._req.get(request_id, {})
            ctype, charset = split_content_type(_header_value(redirect.get("headers"), "content-type"))
            self.listener.on_response(
                NetworkEvent(
                    id=self._ids[request_id],
                    url=str(redirect.get("url") or meta.get("url") or ""),
                    stage="end",
                    time=_event_time(params),
                    headers=_headers(redirect.get("headers")),
                    content_type=ctype,
                    content_charset=charset,
                    redirect_url=str(req.get("url") or ""),
                    status=redirect.get("status"),
                    status_text=redirect.get("statusText"),
                    referrer=meta.get("referrer", ""),
                )
            )

        rid = self._assign_id(request_id)
        headers = req.get("headers")
        self._req[request_id] = {"url": str(req.get("url") or ""), "referrer": _header_value(headers, "referer") or ""}
        if (
            params.get("type") == "Document"
            and params.get("frameId") == self.session.window_id
            and params.get("loaderId") == request_id
        ):
            self._document_request = request_id
        self.listener.on_request(
            ResourceRequest(
                id=rid,
                url=str(req.get("url") or ""),
                method=str(req.get("method") or "GET"),
                time=_event_time(params),
                headers=_headers(headers),
                post_data=req.get("postData"),
            )
        )

    def _response(self, request_id: str, params: dict[str, Any]) -> None:
        rid = self._ids.get(request_id)
        resp = params.get("response")
        if rid is None or not isinstance(resp, dict):
            return
        meta = self._req.setdefault(request_id, {})
        ctype, charset = split_content_type(_header_value(resp.get("headers"), "content-type"))
        if ctype is None and isinstance(resp.get("mimeType"), str):
            ctype = resp["mimeType"] or None
        meta.update(
            {
                "url": str(resp.get("url") or meta.get("url") or ""),
                "headers": _headers(resp.get("headers")),
                "content_type": ctype,
                "content_charset": charset,
                "status": resp.get("status"),
                "status_text": resp.get("statusText"),
            }
        )
        self.listener.on_response(
            NetworkEvent(
                id=rid,
                url=meta["url"],
                stage="start",
                headers=meta["headers"],
                body_size=int(resp.get("encodedDataLength") or 0),
                content_type=ctype,
                content_charset=charset,
                status=meta["status"],
                status_text=meta["status_text"],
                referrer=meta.get("referrer", ""),
            )
        )

    def _finished(self, request_id: str, params: dict[str, Any]) -> None:
        rid = self._ids.pop(request_id, None)
        meta = self._req.pop(request_id, {})
        if rid is None:
            return
        body = None
        if self._wants_body(meta.get("content_type")):
            try:
                result = self.session.send("Network.getResponseBody", {"requestId": request_id})
            except CdpError as exc:
                logger.debug("response body unavailable for %s: %s", meta.get("url"), exc)
            else:
                body = result.get("body")
                if result.get("base64Encoded") and isinstance(body, str):
                    body = base64.b64decode(body).decode("latin-1")
        self.listener.on_response(
            NetworkEvent(
                id=rid,
                url=meta.get("url", ""),
                stage="end",
                headers=meta.get("headers", ()),
                body_size=int(params.get("encodedDataLength") or 0),
                content_type=meta.get("content_type"),
                content_charset=meta.get("content_charset"),
                status=meta.get("status"),
                status_text=meta.get("status_text"),
                referrer=meta.get("referrer", ""),
                body=body,
            )
        )

    def _failed(self, request_id: str, params: dict[str, Any]) -> None:
        rid = self._ids.pop(request_id, None)
        meta = self._req.pop(request_id, {})
        if request_id == self._document_request:
            self._document_request = None
            if not self._doc_failed:
                self._doc_failed = True
                logger.info("document load failed: %s", params.get("errorText"))
                self.listener.on_content_loaded(False)
                self.listener.on_load_finished(False)
            return
        if rid is None:
            return
        self.listener.on_response(
            NetworkEvent(
                id=rid,
                url=meta.get("url", ""),
                stage="end",
                headers=meta.get("headers", ()),
                status=None,
                status_text=str(params.get("errorText") or ""),
                referrer=meta.get("referrer", ""),
            )
        )


class CdpNetworkTracer:
    """NetworkTracer over CdpPageSession event handlers."""

    def __init__(self) -> None:
        self._traces: dict[int, tuple[CdpPageSession, _SessionTrace]] = {}

    def register_session(
        self,
        session: CdpPageSession,
        listener: TracerListener,
        capture_types: Sequence[re.Pattern[str]] = (),
    ) -> None:
        self.unregister_session(session)
        trace = _SessionTrace(session, listener, capture_types)
        self._traces[id(session)] = (session, trace)
        session.add_event_handler(trace.ingest)

    def unregister_session(self, session: CdpPageSession) -> None:
        entry = self._traces.pop(id(session), None)
        if entry is not None:
            entry[0].remove_event_handler(entry[1].ingest)


__all__ = ["CdpEngine", "CdpNetworkTracer", "CdpPageSession"]
