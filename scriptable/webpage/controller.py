"""
Page session controller.

`WebPage` is the scripting surface: it owns the `Session` state machine,
wires the lifecycle relay to the engine, routes console/dialog events to
script callbacks and invalidates the sandbox on every document-affecting
transition.

States: CLOSED -> OPENING -> LOADING -> LOADED, LOADED -> LOADING on
re-navigation, any -> CLOSED on close().
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from .capture import render_base64, render_bytes, render_to_file
from .config import PageConfig
from .engine import EngineSession, KeyCodeTable, NavigationEngine, NetworkTracer, Storage
from .errors import Capability, SessionNotOpenError, UnsupportedFeatureError
from .events import ConsoleMessage, NetworkEvent, ResourceRequest
from .input import InputIntent, Modifier, translate
from .keys import KEY, PhantomKeyTable
from .relay import LifecycleRelay
from .sandbox import SandboxManager
from .session import ClipRect, PageState, Session, parse_viewport_value
from .storage import LocalStorage

logger = logging.getLogger("webpage.controller")


class _Callback:
    """Script callback slot stored in the session callback registry."""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: WebPage | None, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj._session.callbacks.get(self.name)

    def __set__(self, obj: WebPage, value: Any) -> None:
        obj._session.callbacks[self.name] = value if callable(value) else None


class _Unsupported:
    """Property that fails loudly on read and write."""

    def __init__(self, capability: Capability) -> None:
        self.capability = capability

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        raise UnsupportedFeatureError(self.capability)

    def __set__(self, obj: Any, value: Any) -> None:
        raise UnsupportedFeatureError(self.capability)


def _unsupported_method(capability: Capability) -> Callable[..., Any]:
    def method(self: WebPage, *args: Any, **kwargs: Any) -> Any:
        raise UnsupportedFeatureError(capability)

    method.__doc__ = f"Not implemented ({capability.value})."
    return method


class _EventConstants:
    modifiers = {
        "shift": int(Modifier.SHIFT),
        "ctrl": int(Modifier.CTRL),
        "alt": int(Modifier.ALT),
        "meta": int(Modifier.META),
        "keypad": int(Modifier.KEYPAD),
    }
    key = KEY


class _SessionEvents:
    """Relay sink; forwards canonical events into the controller."""

    def __init__(self, page: WebPage) -> None:
        self._page = page

    def load_started(self) -> None:
        self._page._handle_load_started()

    def url_changed(self, url: str) -> None:
        self._page._handle_url_changed(url)

    def resource_requested(self, request: ResourceRequest) -> None:
        self._page._handle_resource("on_resource_requested", request)

    def resource_received(self, event: NetworkEvent) -> None:
        self._page._handle_resource("on_resource_received", event)

    def content_loaded(self, success: bool) -> None:
        if success:
            self._page._handle_initialized()

    def load_finished(self, status: str) -> None:
        self._page._handle_load_finished(status)


class WebPage:
    """A scriptable page session (one per instance)."""

    UNSUPPORTED: frozenset[Capability] = frozenset(Capability)

    event = _EventConstants

    on_initialized = _Callback()
    on_load_started = _Callback()
    on_load_finished = _Callback()
    on_url_changed = _Callback()
    on_resource_requested = _Callback()
    on_resource_received = _Callback()
    on_console_message = _Callback()
    on_alert = _Callback()
    on_confirm = _Callback()
    on_prompt = _Callback()
    on_closing = _Callback()

    def __init__(
        self,
        engine: NavigationEngine,
        tracer: NetworkTracer,
        *,
        key_table: KeyCodeTable | None = None,
        storage: Storage | None = None,
        library_path: str | Path | None = None,
        viewport: tuple[int, int] | None = None,
    ) -> None:
        self._engine = engine
        self._tracer = tracer
        self._key_table = key_table or PhantomKeyTable()
        self._storage = storage or LocalStorage()
        self._library_path = str(Path(library_path).expanduser()) if library_path else str(Path.cwd())
        self._session = Session(viewport_size=viewport)
        self._sandbox = SandboxManager(self._session)
        self._relay = LifecycleRelay(_SessionEvents(self))
        self._engine_session: EngineSession | None = None
        self._pending_open: tuple[str, Callable[[str], None] | None] | None = None

    @classmethod
    def create(cls, config: PageConfig | None = None) -> WebPage:
        """Build a page backed by a Chrome DevTools Protocol browser."""
        from .cdp_engine import CdpEngine, CdpNetworkTracer

        config = config or PageConfig.from_env()
        return cls(
            CdpEngine(config),
            CdpNetworkTracer(),
            library_path=config.library_path,
            viewport=config.viewport,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> PageState:
        return self._session.state

    @property
    def generation(self) -> int:
        return self._session.generation

    @property
    def load_status(self) -> str | None:
        return self._session.load_status

    def _require(self, operation: str) -> EngineSession:
        es = self._engine_session
        if es is None or not self._session.is_open:
            raise SessionNotOpenError(operation)
        return es

    def _invoke(self, name: str, *args: Any) -> Any:
        callback = self._session.callbacks.get(name)
        if callback is None:
            return None
        try:
            return callback(*args)
        except Exception:
            logger.exception("callback %s failed", name)
            return None

    def _live(self, what: str) -> bool:
        if self._engine_session is None or not self._session.is_open:
            logger.debug("ignoring %s after close", what)
            return False
        return True

    def _handle_initialized(self) -> None:
        if not self._live("initialized"):
            return
        self._session.bump_generation()
        self._invoke("on_initialized")

    def _handle_load_started(self) -> None:
        if not self._live("load started"):
            return
        self._session.state = PageState.LOADING
        self._session.load_status = None
        self._session.bump_generation()
        self._invoke("on_load_started")

    def _handle_url_changed(self, url: str) -> None:
        if not self._live("url change"):
            return
        self._session.url = url
        self._session.bump_generation()
        self._invoke("on_url_changed", url)

    def _handle_resource(self, name: str, payload: ResourceRequest | NetworkEvent) -> None:
        if not self._live(name):
            return
        self._invoke(name, payload)

    def _handle_load_finished(self, status: str) -> None:
        if not self._live("load finished"):
            return
        self._session.state = PageState.LOADED
        self._session.load_status = status
        self._session.bump_generation()
        logger.info("load finished status=%s url=%s", status, self._session.url)
        self._invoke("on_load_finished", status)

    def _handle_console(self, window_id: Any, message: ConsoleMessage) -> None:
        es = self._engine_session
        if es is None or not self._session.is_open:
            return
        if window_id != es.window_id and es.top_window_of(window_id) != es.window_id:
            return
        self._invoke("on_console_message", message.message, message.line, message.source)

    def _handle_dialog(self, kind: str, message: str, default: str | None = None) -> Any:
        if not self._session.is_open:
            return None
        if kind == "alert":
            self._invoke("on_alert", message)
            return None
        if kind == "confirm":
            if self.on_confirm is None:
                return False
            return bool(self._invoke("on_confirm", message))
        if kind == "prompt":
            answer = self._invoke("on_prompt", message, default)
            return None if answer is None else str(answer)
        return None

    def _wrap_open_callback(self, callback: Callable[[str], Any] | None) -> Callable[[str], None] | None:
        if callback is None:
            return None

        def _done(status: str) -> None:
            try:
                callback(status)
            except Exception:
                logger.exception("open callback failed")

        return _done

    def _navigate(self, es: EngineSession, url: str, callback: Callable[[str], None] | None) -> None:
        self._relay.begin_navigation(url, callback)
        self._session.url = url
        es.load_url(url)

    def _on_engine_ready(self, es: EngineSession) -> None:
        pending = self._pending_open
        self._pending_open = None
        if pending is None or self._session.state is not PageState.OPENING:
            # close() ran before the engine answered.
            self._engine.close_session(es)
            return
        url, callback = pending
        self._engine_session = es
        es.set_console_handler(self._handle_console)
        es.set_dialog_handler(self._handle_dialog)
        if self._session.viewport_size:
            es.set_viewport_size(*self._session.viewport_size)
        self._relay.attach(self._tracer, es, self._session.capture_content)
        self._handle_initialized()
        self._navigate(es, url, callback)

    # ─────────────────────────────────────────────────────────────────────────
    # Window manipulation
    # ─────────────────────────────────────────────────────────────────────────

    def open(self, url: str, callback: Callable[[str], Any] | None = None) -> None:
        """Open `url`; `callback("success"|"fail")` fires once when it finishes loading."""
        wrapped = self._wrap_open_callback(callback)
        es = self._engine_session
        if es is not None:
            logger.info("navigate url=%s", url)
            self._relay.attach(self._tracer, es, self._session.capture_content)
            self._navigate(es, url, wrapped)
            return

        self._pending_open = (url, wrapped)
        if self._session.state is PageState.OPENING:
            return
        logger.info("open url=%s", url)
        self._session.state = PageState.OPENING
        try:
            self._engine.create_session(self._on_engine_ready)
        except Exception:
            if self._engine_session is None:
                self._pending_open = None
                self._session.state = PageState.CLOSED
            raise

    def close(self) -> None:
        es = self._engine_session
        self._pending_open = None
        if es is None:
            self._sandbox.discard()
            if self._session.is_open:
                self._session.reset()
            return

        logger.info("close url=%s", self._session.url)
        self._relay.detach()
        es.set_console_handler(None)
        es.set_dialog_handler(None)
        self._sandbox.discard()
        try:
            self._invoke("on_closing", self)
        finally:
            self._engine_session = None
            self._session.reset()
            self._engine.close_session(es)

    def stop(self) -> None:
        if self._engine_session is not None:
            self._engine_session.stop()

    def reload(self) -> None:
        if self._engine_session is not None:
            self._engine_session.reload()

    # ─────────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def can_go_back(self) -> bool:
        es = self._engine_session
        return bool(es is not None and es.can_go_back())

    @property
    def can_go_forward(self) -> bool:
        es = self._engine_session
        return bool(es is not None and es.can_go_forward())

    def go(self, delta: int) -> None:
        es = self._engine_session
        if es is None:
            return
        index = es.history_index() + int(delta)
        if index < 0 or index >= es.history_count():
            return
        es.history_go(index)

    def go_back(self) -> None:
        self.go(-1)

    def go_forward(self) -> None:
        self.go(1)

    # ─────────────────────────────────────────────────────────────────────────
    # Event loop
    # ─────────────────────────────────────────────────────────────────────────

    def process_events(self, timeout: float = 0.0) -> int:
        """Run one event-loop turn: deliver pending engine notifications."""
        es = self._engine_session
        if es is None:
            return 0
        return es.process_events(timeout)

    def wait_for_load(self, timeout: float = 30.0) -> str | None:
        """Process events until the current navigation finishes; return its status."""
        deadline = time.monotonic() + max(0.0, float(timeout))
        while self._engine_session is not None and self._relay.navigation_active:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.info("wait_for_load timed out url=%s", self._session.url)
                return None
            self.process_events(min(0.25, remaining))
        return self._session.load_status

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def url(self) -> str:
        es = self._engine_session
        if es is None:
            return ""
        return es.url()

    @property
    def title(self) -> str:
        es = self._engine_session
        if es is None:
            return ""
        title = es.title()
        self._session.title = title
        return title

    @property
    def content(self) -> str:
        return self._require("read content").content()

    @content.setter
    def content(self, value: str) -> None:
        raise UnsupportedFeatureError(Capability.CONTENT_SETTER)

    @property
    def plain_text(self) -> str:
        return self._require("read plain text").plain_text()

    @property
    def viewport_size(self) -> dict[str, int]:
        es = self._engine_session
        if es is None:
            return {"width": 0, "height": 0}
        width, height = es.viewport_size()
        return {"width": width, "height": height}

    @viewport_size.setter
    def viewport_size(self, value: Any) -> None:
        size = parse_viewport_value(value)
        if size is None:
            return
        self._session.viewport_size = size
        if self._engine_session is not None:
            self._engine_session.set_viewport_size(*size)

    @property
    def clip_rect(self) -> ClipRect | None:
        return self._session.clip_rect

    @clip_rect.setter
    def clip_rect(self, value: Any) -> None:
        self._session.clip_rect = ClipRect.from_value(value)

    @property
    def capture_content(self) -> list[str]:
        return [p.pattern for p in self._session.capture_content]

    @capture_content.setter
    def capture_content(self, patterns: Iterable[str | re.Pattern[str]] | None) -> None:
        compiled = [p if isinstance(p, re.Pattern) else re.compile(str(p)) for p in (patterns or ())]
        # In place: the tracer registration holds this list.
        self._session.capture_content[:] = compiled

    @property
    def library_path(self) -> str:
        return self._library_path

    @library_path.setter
    def library_path(self, path: str | Path) -> None:
        self._library_path = str(Path(path).expanduser())

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript evaluation
    # ─────────────────────────────────────────────────────────────────────────

    def evaluate(self, fn: str, *args: Any) -> Any:
        """Call the JavaScript function source `fn` with JSON-serializable `args`."""
        es = self._require("evaluate")
        return self._sandbox.evaluate(es, fn, *args)

    def evaluate_async(self, fn: str) -> None:
        es = self._require("evaluate")
        self._sandbox.evaluate_async(es, fn)

    def evaluate_javascript(self, source: str) -> Any:
        es = self._require("evaluate")
        return self._sandbox.evaluate_source(es, source)

    def inject_js(self, path: str | Path) -> bool:
        es = self._require("inject script")
        return self._sandbox.inject_file(es, path, self._library_path)

    def include_js(self, url: str, callback: Callable[[], Any] | None = None) -> None:
        es = self._require("include script")

        def _loaded() -> None:
            if self._engine_session is not es or callback is None:
                return
            try:
                callback()
            except Exception:
                logger.exception("include_js callback failed")

        es.include_script(url, _loaded)

    # ─────────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────────

    def send_event(
        self,
        kind: str,
        arg1: Any = None,
        arg2: Any = None,
        button: str | None = "left",
        modifiers: int = 0,
    ) -> None:
        es = self._require("send events")
        intent = InputIntent.from_args(kind, arg1, arg2, button, modifiers)
        events = translate(intent, self._key_table)
        if not events:
            return
        logger.debug("inject kind=%s primitives=%d", intent.kind, len(events))
        es.inject(events)

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def render_base64(self, format: str | None = "png", ratio: float | None = None) -> str:
        es = self._require("render")
        return render_base64(es, self._session.clip_rect, format, ratio)

    def render_bytes(self, format: str | None = "png", ratio: float | None = None) -> bytes:
        es = self._require("render")
        return render_bytes(es, self._session.clip_rect, format, ratio)

    def render(self, path: str | Path, ratio: float | None = None) -> None:
        es = self._require("render")
        render_to_file(es, self._storage, self._session.clip_rect, str(path), ratio)

    # ─────────────────────────────────────────────────────────────────────────
    # Declared but unsupported
    # ─────────────────────────────────────────────────────────────────────────

    cookies = _Unsupported(Capability.COOKIES)
    custom_headers = _Unsupported(Capability.CUSTOM_HEADERS)
    navigation_locked = _Unsupported(Capability.NAVIGATION_LOCKED)
    frame_url = _Unsupported(Capability.FRAME_URL)
    focused_frame_name = _Unsupported(Capability.FOCUSED_FRAME_NAME)
    frame_count = _Unsupported(Capability.FRAME_COUNT)
    frames_name = _Unsupported(Capability.FRAMES_NAME)
    frame_content = _Unsupported(Capability.FRAME_CONTENT)
    frame_plain_text = _Unsupported(Capability.FRAME_PLAIN_TEXT)
    frame_title = _Unsupported(Capability.FRAME_TITLE)
    owns_pages = _Unsupported(Capability.OWNS_PAGES)
    pages = _Unsupported(Capability.PAGES)
    pages_window_name = _Unsupported(Capability.PAGES_WINDOW_NAME)
    window_name = _Unsupported(Capability.WINDOW_NAME)
    scroll_position = _Unsupported(Capability.SCROLL_POSITION)
    offline_storage_path = _Unsupported(Capability.OFFLINE_STORAGE_PATH)
    offline_storage_quota = _Unsupported(Capability.OFFLINE_STORAGE_QUOTA)
    on_error = _Unsupported(Capability.ON_ERROR)
    on_callback = _Unsupported(Capability.ON_CALLBACK)
    on_file_picker = _Unsupported(Capability.ON_FILE_PICKER)
    on_navigation_requested = _Unsupported(Capability.ON_NAVIGATION_REQUESTED)
    on_page_created = _Unsupported(Capability.ON_PAGE_CREATED)

    add_cookie = _unsupported_method(Capability.ADD_COOKIE)
    clear_cookies = _unsupported_method(Capability.CLEAR_COOKIES)
    delete_cookie = _unsupported_method(Capability.DELETE_COOKIE)
    open_url = _unsupported_method(Capability.OPEN_URL)
    release = _unsupported_method(Capability.RELEASE)
    child_frames_count = _unsupported_method(Capability.CHILD_FRAMES_COUNT)
    child_frames_name = _unsupported_method(Capability.CHILD_FRAMES_NAME)
    current_frame_name = _unsupported_method(Capability.CURRENT_FRAME_NAME)
    get_page = _unsupported_method(Capability.GET_PAGE)
    switch_to_frame = _unsupported_method(Capability.SWITCH_TO_FRAME)
    switch_to_child_frame = _unsupported_method(Capability.SWITCH_TO_CHILD_FRAME)
    switch_to_main_frame = _unsupported_method(Capability.SWITCH_TO_MAIN_FRAME)
    switch_to_parent_frame = _unsupported_method(Capability.SWITCH_TO_PARENT_FRAME)
    switch_to_focused_frame = _unsupported_method(Capability.SWITCH_TO_FOCUSED_FRAME)
    set_content = _unsupported_method(Capability.SET_CONTENT)
    upload_file = _unsupported_method(Capability.UPLOAD_FILE)


__all__ = ["WebPage"]
