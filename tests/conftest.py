from __future__ import annotations

from collections.abc import Callable, Sequence
from io import BytesIO
from typing import Any

import pytest
from PIL import Image

from scriptable.webpage.controller import WebPage


def png_bytes(width: int = 8, height: int = 6, color: tuple[int, int, int, int] = (200, 10, 10, 255)) -> bytes:
    out = BytesIO()
    Image.new("RGBA", (width, height), color).save(out, format="PNG")
    return out.getvalue()


class FakeEngineSession:
    """In-memory EngineSession; records everything the controller asks of it."""

    def __init__(self, window_id: str = "main") -> None:
        self._window_id = window_id
        self.loaded: list[str] = []
        self.calls: list[str] = []
        self.injected: list[Any] = []
        self.sandboxes: dict[int, list[str]] = {}
        self.sandbox_names: list[str] = []
        self.scheduled: list[tuple[Any, str]] = []
        self.includes: list[tuple[str, Callable[[], None]]] = []
        self.eval_result: Any = None
        self.current_url = "about:blank"
        self.history = ["about:blank"]
        self.history_pos = 0
        self.viewport = (400, 300)
        self.frame_parents: dict[str, str | None] = {window_id: None}
        self.console_handler: Any = None
        self.dialog_handler: Any = None
        self.pending: list[Callable[[], None]] = []
        self.image = png_bytes()
        self.captures: list[tuple[Any, float]] = []

    @property
    def window_id(self) -> str:
        return self._window_id

    def load_url(self, url: str) -> None:
        self.loaded.append(url)

    def stop(self) -> None:
        self.calls.append("stop")

    def reload(self) -> None:
        self.calls.append("reload")

    def history_index(self) -> int:
        return self.history_pos

    def history_count(self) -> int:
        return len(self.history)

    def history_go(self, index: int) -> None:
        self.calls.append(f"history_go:{index}")
        self.history_pos = index

    def can_go_back(self) -> bool:
        return self.history_pos > 0

    def can_go_forward(self) -> bool:
        return self.history_pos < len(self.history) - 1

    def url(self) -> str:
        return self.current_url

    def title(self) -> str:
        return "Fake Title"

    def content(self) -> str:
        return "<html><body>hi</body></html>"

    def plain_text(self) -> str:
        return "hi"

    def viewport_size(self) -> tuple[int, int]:
        return self.viewport

    def set_viewport_size(self, width: int, height: int) -> None:
        self.viewport = (width, height)

    def create_sandbox(self, name: str) -> int:
        handle = len(self.sandboxes) + 1
        self.sandboxes[handle] = []
        self.sandbox_names.append(name)
        return handle

    def evaluate_in(self, handle: Any, source: str) -> Any:
        self.sandboxes[handle].append(source)
        return self.eval_result

    def schedule_in(self, handle: Any, source: str) -> None:
        self.scheduled.append((handle, source))

    def include_script(self, url: str, on_load: Callable[[], None]) -> None:
        self.includes.append((url, on_load))

    def inject(self, events: Sequence[Any]) -> None:
        self.injected.extend(events)

    def top_window_of(self, window_id: Any) -> Any:
        if window_id not in self.frame_parents:
            return None
        while self.frame_parents.get(window_id) is not None:
            window_id = self.frame_parents[window_id]
        return window_id

    def set_console_handler(self, handler: Any) -> None:
        self.console_handler = handler

    def set_dialog_handler(self, handler: Any) -> None:
        self.dialog_handler = handler

    def process_events(self, timeout: float = 0.0) -> int:  # noqa: ARG002
        pending, self.pending = self.pending, []
        for fn in pending:
            fn()
        return len(pending)

    def capture_viewport(self, clip: Any, scale: float) -> bytes:
        self.captures.append((clip, scale))
        return self.image


class FakeEngine:
    def __init__(self, *, deferred: bool = False) -> None:
        self.deferred = deferred
        self.created: list[FakeEngineSession] = []
        self.closed: list[FakeEngineSession] = []
        self.waiting: list[Callable[[Any], None]] = []
        self.on_create: Callable[[FakeEngineSession], None] | None = None
        self.shut_down = False

    def create_session(self, on_ready: Callable[[Any], None]) -> None:
        if self.deferred:
            self.waiting.append(on_ready)
            return
        self.ready(on_ready)

    def ready(self, on_ready: Callable[[Any], None] | None = None) -> FakeEngineSession:
        callback = on_ready or self.waiting.pop(0)
        session = FakeEngineSession()
        self.created.append(session)
        if self.on_create is not None:
            self.on_create(session)
        callback(session)
        return session

    def close_session(self, session: FakeEngineSession) -> None:
        self.closed.append(session)

    def shutdown(self) -> None:
        self.shut_down = True


class FakeTracer:
    def __init__(self) -> None:
        self.listeners: dict[int, Any] = {}
        self.capture_types: Any = None
        self.registrations = 0

    def register_session(self, session: Any, listener: Any, capture_types: Sequence[Any] = ()) -> None:
        self.listeners[id(session)] = listener
        self.capture_types = capture_types
        self.registrations += 1

    def unregister_session(self, session: Any) -> None:
        self.listeners.pop(id(session), None)

    @property
    def listener(self) -> Any:
        assert len(self.listeners) == 1
        return next(iter(self.listeners.values()))


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def tracer() -> FakeTracer:
    return FakeTracer()


@pytest.fixture
def page(engine: FakeEngine, tracer: FakeTracer) -> WebPage:
    return WebPage(engine, tracer, library_path="/tmp")


@pytest.fixture
def opened(page: WebPage, engine: FakeEngine, tracer: FakeTracer) -> FakeEngineSession:
    """Page opened on http://example.test/ and fully loaded."""
    page.open("http://example.test/")
    listener = tracer.listener
    listener.on_load_started()
    listener.on_url_changed("http://example.test/")
    listener.on_content_loaded(True)
    listener.on_load_finished(True)
    return engine.created[0]
