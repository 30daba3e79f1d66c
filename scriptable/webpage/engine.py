"""Capability interfaces the controller consumes.

The controller never talks to a browser directly; it talks to these
protocols. `cdp_engine.py` implements them on top of the Chrome DevTools
Protocol, tests implement them with in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

if TYPE_CHECKING:
    import re

    from .events import ConsoleMessage, NetworkEvent, ResourceRequest
    from .input import PrimitiveEvent
    from .session import ClipRect


class KeyCode(NamedTuple):
    key_code: int
    char_code: int
    modifier: int = 0
    key: str = ""


class KeyCodeTable(Protocol):
    def resolve(self, code: int) -> KeyCode: ...


class CaptureSurface(Protocol):
    def capture_viewport(self, clip: ClipRect | None, scale: float) -> bytes:
        """Return an encoded image buffer (any format Pillow can open)."""


class Storage(Protocol):
    def write_file(self, path: str, data: bytes) -> None: ...

    def extension_of(self, path: str) -> str: ...


class TracerListener(Protocol):
    def on_request(self, request: ResourceRequest) -> None: ...

    def on_response(self, event: NetworkEvent) -> None: ...

    def on_load_started(self) -> None: ...

    def on_url_changed(self, url: str) -> None: ...

    def on_content_loaded(self, success: bool) -> None: ...

    def on_load_finished(self, success: bool) -> None: ...


ConsoleHandler = Callable[[Any, "ConsoleMessage"], None]
# (kind, message, default_value) -> answer; kind is "alert" | "confirm" | "prompt"
DialogHandler = Callable[[str, str, "str | None"], Any]


class EngineSession(CaptureSurface, Protocol):
    """One browsing context created by the navigation engine."""

    @property
    def window_id(self) -> Any: ...

    def load_url(self, url: str) -> None: ...

    def stop(self) -> None: ...

    def reload(self) -> None: ...

    def history_index(self) -> int: ...

    def history_count(self) -> int: ...

    def history_go(self, index: int) -> None: ...

    def can_go_back(self) -> bool: ...

    def can_go_forward(self) -> bool: ...

    def url(self) -> str: ...

    def title(self) -> str: ...

    def content(self) -> str: ...

    def plain_text(self) -> str: ...

    def viewport_size(self) -> tuple[int, int]: ...

    def set_viewport_size(self, width: int, height: int) -> None: ...

    def create_sandbox(self, name: str) -> Any:
        """Create a fresh script context bound to the current document; `name` is never reused."""

    def evaluate_in(self, handle: Any, source: str) -> Any: ...

    def schedule_in(self, handle: Any, source: str) -> None:
        """Queue `source` on the page task queue; must not run synchronously."""

    def include_script(self, url: str, on_load: Callable[[], None]) -> None: ...

    def inject(self, events: Sequence[PrimitiveEvent]) -> None: ...

    def top_window_of(self, window_id: Any) -> Any: ...

    def set_console_handler(self, handler: ConsoleHandler | None) -> None: ...

    def set_dialog_handler(self, handler: DialogHandler | None) -> None: ...

    def process_events(self, timeout: float = 0.0) -> int:
        """Deliver queued notifications; return how many were delivered."""


class NavigationEngine(Protocol):
    def create_session(self, on_ready: Callable[[EngineSession], None]) -> None: ...

    def close_session(self, session: EngineSession) -> None: ...


class NetworkTracer(Protocol):
    def register_session(
        self,
        session: EngineSession,
        listener: TracerListener,
        capture_types: Sequence[re.Pattern[str]] = (),
    ) -> None: ...

    def unregister_session(self, session: EngineSession) -> None: ...


__all__ = [
    "CaptureSurface",
    "ConsoleHandler",
    "DialogHandler",
    "EngineSession",
    "KeyCode",
    "KeyCodeTable",
    "NavigationEngine",
    "NetworkTracer",
    "Storage",
    "TracerListener",
]
