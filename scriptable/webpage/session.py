"""Per-controller session state.

One `Session` exists per `WebPage`. Only the controller mutates it; the
sandbox manager reads `generation` to detect stale script contexts.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ValidationError

CALLBACK_NAMES: tuple[str, ...] = (
    "on_initialized",
    "on_load_started",
    "on_load_finished",
    "on_url_changed",
    "on_resource_requested",
    "on_resource_received",
    "on_console_message",
    "on_alert",
    "on_confirm",
    "on_prompt",
    "on_closing",
)


class PageState(Enum):
    CLOSED = "closed"
    OPENING = "opening"
    LOADING = "loading"
    LOADED = "loaded"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ClipRect:
    top: float
    left: float
    width: float
    height: float

    @classmethod
    def from_value(cls, value: Any) -> ClipRect | None:
        """Validate a script-supplied clip rect; non-mappings clear it."""
        if isinstance(value, ClipRect):
            value = value.as_dict()
        if not isinstance(value, Mapping):
            return None
        requirements = (
            ("top", lambda v: v >= 0, "top should be a positive integer"),
            ("left", lambda v: v >= 0, "left should be a positive integer"),
            ("width", lambda v: v > 0, "width should be a positive integer"),
            ("height", lambda v: v > 0, "height should be a positive integer"),
        )
        out: dict[str, float] = {}
        for name, ok, msg in requirements:
            raw = value.get(name)
            if not _is_number(raw) or not ok(raw):
                raise ValidationError(name, msg, raw)
            out[name] = raw
        return cls(**out)

    def as_dict(self) -> dict[str, float]:
        return {"top": self.top, "left": self.left, "width": self.width, "height": self.height}


@dataclass
class Session:
    state: PageState = PageState.CLOSED
    url: str = ""
    title: str = ""
    viewport_size: tuple[int, int] | None = None
    clip_rect: ClipRect | None = None
    capture_content: list[re.Pattern[str]] = field(default_factory=list)
    callbacks: dict[str, Callable[..., Any] | None] = field(
        default_factory=lambda: dict.fromkeys(CALLBACK_NAMES)
    )
    generation: int = 0
    load_status: str | None = None

    @property
    def is_open(self) -> bool:
        return self.state is not PageState.CLOSED

    def bump_generation(self) -> int:
        """Mark every existing script context as stale."""
        self.generation += 1
        return self.generation

    def reset(self) -> None:
        # Configuration (callbacks, clip, viewport, capture filters) survives close.
        self.state = PageState.CLOSED
        self.url = ""
        self.title = ""
        self.load_status = None
        self.bump_generation()


def parse_viewport_value(value: Any) -> tuple[int, int] | None:
    """Return (w, h) for a usable viewport mapping, else None (caller ignores)."""
    if not isinstance(value, Mapping):
        return None
    w = value.get("width") or 0
    h = value.get("height") or 0
    if not _is_number(w) or not _is_number(h):
        return None
    if w <= 0 or h <= 0:
        return None
    return int(w), int(h)


__all__ = ["CALLBACK_NAMES", "ClipRect", "PageState", "Session", "parse_viewport_value"]
