"""
Synthetic input translation.

Maps one script-level `send_event(...)` call to the primitive key/mouse
events the engine injects. Pure: no session state, no engine calls.

Provides:
- Modifier: PhantomJS modifier bit values
- InputIntent: normalized send_event arguments
- PrimitiveEvent: one injected key or mouse event
- translate(): InputIntent -> list[PrimitiveEvent]
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Any

from .engine import KeyCodeTable
from .errors import UnknownEventTypeError


class Modifier(IntFlag):
    NONE = 0
    SHIFT = 0x02000000
    CTRL = 0x04000000
    ALT = 0x08000000
    META = 0x10000000
    KEYPAD = 0x20000000


KEY_KINDS = frozenset({"keydown", "keyup", "keypress"})
MOUSE_KINDS = frozenset({"mousedown", "mouseup", "mousemove", "click", "doubleclick", "mousedoubleclick"})

BUTTONS: dict[str, int] = {"left": 0, "middle": 1, "right": 2}


@dataclass(frozen=True)
class InputIntent:
    kind: str
    primary: Any = None
    secondary: Any = None
    button: str = "left"
    modifiers: Modifier = Modifier.NONE

    @classmethod
    def from_args(
        cls, kind: str, primary: Any = None, secondary: Any = None, button: Any = None, modifiers: Any = None
    ) -> InputIntent:
        name = str(kind or "").lower()
        if name not in KEY_KINDS and name not in MOUSE_KINDS:
            raise UnknownEventTypeError(str(kind))
        btn = button if isinstance(button, str) and button in BUTTONS else "left"
        try:
            mods = Modifier(int(modifiers)) if modifiers else Modifier.NONE
        except (TypeError, ValueError):
            mods = Modifier.NONE
        return cls(kind=name, primary=primary, secondary=secondary, button=btn, modifiers=mods)


@dataclass(frozen=True)
class PrimitiveEvent:
    """One injected event.

    Key events carry key_code/char_code; mouse events carry x/y/button/click_count.
    `to_window` marks mouse events addressed to the window rather than the raw surface.
    """

    type: str
    key_code: int = 0
    char_code: int = 0
    key: str = ""
    x: float = 0
    y: float = 0
    button: int = 0
    click_count: int = 0
    modifiers: Modifier = Modifier.NONE
    to_window: bool = False

    @property
    def is_key(self) -> bool:
        return self.type in ("keydown", "keyup", "keypress")


def _key(type_: str, key_code: int, char_code: int, key: str, modifiers: Modifier) -> PrimitiveEvent:
    return PrimitiveEvent(type=type_, key_code=key_code, char_code=char_code, key=key, modifiers=modifiers)


def _mouse(
    type_: str, x: float, y: float, button: int, count: int, modifiers: Modifier, *, to_window: bool = False
) -> PrimitiveEvent:
    return PrimitiveEvent(
        type=type_, x=x, y=y, button=button, click_count=count, modifiers=modifiers, to_window=to_window
    )


def _translate_key(intent: InputIntent, table: KeyCodeTable) -> list[PrimitiveEvent]:
    mods = intent.modifiers
    value = intent.primary

    if intent.kind in ("keydown", "keyup"):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            code = int(value)
        else:
            text = str(value or "")
            if not text:
                return []
            code = ord(text[0])
        resolved = table.resolve(code)
        if not mods and resolved.modifier:
            mods = Modifier(resolved.modifier)
        return [_key(intent.kind, resolved.key_code, resolved.char_code, resolved.key, mods)]

    # keypress
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        resolved = table.resolve(int(value))
        return [_key("keypress", resolved.key_code, resolved.char_code, resolved.key, mods)]

    text = str(value or "")
    if len(text) == 1:
        resolved = table.resolve(ord(text))
        return [_key("keypress", resolved.key_code, ord(text), resolved.key, mods)]

    out: list[PrimitiveEvent] = []
    for ch in text:
        resolved = table.resolve(ord(ch))
        out.append(_key("keydown", resolved.key_code, resolved.char_code, resolved.key, mods))
        out.append(_key("keypress", resolved.key_code, ord(ch), resolved.key, mods))
        out.append(_key("keyup", resolved.key_code, resolved.char_code, resolved.key, mods))
    return out


def _translate_mouse(intent: InputIntent) -> list[PrimitiveEvent]:
    btn = BUTTONS.get(intent.button, 0)
    x = intent.primary or 0
    y = intent.secondary or 0
    mods = intent.modifiers

    if intent.kind in ("mousedown", "mouseup", "mousemove"):
        return [_mouse(intent.kind, x, y, btn, 1, mods)]
    if intent.kind == "mousedoubleclick":
        # No mouseup between the two presses.
        return [
            _mouse("mousedown", x, y, btn, 1, mods),
            _mouse("mousedown", x, y, btn, 2, mods),
        ]
    if intent.kind == "doubleclick":
        return [
            _mouse("mousedown", x, y, btn, 1, mods),
            _mouse("mouseup", x, y, btn, 1, mods),
            _mouse("mousedown", x, y, btn, 2, mods),
            _mouse("mouseup", x, y, btn, 2, mods),
        ]
    # click
    return [
        _mouse("mousedown", x, y, btn, 1, mods, to_window=True),
        _mouse("mouseup", x, y, btn, 1, mods, to_window=True),
    ]


def translate(intent: InputIntent, table: KeyCodeTable) -> list[PrimitiveEvent]:
    """Expand an input intent into primitive events, in injection order."""
    if intent.kind in KEY_KINDS:
        return _translate_key(intent, table)
    if intent.kind in MOUSE_KINDS:
        return _translate_mouse(intent)
    raise UnknownEventTypeError(intent.kind)


__all__ = ["BUTTONS", "InputIntent", "Modifier", "PrimitiveEvent", "translate"]
