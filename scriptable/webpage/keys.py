"""PhantomJS/Qt key codes and their DOM equivalents.

`KEY` is the name -> code table scripts use (`page.event.key.Enter`).
`PhantomKeyTable.resolve()` turns a Qt key code or a character code into the
(DOM keyCode, charCode, inherent modifier, key name) tuple the engine injects.
"""

from __future__ import annotations

from .engine import KeyCode
from .input import Modifier

_QT = 0x01000000

# name -> (qt code, DOM keyCode)
_SPECIAL_KEYS: dict[str, tuple[int, int]] = {
    "Escape": (_QT + 0x00, 27),
    "Tab": (_QT + 0x01, 9),
    "Backtab": (_QT + 0x02, 9),
    "Backspace": (_QT + 0x03, 8),
    "Return": (_QT + 0x04, 13),
    "Enter": (_QT + 0x05, 13),
    "Insert": (_QT + 0x06, 45),
    "Delete": (_QT + 0x07, 46),
    "Pause": (_QT + 0x08, 19),
    "Print": (_QT + 0x09, 44),
    "Home": (_QT + 0x10, 36),
    "End": (_QT + 0x11, 35),
    "Left": (_QT + 0x12, 37),
    "Up": (_QT + 0x13, 38),
    "Right": (_QT + 0x14, 39),
    "Down": (_QT + 0x15, 40),
    "PageUp": (_QT + 0x16, 33),
    "PageDown": (_QT + 0x17, 34),
    "Shift": (_QT + 0x20, 16),
    "Control": (_QT + 0x21, 17),
    "Meta": (_QT + 0x22, 91),
    "Alt": (_QT + 0x23, 18),
    "CapsLock": (_QT + 0x24, 20),
    "NumLock": (_QT + 0x25, 144),
    "ScrollLock": (_QT + 0x26, 145),
    **{f"F{i}": (_QT + 0x30 + i - 1, 111 + i) for i in range(1, 13)},
}

# Names CDP expects in Input.dispatchKeyEvent `key` for the special keys.
_CDP_KEY_NAMES: dict[str, str] = {
    "Return": "Enter",
    "Backtab": "Tab",
    "Print": "PrintScreen",
    "Left": "ArrowLeft",
    "Up": "ArrowUp",
    "Right": "ArrowRight",
    "Down": "ArrowDown",
}

# US layout: shifted symbol -> DOM keyCode of the physical key
_SHIFTED: dict[str, int] = {
    "!": 49, "@": 50, "#": 51, "$": 52, "%": 53, "^": 54, "&": 55, "*": 56, "(": 57, ")": 48,
    "_": 189, "+": 187, "{": 219, "}": 221, "|": 220, ":": 186, '"': 222, "<": 188, ">": 190,
    "?": 191, "~": 192,
}  # fmt: skip

_PUNCTUATION: dict[str, int] = {
    "-": 189, "=": 187, "[": 219, "]": 221, "\\": 220, ";": 186, "'": 222, ",": 188, ".": 190,
    "/": 191, "`": 192,
}  # fmt: skip

_CONTROL_CHARS: dict[int, tuple[int, str]] = {
    8: (8, "Backspace"),
    9: (9, "Tab"),
    10: (13, "Enter"),
    13: (13, "Enter"),
    27: (27, "Escape"),
    127: (46, "Delete"),
}


def _build_key_names() -> dict[str, int]:
    names: dict[str, int] = {name: qt for name, (qt, _dom) in _SPECIAL_KEYS.items()}
    names["Space"] = 0x20
    for c in range(ord("A"), ord("Z") + 1):
        names[chr(c)] = c
    for c in range(ord("0"), ord("9") + 1):
        names[chr(c)] = c
    return names


KEY: dict[str, int] = _build_key_names()


class PhantomKeyTable:
    """Default key-code table (US keyboard layout)."""

    def __init__(self) -> None:
        self._special = {qt: (dom, _CDP_KEY_NAMES.get(name, name)) for name, (qt, dom) in _SPECIAL_KEYS.items()}

    def resolve(self, code: int) -> KeyCode:
        code = int(code)
        if code in self._special:
            dom, name = self._special[code]
            return KeyCode(key_code=dom, char_code=0, modifier=0, key=name)

        if code in _CONTROL_CHARS:
            dom, name = _CONTROL_CHARS[code]
            return KeyCode(key_code=dom, char_code=0, modifier=0, key=name)

        try:
            ch = chr(code)
        except (ValueError, OverflowError):
            return KeyCode(key_code=0, char_code=0)

        if "a" <= ch <= "z":
            return KeyCode(key_code=ord(ch.upper()), char_code=code, key=ch)
        if "A" <= ch <= "Z":
            return KeyCode(key_code=code, char_code=code, modifier=int(Modifier.SHIFT), key=ch)
        if "0" <= ch <= "9" or ch == " ":
            return KeyCode(key_code=code, char_code=code, key=ch)
        if ch in _SHIFTED:
            return KeyCode(key_code=_SHIFTED[ch], char_code=code, modifier=int(Modifier.SHIFT), key=ch)
        if ch in _PUNCTUATION:
            return KeyCode(key_code=_PUNCTUATION[ch], char_code=code, key=ch)
        # Non-ASCII text: no physical key, char only.
        return KeyCode(key_code=0, char_code=code, key=ch)


__all__ = ["KEY", "PhantomKeyTable"]
