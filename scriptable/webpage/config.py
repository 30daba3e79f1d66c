from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Prefer Chromium builds; snap versions ignore --user-data-dir so they go last.
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "/snap/bin/chromium",
]

# PhantomJS opens pages at 400x300 unless told otherwise.
DEFAULT_VIEWPORT: tuple[int, int] = (400, 300)


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except ValueError:
        return default


def parse_viewport(raw: str | None) -> tuple[int, int]:
    """Parse `WxH` (or `W,H`); anything malformed yields the default."""
    text = (raw or "").strip().lower().replace(",", "x")
    if "x" not in text:
        return DEFAULT_VIEWPORT
    w_raw, _, h_raw = text.partition("x")
    try:
        w, h = int(w_raw), int(h_raw)
    except ValueError:
        return DEFAULT_VIEWPORT
    if w <= 0 or h <= 0:
        return DEFAULT_VIEWPORT
    return w, h


@dataclass
class PageConfig:
    binary_path: str
    profile_path: str
    cdp_port: int = 9222
    mode: str = "launch"
    extra_flags: list[str] = field(default_factory=list)
    headless: bool = True
    cdp_timeout: float = 10.0
    launch_timeout: float = 8.0
    viewport: tuple[int, int] = DEFAULT_VIEWPORT
    library_path: str = field(default_factory=os.getcwd)
    sandbox_world: str = "isolated"

    @staticmethod
    def normalize_mode(raw: str | None) -> str:
        mode = (raw or "").strip().lower()
        if mode in {"attach", "connect", "external"}:
            return "attach"
        return "launch"

    @staticmethod
    def normalize_sandbox_world(raw: str | None) -> str:
        world = (raw or "").strip().lower()
        if world in {"main", "page", "default"}:
            return "main"
        return "isolated"

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("WEBPAGE_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "chromium"

    @classmethod
    def from_env(cls) -> PageConfig:
        flags_raw = os.environ.get("WEBPAGE_BROWSER_FLAGS", "")
        library = os.environ.get("WEBPAGE_LIBRARY_PATH")
        return cls(
            binary_path=cls.detect_binary(),
            profile_path=expand_path(os.environ.get("WEBPAGE_BROWSER_PROFILE", "~/.cache/scriptable-webpage/profile")),
            cdp_port=_env_int("WEBPAGE_CDP_PORT", 9222),
            mode=cls.normalize_mode(os.environ.get("WEBPAGE_BROWSER_MODE")),
            extra_flags=[flag.strip() for flag in flags_raw.split(",") if flag.strip()],
            headless=os.environ.get("WEBPAGE_HEADLESS", "1") != "0",
            cdp_timeout=_env_float("WEBPAGE_CDP_TIMEOUT", 10.0),
            launch_timeout=_env_float("WEBPAGE_LAUNCH_TIMEOUT", 8.0),
            viewport=parse_viewport(os.environ.get("WEBPAGE_VIEWPORT")),
            library_path=expand_path(library) if library else os.getcwd(),
            sandbox_world=cls.normalize_sandbox_world(os.environ.get("WEBPAGE_SANDBOX_WORLD")),
        )
