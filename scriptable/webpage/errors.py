"""Error taxonomy for the webpage controller.

Every failure the script can observe synchronously is a PageError subclass.
Navigation failures are not errors: they are reported via on_load_finished("fail").
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class PageError(Exception):
    """Base class for controller errors."""


class SessionNotOpenError(PageError):
    """Raised when an operation needs an open page session and none exists."""

    def __init__(self, operation: str = "") -> None:
        self.operation = operation
        msg = "WebPage not opened"
        if operation:
            msg = f"{msg} (cannot {operation})"
        super().__init__(msg)


class ValidationError(PageError, ValueError):
    """Structured validation error for a single field."""

    def __init__(self, field: str, reason: str, value: Any = None) -> None:
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"{field}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "field": self.field, "reason": self.reason, "value": self.value}


class UnsupportedFormatError(PageError):
    def __init__(self, fmt: str) -> None:
        self.format = fmt
        super().__init__(f'Render format "{fmt}" is not supported')


class UnknownEventTypeError(PageError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown event type: {kind!r}")


class Capability(Enum):
    """Members of the scripting surface that are declared but not implemented."""

    COOKIES = "cookies"
    CUSTOM_HEADERS = "customHeaders"
    ADD_COOKIE = "addCookie"
    CLEAR_COOKIES = "clearCookies"
    DELETE_COOKIE = "deleteCookie"
    NAVIGATION_LOCKED = "navigationLocked"
    OPEN_URL = "openUrl"
    RELEASE = "release"
    CHILD_FRAMES_COUNT = "childFramesCount"
    CHILD_FRAMES_NAME = "childFramesName"
    CURRENT_FRAME_NAME = "currentFrameName"
    FRAME_URL = "frameUrl"
    FOCUSED_FRAME_NAME = "focusedFrameName"
    FRAME_COUNT = "frameCount"
    FRAMES_NAME = "framesName"
    FRAME_CONTENT = "frameContent"
    FRAME_PLAIN_TEXT = "framePlainText"
    FRAME_TITLE = "frameTitle"
    SWITCH_TO_FRAME = "switchToFrame"
    SWITCH_TO_CHILD_FRAME = "switchToChildFrame"
    SWITCH_TO_MAIN_FRAME = "switchToMainFrame"
    SWITCH_TO_PARENT_FRAME = "switchToParentFrame"
    SWITCH_TO_FOCUSED_FRAME = "switchToFocusedFrame"
    OWNS_PAGES = "ownsPages"
    GET_PAGE = "getPage"
    PAGES = "pages"
    PAGES_WINDOW_NAME = "pagesWindowName"
    WINDOW_NAME = "windowName"
    SCROLL_POSITION = "scrollPosition"
    SET_CONTENT = "setContent"
    CONTENT_SETTER = "content (setter)"
    UPLOAD_FILE = "uploadFile"
    OFFLINE_STORAGE_PATH = "offlineStoragePath"
    OFFLINE_STORAGE_QUOTA = "offlineStorageQuota"
    ON_ERROR = "onError"
    ON_CALLBACK = "onCallback"
    ON_FILE_PICKER = "onFilePicker"
    ON_NAVIGATION_REQUESTED = "onNavigationRequested"
    ON_PAGE_CREATED = "onPageCreated"


class UnsupportedFeatureError(PageError, NotImplementedError):
    def __init__(self, capability: Capability) -> None:
        self.capability = capability
        super().__init__(f"Not Implemented: {capability.value}")


class CdpError(PageError):
    """Transport or protocol failure talking to the browser."""


class EvaluationError(PageError):
    """A script evaluated in the page threw."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


__all__ = [
    "Capability",
    "CdpError",
    "EvaluationError",
    "PageError",
    "SessionNotOpenError",
    "UnknownEventTypeError",
    "UnsupportedFeatureError",
    "UnsupportedFormatError",
    "ValidationError",
]
