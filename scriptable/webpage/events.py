"""Immutable payloads handed to script callbacks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResourceRequest:
    """Payload of on_resource_requested."""

    id: int
    url: str
    method: str = "GET"
    time: datetime = field(default_factory=_now)
    headers: tuple[tuple[str, str], ...] = ()
    post_data: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "method": self.method,
            "url": self.url,
            "time": self.time.isoformat(),
            "headers": [{"name": k, "value": v} for k, v in self.headers],
            **({"postData": self.post_data} if self.post_data is not None else {}),
        }


@dataclass(frozen=True)
class NetworkEvent:
    """Payload of on_resource_received (one per response stage)."""

    id: int
    url: str
    stage: str
    time: datetime = field(default_factory=_now)
    headers: tuple[tuple[str, str], ...] = ()
    body_size: int = 0
    content_type: str | None = None
    content_charset: str | None = None
    redirect_url: str | None = None
    status: int | None = None
    status_text: str | None = None
    referrer: str = ""
    body: str | None = None

    def __post_init__(self) -> None:
        if self.stage not in ("start", "end"):
            raise ValueError(f"stage must be 'start' or 'end', got {self.stage!r}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "time": self.time.isoformat(),
            "headers": [{"name": k, "value": v} for k, v in self.headers],
            "bodySize": self.body_size,
            "contentType": self.content_type,
            "contentCharset": self.content_charset,
            "redirectURL": self.redirect_url,
            "stage": self.stage,
            "status": self.status,
            "statusText": self.status_text,
            "referrer": self.referrer,
            "body": self.body,
        }


def failure_event(url: str) -> NetworkEvent:
    """Terminal resource event for a navigation the engine failed without one."""
    return NetworkEvent(
        id=0,
        url=url,
        stage="end",
        headers=(),
        body_size=0,
        content_type=None,
        content_charset=None,
        redirect_url=None,
        status=None,
        status_text=None,
        referrer="",
        body="",
    )


@dataclass(frozen=True)
class ConsoleMessage:
    message: str
    line: int | None = None
    source: str | None = None


def split_content_type(value: str | None) -> tuple[str | None, str | None]:
    """`text/html; charset=UTF-8` -> ("text/html", "UTF-8")."""
    if not value:
        return None, None
    parts = [p.strip() for p in str(value).split(";")]
    mime = parts[0] or None
    charset = None
    for p in parts[1:]:
        k, _, v = p.partition("=")
        if k.strip().lower() == "charset" and v.strip():
            charset = v.strip().strip('"')
    return mime, charset


__all__ = ["ConsoleMessage", "NetworkEvent", "ResourceRequest", "failure_event", "split_content_type"]
