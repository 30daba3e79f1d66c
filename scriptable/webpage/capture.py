"""Visual capture pipeline: surface buffer -> Pillow -> base64 payload."""

from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image

from .engine import CaptureSurface, Storage
from .errors import UnsupportedFormatError, ValidationError
from .session import ClipRect

SUPPORTED_FORMATS = ("png", "jpeg")
JPEG_QUALITY = 80

# File extensions accepted by render() in addition to the format names.
_EXTENSION_ALIASES = {"jpg": "jpeg"}


def normalize_format(fmt: str | None) -> str:
    name = str(fmt or "png").strip().lower() or "png"
    if name not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(name)
    return name


def normalize_ratio(ratio: float | None) -> float:
    if ratio is None:
        return 1.0
    try:
        value = float(ratio)
    except (TypeError, ValueError) as exc:
        raise ValidationError("ratio", "ratio should be a positive number", ratio) from exc
    if value <= 0:
        raise ValidationError("ratio", "ratio should be a positive number", ratio)
    return value


def strip_data_url(payload: str) -> str:
    if payload.startswith("data:") and "," in payload:
        return payload.split(",", 1)[1]
    return payload


def encode_image(raw: bytes, fmt: str) -> bytes:
    """Re-encode a captured buffer as PNG or JPEG (quality 80)."""
    with Image.open(BytesIO(raw)) as img:
        out = BytesIO()
        if fmt == "jpeg":
            img.convert("RGB").save(out, format="JPEG", quality=JPEG_QUALITY)
        else:
            img.save(out, format="PNG")
        return out.getvalue()


def render_base64(surface: CaptureSurface, clip: ClipRect | None, fmt: str | None = None, ratio=None) -> str:
    fmt = normalize_format(fmt)
    scale = normalize_ratio(ratio)
    raw = surface.capture_viewport(clip, scale)
    if isinstance(raw, str):
        # Some surfaces hand back a data URL rather than raw bytes.
        raw = base64.b64decode(strip_data_url(raw))
    return base64.b64encode(encode_image(raw, fmt)).decode("ascii")


def render_bytes(surface: CaptureSurface, clip: ClipRect | None, fmt: str | None = None, ratio=None) -> bytes:
    return base64.b64decode(render_base64(surface, clip, fmt, ratio))


def format_for_path(storage: Storage, path: str) -> str:
    ext = storage.extension_of(path).lower().lstrip(".")
    ext = _EXTENSION_ALIASES.get(ext, ext)
    return ext or "png"


def render_to_file(
    surface: CaptureSurface, storage: Storage, clip: ClipRect | None, path: str, ratio=None
) -> None:
    data = render_bytes(surface, clip, format_for_path(storage, path), ratio)
    storage.write_file(path, data)


__all__ = [
    "JPEG_QUALITY",
    "SUPPORTED_FORMATS",
    "encode_image",
    "format_for_path",
    "normalize_format",
    "normalize_ratio",
    "render_base64",
    "render_bytes",
    "render_to_file",
    "strip_data_url",
]
