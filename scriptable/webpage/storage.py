from __future__ import annotations

from pathlib import Path


class LocalStorage:
    """Filesystem-backed Storage."""

    def write_file(self, path: str, data: bytes) -> None:
        target = Path(path).expanduser()
        if target.parent and not target.parent.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def extension_of(self, path: str) -> str:
        return Path(str(path)).suffix.lstrip(".")
