from __future__ import annotations

import contextlib
import json
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .config import PageConfig, expand_path
from .errors import CdpError

logger = logging.getLogger("webpage.launcher")


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


def _http_json(url: str, *, method: str = "GET", timeout: float = 2.0) -> Any:
    """Fetch JSON from the DevTools HTTP endpoint."""
    req = Request(url, method=method, headers={"User-Agent": "scriptable-webpage"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode()
    except (OSError, URLError) as exc:
        raise CdpError(str(exc)) from exc
    try:
        return json.loads(body) if body.strip() else {}
    except json.JSONDecodeError:
        # /json/close answers with plain text.
        return {"message": body.strip()}


class BrowserLauncher:
    def __init__(self, config: PageConfig | None = None) -> None:
        self.config = config or PageConfig.from_env()
        self.process: subprocess.Popen | None = None

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.config.cdp_port}"

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        try:
            with urlopen(f"{self.base_url}/json/version", timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, URLError):
            return False

    def build_launch_command(self) -> list[str]:
        flags = [
            f"--remote-debugging-port={self.config.cdp_port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-gpu",
            "--disable-dev-shm-usage",
            "--hide-scrollbars",
            "--mute-audio",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        width, height = self.config.viewport
        flags.append(f"--window-size={width},{height}")
        return [self.config.binary_path, *flags, *self.config.extra_flags, "about:blank"]

    def ensure_running(self) -> LaunchResult:
        if self.cdp_ready():
            return LaunchResult([], True, "CDP endpoint already available")
        if self.config.mode == "attach":
            return LaunchResult([], False, f"Attach mode: no browser listening on port {self.config.cdp_port}")

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command()
        logger.info("launching browser: %s", cmd[0])
        try:
            self.process = subprocess.Popen(
                cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, stdin=subprocess.DEVNULL
            )
        except OSError as exc:
            return LaunchResult(cmd, False, str(exc))

        deadline = time.monotonic() + self.config.launch_timeout
        while time.monotonic() < deadline:
            if self.cdp_ready():
                return LaunchResult(cmd, True, "Browser launched")
            if self.process.poll() is not None:
                return LaunchResult(cmd, False, f"Browser exited with code {self.process.returncode}")
            time.sleep(0.1)
        return LaunchResult(cmd, False, "Browser launch timed out")

    def new_target(self, url: str = "about:blank") -> dict[str, Any]:
        # Chrome 111+ rejects GET on /json/new.
        target = _http_json(f"{self.base_url}/json/new?{quote(url, safe=':/?&=')}", method="PUT")
        if not isinstance(target, dict) or not target.get("webSocketDebuggerUrl"):
            raise CdpError(f"Could not create a browser target: {target!r}")
        return target

    def close_target(self, target_id: str) -> None:
        _http_json(f"{self.base_url}/json/close/{target_id}")

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Stop the launcher-owned browser process, if any."""
        proc = self.process
        if proc is None:
            return False
        self.process = None
        if proc.poll() is not None:
            return True
        proc.terminate()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
        return True


__all__ = ["BrowserLauncher", "LaunchResult"]
