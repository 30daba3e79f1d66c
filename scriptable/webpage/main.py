#!/usr/bin/env python3
"""
webpage-render: open a URL, wait for it to load, write a screenshot.

Usage:
    webpage-render URL OUTPUT [--viewport WxH] [--clip T,L,W,H] [--ratio R] [--timeout S] [--verbose]

The output format follows the file extension (.png, .jpg/.jpeg).
Browser settings come from WEBPAGE_* environment variables.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .cdp_engine import CdpEngine, CdpNetworkTracer
from .config import PageConfig, parse_viewport
from .controller import WebPage
from .errors import PageError
from .events import NetworkEvent
from .relay import LOAD_SUCCESS

logger = logging.getLogger("webpage.main")


def _parse_clip(raw: str) -> dict[str, float]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("clip must be TOP,LEFT,WIDTH,HEIGHT")
    try:
        top, left, width, height = (float(p) for p in parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"clip values must be numbers: {raw}") from exc
    return {"top": top, "left": left, "width": width, "height": height}


def _log_resource(event: NetworkEvent) -> None:
    if event.stage == "end":
        logger.info("resource %s %s %s", event.status, event.url, event.status_text or "")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webpage-render", description="Render a web page to an image file.")
    parser.add_argument("url")
    parser.add_argument("output")
    parser.add_argument("--viewport", help="viewport size as WxH (default: WEBPAGE_VIEWPORT or 400x300)")
    parser.add_argument("--clip", type=_parse_clip, help="capture region as TOP,LEFT,WIDTH,HEIGHT")
    parser.add_argument("--ratio", type=float, default=None, help="capture scale factor")
    parser.add_argument("--timeout", type=float, default=30.0, help="seconds to wait for the page load")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    config = PageConfig.from_env()
    if args.viewport:
        config.viewport = parse_viewport(args.viewport)

    engine = CdpEngine(config)
    page = WebPage(engine, CdpNetworkTracer(), library_path=config.library_path, viewport=config.viewport)
    page.on_console_message = lambda msg, line, source: logger.info("console: %s (%s:%s)", msg, source, line)
    page.on_resource_received = _log_resource
    try:
        page.open(args.url)
        status = page.wait_for_load(args.timeout)
        if status != LOAD_SUCCESS:
            logger.error("load %s: %s", "timed out" if status is None else "failed", args.url)
            return 1
        if args.clip:
            page.clip_rect = args.clip
        page.render(args.output, args.ratio)
        logger.info("wrote %s", args.output)
        return 0
    except PageError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        page.close()
        engine.shutdown()


if __name__ == "__main__":
    sys.exit(main())
