from __future__ import annotations

from typing import Any

from scriptable.webpage.events import ConsoleMessage


def test_console_message_from_page_window(page, opened) -> None:
    seen: list[tuple[Any, ...]] = []
    page.on_console_message = lambda msg, line, source: seen.append((msg, line, source))
    opened.console_handler("main", ConsoleMessage("hello", 3, "http://example.test/app.js"))
    assert seen == [("hello", 3, "http://example.test/app.js")]


def test_console_message_from_child_frame_is_delivered(page, opened) -> None:
    seen: list[str] = []
    page.on_console_message = lambda msg, line, source: seen.append(msg)
    opened.frame_parents["frame-1"] = "main"
    opened.frame_parents["frame-2"] = "frame-1"
    opened.console_handler("frame-2", ConsoleMessage("nested"))
    assert seen == ["nested"]


def test_console_message_from_foreign_window_is_dropped(page, opened) -> None:
    seen: list[str] = []
    page.on_console_message = lambda msg, line, source: seen.append(msg)
    opened.frame_parents["other-top"] = None
    opened.console_handler("other-top", ConsoleMessage("elsewhere"))
    opened.console_handler("unknown", ConsoleMessage("nowhere"))
    assert seen == []


def test_alert_routes_to_on_alert(page, opened) -> None:
    alerts: list[str] = []
    page.on_alert = alerts.append
    assert opened.dialog_handler("alert", "hi there", None) is None
    assert alerts == ["hi there"]


def test_confirm_defaults_to_false_without_handler(page, opened) -> None:
    assert opened.dialog_handler("confirm", "sure?", None) is False


def test_confirm_uses_handler_truthiness(page, opened) -> None:
    page.on_confirm = lambda msg: "yes" if msg == "sure?" else ""
    assert opened.dialog_handler("confirm", "sure?", None) is True
    assert opened.dialog_handler("confirm", "really?", None) is False


def test_prompt_answer_and_dismiss(page, opened) -> None:
    assert opened.dialog_handler("prompt", "name?", "anon") is None

    page.on_prompt = lambda msg, default: f"{default}-42"
    assert opened.dialog_handler("prompt", "name?", "anon") == "anon-42"

    page.on_prompt = lambda msg, default: None
    assert opened.dialog_handler("prompt", "name?", "anon") is None


def test_confirm_handler_error_answers_false(page, opened) -> None:
    def broken(msg: str) -> bool:
        raise ValueError(msg)

    page.on_confirm = broken
    assert opened.dialog_handler("confirm", "sure?", None) is False
