from __future__ import annotations

from typing import Any

import pytest

from scriptable.webpage.controller import WebPage
from scriptable.webpage.errors import CdpError, SessionNotOpenError
from scriptable.webpage.events import ConsoleMessage, NetworkEvent, ResourceRequest
from scriptable.webpage.session import PageState


def _record(page: WebPage) -> list[tuple[Any, ...]]:
    log: list[tuple[Any, ...]] = []
    page.on_initialized = lambda: log.append(("initialized",))
    page.on_load_started = lambda: log.append(("load_started",))
    page.on_url_changed = lambda url: log.append(("url_changed", url))
    page.on_resource_requested = lambda req: log.append(("requested", req.id))
    page.on_resource_received = lambda ev: log.append(("received", ev.id, ev.stage))
    page.on_load_finished = lambda status: log.append(("load_finished", status))
    return log


def test_open_runs_through_lifecycle_in_order(page, engine, tracer) -> None:
    log = _record(page)
    done: list[str] = []

    page.open("http://example.test/", done.append)
    assert page.state is PageState.OPENING
    es = engine.created[0]
    assert es.loaded == ["http://example.test/"]
    assert log == [("initialized",)]

    listener = tracer.listener
    listener.on_load_started()
    assert page.state is PageState.LOADING
    listener.on_url_changed("http://example.test/")
    listener.on_request(ResourceRequest(id=1, url="http://example.test/"))
    listener.on_response(NetworkEvent(id=1, url="http://example.test/", stage="start", status=200))
    listener.on_response(NetworkEvent(id=1, url="http://example.test/", stage="end", status=200))
    listener.on_content_loaded(True)
    listener.on_load_finished(True)

    assert log == [
        ("initialized",),
        ("load_started",),
        ("url_changed", "http://example.test/"),
        ("requested", 1),
        ("received", 1, "start"),
        ("received", 1, "end"),
        ("initialized",),
        ("load_finished", "success"),
    ]
    assert done == ["success"]
    assert page.state is PageState.LOADED
    assert page.load_status == "success"


def test_open_callback_fires_once(page, tracer) -> None:
    done: list[str] = []
    page.open("http://example.test/", done.append)
    listener = tracer.listener
    listener.on_load_started()
    listener.on_load_finished(True)
    # A later page-initiated navigation must not re-fire the open callback.
    listener.on_load_started()
    listener.on_load_finished(True)
    assert done == ["success"]


def test_failed_navigation_sends_one_synthetic_event_then_fail(page, tracer) -> None:
    received: list[NetworkEvent] = []
    statuses: list[str] = []
    done: list[str] = []
    page.on_resource_received = received.append
    page.on_load_finished = statuses.append

    page.open("http://nowhere.test/", done.append)
    listener = tracer.listener
    listener.on_load_started()
    listener.on_content_loaded(False)
    listener.on_load_finished(False)

    assert len(received) == 1
    failure = received[0]
    assert failure.stage == "end"
    assert failure.status is None
    assert failure.body == ""
    assert failure.url == "http://nowhere.test/"
    assert statuses == ["fail"]
    assert done == ["fail"]
    assert page.state is PageState.LOADED
    assert page.load_status == "fail"


def test_resource_events_before_load_start_are_held(page, tracer) -> None:
    log = _record(page)
    page.open("http://example.test/")
    listener = tracer.listener
    listener.on_request(ResourceRequest(id=7, url="http://example.test/"))
    assert ("requested", 7) not in log

    listener.on_load_started()
    assert log[-2:] == [("load_started",), ("requested", 7)]


def test_finish_without_start_emits_start_first(page, tracer) -> None:
    log = _record(page)
    page.open("http://example.test/")
    tracer.listener.on_load_finished(True)
    assert log[-2:] == [("load_started",), ("load_finished", "success")]


def test_finish_outside_navigation_is_dropped(page, opened, tracer) -> None:
    statuses: list[str] = []
    page.on_load_finished = statuses.append
    tracer.listener.on_load_finished(True)
    assert statuses == []


def test_page_initiated_navigation_gets_its_own_envelope(page, opened, tracer) -> None:
    log = _record(page)
    listener = tracer.listener
    listener.on_load_started()
    listener.on_request(ResourceRequest(id=3, url="http://example.test/next"))
    listener.on_load_finished(True)
    assert log == [("load_started",), ("requested", 3), ("load_finished", "success")]


def test_open_on_existing_session_renavigates(page, opened, engine, tracer) -> None:
    done: list[str] = []
    page.open("http://example.test/two", done.append)
    assert len(engine.created) == 1
    assert opened.loaded == ["http://example.test/", "http://example.test/two"]
    assert tracer.registrations == 2
    assert len(tracer.listeners) == 1

    tracer.listener.on_load_started()
    tracer.listener.on_load_finished(True)
    assert done == ["success"]


def test_close_is_idempotent(page, opened, engine) -> None:
    closing: list[Any] = []
    page.on_closing = closing.append

    page.close()
    page.close()

    assert closing == [page]
    assert engine.closed == [opened]
    assert page.state is PageState.CLOSED
    assert opened.console_handler is None
    assert opened.dialog_handler is None


def test_events_after_close_produce_no_callbacks(page, opened, tracer) -> None:
    listener = tracer.listener
    console_handler = opened.console_handler
    page.close()
    log = _record(page)
    seen: list[Any] = []
    page.on_console_message = lambda *args: seen.append(args)

    listener.on_load_started()
    listener.on_url_changed("http://late.test/")
    listener.on_response(NetworkEvent(id=9, url="http://late.test/", stage="end"))
    listener.on_load_finished(False)
    console_handler("main", ConsoleMessage("late"))

    assert log == []
    assert seen == []


def test_close_before_engine_ready_discards_session(page, engine) -> None:
    engine.deferred = True
    page.open("http://example.test/")
    assert page.state is PageState.OPENING
    page.close()
    assert page.state is PageState.CLOSED

    es = engine.ready()
    assert engine.closed == [es]
    assert es.loaded == []


def test_open_can_retry_after_engine_failure(page, engine, monkeypatch) -> None:
    ready = engine.create_session

    def unavailable(on_ready) -> None:
        raise CdpError("browser not running")

    monkeypatch.setattr(engine, "create_session", unavailable)
    with pytest.raises(CdpError):
        page.open("http://example.test/")
    assert page.state is PageState.CLOSED

    monkeypatch.setattr(engine, "create_session", ready)
    page.open("http://example.test/retry")
    assert len(engine.created) == 1
    assert engine.created[0].loaded == ["http://example.test/retry"]
    assert page.state is PageState.OPENING


def test_reopen_after_close_creates_new_session(page, opened, engine) -> None:
    page.close()
    page.open("http://example.test/again")
    assert len(engine.created) == 2
    assert engine.created[1].loaded == ["http://example.test/again"]
    assert page.state is PageState.OPENING


def test_operations_without_session(page) -> None:
    assert page.url == ""
    assert page.title == ""
    assert page.viewport_size == {"width": 0, "height": 0}
    assert page.can_go_back is False
    assert page.can_go_forward is False
    page.stop()
    page.reload()
    page.go(1)
    assert page.process_events() == 0
    for call in (
        lambda: page.content,
        lambda: page.plain_text,
        lambda: page.evaluate("function () {}"),
        lambda: page.evaluate_async("function () {}"),
        lambda: page.evaluate_javascript("1"),
        lambda: page.inject_js("x.js"),
        lambda: page.include_js("http://x/a.js"),
        lambda: page.send_event("click", 1, 1),
        lambda: page.render_base64(),
    ):
        with pytest.raises(SessionNotOpenError):
            call()


def test_callback_exception_is_logged_and_swallowed(page, tracer, caplog) -> None:
    statuses: list[str] = []

    def boom() -> None:
        raise RuntimeError("bad handler")

    page.on_load_started = boom
    page.on_load_finished = statuses.append
    page.open("http://example.test/")
    tracer.listener.on_load_started()
    tracer.listener.on_load_finished(True)

    assert statuses == ["success"]
    assert "callback on_load_started failed" in caplog.text


def test_non_callable_callback_clears_slot(page) -> None:
    page.on_alert = lambda msg: None
    page.on_alert = "not a function"
    assert page.on_alert is None


def test_generation_bumps_on_document_transitions(page, opened, tracer) -> None:
    gen = page.generation
    tracer.listener.on_url_changed("http://example.test/#x")
    assert page.generation > gen
    gen = page.generation
    tracer.listener.on_load_started()
    assert page.generation > gen


def test_stop_reload_and_history(page, opened) -> None:
    page.stop()
    page.reload()
    assert opened.calls == ["stop", "reload"]

    opened.history = ["a", "b", "c"]
    opened.history_pos = 1
    assert page.can_go_back is True
    assert page.can_go_forward is True
    page.go_back()
    assert opened.history_pos == 0
    page.go_forward()
    page.go_forward()
    assert opened.history_pos == 2


def test_out_of_range_go_changes_nothing(page, opened) -> None:
    opened.history = ["a", "b"]
    opened.history_pos = 1
    page.go(1)
    page.go(-2)
    page.go_forward()
    assert opened.history_pos == 1
    assert [c for c in opened.calls if c.startswith("history_go")] == []


def test_wait_for_load_pumps_events(page, tracer, engine) -> None:
    page.open("http://example.test/")
    es = engine.created[0]
    listener = tracer.listener
    es.pending = [listener.on_load_started, lambda: listener.on_load_finished(True)]
    assert page.wait_for_load(1.0) == "success"
    assert page.state is PageState.LOADED


def test_wait_for_load_times_out(page, tracer) -> None:
    page.open("http://example.test/")
    assert page.wait_for_load(0.01) is None


def test_document_properties(page, opened) -> None:
    opened.current_url = "http://example.test/"
    assert page.url == "http://example.test/"
    assert page.title == "Fake Title"
    assert page.content.startswith("<html>")
    assert page.plain_text == "hi"


def test_capture_content_is_shared_with_tracer(page, tracer) -> None:
    page.capture_content = [r"^text/"]
    page.open("http://example.test/")
    patterns = tracer.capture_types
    assert [p.pattern for p in patterns] == ["^text/"]

    page.capture_content = [r"json"]
    assert [p.pattern for p in patterns] == ["json"]
    assert page.capture_content == ["json"]
