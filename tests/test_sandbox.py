from __future__ import annotations

import pytest

from scriptable.webpage.errors import CdpError
from scriptable.webpage.sandbox import SandboxManager, build_call_source
from scriptable.webpage.session import Session


def test_build_call_source_json_encodes_args() -> None:
    src = build_call_source("function (a, b) { return a + b; }", (1, "x"))
    assert src == '(function (a, b) { return a + b; }).apply(this, [1, "x"]);'


def test_evaluate_returns_engine_result(page, opened) -> None:
    opened.eval_result = {"answer": 42}
    assert page.evaluate("function (n) { return {answer: n}; }", 42) == {"answer": 42}
    (handle, sources), = opened.sandboxes.items()
    assert sources == ["(function (n) { return {answer: n}; }).apply(this, [42]);"]


def test_sandbox_reused_within_generation(page, opened) -> None:
    page.evaluate("function () {}")
    page.evaluate_javascript("1 + 1")
    assert len(opened.sandboxes) == 1
    assert list(opened.sandboxes.values())[0][1] == "1 + 1"


def test_sandbox_recreated_after_document_transition(page, opened, tracer) -> None:
    page.evaluate_javascript("window.marker = 1")
    tracer.listener.on_load_started()
    page.evaluate_javascript("window.marker")
    assert len(opened.sandboxes) == 2
    first, second = opened.sandboxes.values()
    assert first == ["window.marker = 1"]
    assert second == ["window.marker"]


def test_sandbox_recreated_after_url_change(page, opened, tracer) -> None:
    page.evaluate_javascript("1")
    tracer.listener.on_url_changed("http://example.test/#frag")
    page.evaluate_javascript("2")
    assert len(opened.sandboxes) == 2


def test_sandbox_names_differ_within_one_document(page, engine, tracer) -> None:
    page.open("http://example.test/")
    es = engine.created[0]
    es.current_url = "http://example.test/"
    listener = tracer.listener
    listener.on_load_started()
    page.evaluate_javascript("window.x = 1")
    listener.on_content_loaded(True)
    page.evaluate_javascript("window.x")
    listener.on_load_finished(True)
    page.evaluate_javascript("window.x")

    names = es.sandbox_names
    assert len(names) == 3
    assert len(set(names)) == 3
    assert all(name.endswith(":http://example.test/") for name in names)


def test_evaluate_async_schedules_and_does_not_evaluate(page, opened) -> None:
    assert page.evaluate_async("function () { window.x = 1; }") is None
    assert opened.scheduled == [(1, "(function () { window.x = 1; })();")]
    assert opened.sandboxes[1] == []


def test_inject_js_reads_relative_to_library_path(page, opened, tmp_path) -> None:
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "helper.js").write_text("var helper = 'é';", encoding="utf-8")
    page.library_path = tmp_path / "lib"

    assert page.inject_js("helper.js") is True
    assert list(opened.sandboxes.values())[0] == ["var helper = 'é';"]


def test_inject_js_missing_file_raises(page, opened, tmp_path) -> None:
    page.library_path = tmp_path
    with pytest.raises(FileNotFoundError):
        page.inject_js("missing.js")


def test_include_js_callback_runs_when_engine_reports_load(page, opened) -> None:
    loaded: list[str] = []
    page.include_js("http://example.test/lib.js", lambda: loaded.append("done"))
    (url, on_load), = opened.includes
    assert url == "http://example.test/lib.js"
    assert loaded == []

    opened.pending.append(on_load)
    page.process_events()
    assert loaded == ["done"]


def test_include_js_callback_dropped_after_close(page, opened) -> None:
    loaded: list[str] = []
    page.include_js("http://example.test/lib.js", lambda: loaded.append("done"))
    (_, on_load), = opened.includes
    page.close()
    on_load()
    assert loaded == []


def test_manager_context_goes_stale_on_generation_bump(opened) -> None:
    session = Session()
    manager = SandboxManager(session)
    ctx = manager.acquire(opened)
    assert manager.context is ctx
    session.bump_generation()
    assert manager.context is None
    assert manager.acquire(opened) is not ctx
    manager.discard()
    assert manager.context is None


def test_sandbox_creation_propagates_engine_errors(page, opened, monkeypatch) -> None:
    def lost() -> str:
        raise CdpError("connection closed (Page.getNavigationHistory)")

    monkeypatch.setattr(opened, "url", lost)
    with pytest.raises(CdpError):
        page.evaluate_javascript("1")
    assert opened.sandboxes == {}
