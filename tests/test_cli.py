from __future__ import annotations

import pytest

from scriptable.webpage import main as main_mod


@pytest.fixture
def wired(monkeypatch, engine, tracer):
    monkeypatch.setattr(main_mod, "CdpEngine", lambda config: engine)
    monkeypatch.setattr(main_mod, "CdpNetworkTracer", lambda: tracer)
    return engine, tracer


def _finish(engine, tracer, success: bool) -> None:
    def prime(es) -> None:
        es.pending.extend(
            [
                lambda: tracer.listener.on_load_started(),
                lambda: tracer.listener.on_load_finished(success),
            ]
        )

    engine.on_create = prime


def test_render_writes_file_and_exits_zero(wired, tmp_path) -> None:
    engine, tracer = wired
    _finish(engine, tracer, True)
    out = tmp_path / "shot.png"

    code = main_mod.main(["http://example.test/", str(out), "--viewport", "640x480", "--clip", "0,0,4,4"])

    assert code == 0
    assert out.read_bytes().startswith(b"\x89PNG")
    es = engine.created[0]
    assert es.loaded == ["http://example.test/"]
    assert es.viewport == (640, 480)
    clip, scale = es.captures[0]
    assert (clip.width, clip.height, scale) == (4, 4, 1.0)
    assert engine.closed == [es]
    assert engine.shut_down is True


def test_failed_load_exits_one(wired, tmp_path) -> None:
    engine, tracer = wired
    _finish(engine, tracer, False)
    out = tmp_path / "shot.png"
    assert main_mod.main(["http://nowhere.test/", str(out)]) == 1
    assert not out.exists()
    assert engine.shut_down is True


def test_timeout_exits_one(wired, tmp_path) -> None:
    engine, _ = wired
    assert main_mod.main(["http://slow.test/", str(tmp_path / "x.png"), "--timeout", "0.01"]) == 1
    assert engine.closed == engine.created


def test_page_error_exits_one(wired, tmp_path) -> None:
    engine, tracer = wired
    _finish(engine, tracer, True)
    assert main_mod.main(["http://example.test/", str(tmp_path / "x.gif")]) == 1


def test_bad_clip_is_a_usage_error(wired, tmp_path) -> None:
    with pytest.raises(SystemExit):
        main_mod.main(["http://example.test/", str(tmp_path / "x.png"), "--clip", "1,2,3"])
