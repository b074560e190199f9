from __future__ import annotations

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

try:
    import app
except (ImportError, OSError):
    pytest.skip("runtime dependencies not available", allow_module_level=True)

import target as tg
from binding import MuteToggle, VolumeControl
from deck import Deck
from models import DeviceKind, SurfaceError
from target import StaticDevice


@pytest.fixture(scope="module")
def qapp():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


@pytest.fixture
def runner(qapp):
    r = app.DeckRunner(poll_interval_ms=1000)
    yield r
    r.timer.stop()


def test_flush_failure_keeps_running(runner, backend, sent):
    deck = Deck(backend, {11: VolumeControl(StaticDevice.sink(5))}, sent.append)
    runner.start(deck)

    runner.on_flush()

    assert runner.exit_code == 0
    assert runner.timer.isActive()

    backend.add_device(DeviceKind.SINK, 5, volume=0.5)
    runner.on_flush()
    assert sent == [bytes([0xBA, 11, 63])]


def test_event_resolution_failure_keeps_running(runner, backend, sent):
    runner.start(Deck(backend, {34: MuteToggle(StaticDevice.source(2))}, sent.append))

    runner.on_message(bytes([0x8A, 34, 0]))

    assert runner.exit_code == 0


def test_kind_mismatch_stops(runner, backend, sent):
    backend.add_device(DeviceKind.SINK, 1)
    runner.start(Deck(backend, {40: VolumeControl(StaticDevice.sink(1))}, sent.append))

    runner.on_message(bytes([0x8A, 40, 0]))

    assert runner.exit_code == 1
    assert not runner.timer.isActive()


def test_send_failure_stops(runner, backend):
    def broken(data):
        raise SurfaceError("unplugged")

    runner.start(Deck(backend, {13: VolumeControl(tg.app_name("mpv"))}, broken))
    runner.on_flush()

    assert runner.exit_code == 1


def test_submitted_messages_are_handled_in_order(runner, backend, sent, qapp):
    runner.start(Deck(backend, {}, sent.append))

    for i in range(5):
        runner.submit(bytes([0xBA, i, 99]))
    assert sent == []

    qapp.processEvents()

    assert sent == [bytes([0xBA, i, 0]) for i in range(5)]


def test_parse_args_defaults():
    args = app.parse_args([])
    assert args.config is None
    assert args.log_level == "info"
    assert args.list_ports is False


def test_main_fails_cleanly_on_bad_config(tmp_path):
    cfg = tmp_path / "bad.cfg"
    cfg.write_text("[Surface]\npoll_interval_ms = never\n", encoding="utf-8")

    assert app.main(["--config", str(cfg)]) == 1
