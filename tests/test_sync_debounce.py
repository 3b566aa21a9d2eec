# -*- coding: utf-8 -*-
"""
Tests del debounce: ráfagas de cambios producen una sola sincronización.
Usa un temporizador manual (FakeTimer) para no depender del reloj.
"""
from conftest import FakeTimer
from meat_depot.services import SyncDebouncer


def test_burst_collapses_into_single_call():
    calls = []
    debouncer = SyncDebouncer(lambda: calls.append(1), delay=2.0, timer_factory=FakeTimer)

    for _ in range(5):
        debouncer.trigger()

    assert len(FakeTimer.created) == 5
    assert all(t.cancelled for t in FakeTimer.created[:-1])
    assert FakeTimer.created[-1].started
    assert FakeTimer.created[-1].delay == 2.0
    assert FakeTimer.created[-1].daemon is True

    FakeTimer.created[-1].fire()
    assert calls == [1]
    assert debouncer.fire_count == 1
    assert debouncer.pending is False


def test_stale_timer_does_nothing():
    calls = []
    debouncer = SyncDebouncer(lambda: calls.append(1), timer_factory=FakeTimer)
    debouncer.trigger()
    first = FakeTimer.created[0]
    debouncer.trigger()

    # un timer cancelado que igual alcanzó a ejecutarse
    first.fn()
    assert calls == []
    assert debouncer.pending is True


def test_cancel_and_flush():
    calls = []
    debouncer = SyncDebouncer(lambda: calls.append(1), timer_factory=FakeTimer)

    assert debouncer.cancel() is False
    assert debouncer.flush() is False

    debouncer.trigger()
    assert debouncer.cancel() is True
    assert calls == []

    debouncer.trigger()
    assert debouncer.flush() is True
    assert calls == [1]
    assert debouncer.pending is False


def test_callback_errors_are_contained(capsys):
    def boom():
        raise RuntimeError('fallo remoto')

    debouncer = SyncDebouncer(boom, timer_factory=FakeTimer)
    debouncer.trigger()
    FakeTimer.created[-1].fire()

    assert debouncer.fire_count == 1
    assert '[SYNC ERROR]' in capsys.readouterr().out


def test_spaced_changes_sync_each_time():
    calls = []
    debouncer = SyncDebouncer(lambda: calls.append(1), timer_factory=FakeTimer)

    for _ in range(3):
        debouncer.trigger()
        FakeTimer.created[-1].fire()

    assert calls == [1, 1, 1]
    assert debouncer.fire_count == 3


def test_real_timer_fires_after_delay():
    import threading
    done = threading.Event()
    debouncer = SyncDebouncer(done.set, delay=0.05)
    debouncer.trigger()
    debouncer.trigger()
    assert done.wait(2.0)
    assert debouncer.fire_count == 1
