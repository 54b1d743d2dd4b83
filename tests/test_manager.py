import threading
import time

from models import DeviceInfo, PedalEvent, PedalStatus, StatusKind, VidPidCandidate
from pedal.manager import PedalManager

PEDAL = DeviceInfo("/dev/input/event5", "VEC USB Footpedal", 0x0911, 0x1844)
CANDIDATES = [VidPidCandidate(0x0911, 0x1844)]


class ScriptedHandle:
    """Replays batches, then fails like an unplugged device."""

    def __init__(self, info, batches):
        self.info = info
        self._batches = list(batches)
        self.closed = False

    def read_batch(self, timeout):
        if not self._batches:
            raise OSError(19, "No such device")
        return self._batches.pop(0)

    def close(self):
        self.closed = True


class FakeBackend:
    def __init__(self, devices, scripts=(), enumerate_error=None):
        self.devices = list(devices)
        self.scripts = list(scripts)
        self.enumerate_error = enumerate_error
        self.enumerate_calls = 0
        self.handles = []
        self._lock = threading.Lock()

    def enumerate(self):
        with self._lock:
            self.enumerate_calls += 1
        if self.enumerate_error is not None:
            raise self.enumerate_error
        return list(self.devices)

    def open(self, path):
        with self._lock:
            if not self.scripts:
                raise OSError(13, "Permission denied")
            handle = ScriptedHandle(PEDAL, self.scripts.pop(0))
            self.handles.append(handle)
            return handle


def _collect_until(manager, predicate, timeout=3.0):
    statuses, events = [], []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        statuses.extend(manager.drain_status())
        events.extend(manager.drain_events())
        if predicate(statuses, events):
            break
        time.sleep(0.01)
    return statuses, events


def _has_disconnect(statuses, _events):
    return any(s.kind == StatusKind.ERROR and s.disconnected for s in statuses)


def test_forwards_press_release_and_drops_autorepeat():
    backend = FakeBackend([PEDAL], scripts=[[[(289, 1), (289, 2), (289, 2), (289, 0)]]])
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=0.01)
    manager.start()
    try:
        statuses, events = _collect_until(manager, _has_disconnect)
    finally:
        manager.stop()

    assert events == [PedalEvent(289, 1), PedalEvent(289, 0)]
    kinds = [s.kind for s in statuses]
    assert kinds[:2] == [StatusKind.SCANNING, StatusKind.CONNECTED]
    assert statuses[1].describe() == "Connected: VEC USB Footpedal (0911:1844) /dev/input/event5"


def test_disconnect_closes_handle_and_rescans():
    backend = FakeBackend([PEDAL], scripts=[[[(288, 1)]], [[(288, 0)]]])
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=0.01)
    manager.start()
    try:
        _collect_until(manager, lambda s, e: len(backend.handles) >= 2 and backend.enumerate_calls >= 3)
    finally:
        manager.stop()

    assert len(backend.handles) == 2
    assert all(h.closed for h in backend.handles)
    assert backend.enumerate_calls >= 3


def test_enumeration_failure_reports_error_and_retries():
    backend = FakeBackend([], enumerate_error=PermissionError("/dev/input: permission denied"))
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=0.01)
    manager.start()
    try:
        statuses, _ = _collect_until(manager, lambda s, e: backend.enumerate_calls >= 3)
    finally:
        manager.stop()

    errors = [s for s in statuses if s.kind == StatusKind.ERROR]
    assert errors
    assert not errors[0].disconnected
    assert "permission denied" in errors[0].message


def test_stop_joins_thread_while_idle():
    backend = FakeBackend([])
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=5.0)
    manager.start()
    _collect_until(manager, lambda s, e: backend.enumerate_calls >= 1)
    started = time.monotonic()
    manager.stop(timeout=2.0)
    assert time.monotonic() - started < 2.0


def test_repeated_status_is_published_once():
    manager = PedalManager(CANDIDATES, backend=FakeBackend([]))
    manager._publish_status(PedalStatus.scanning())
    manager._publish_status(PedalStatus.scanning())
    manager._publish_status(PedalStatus.error("boom"))
    manager._publish_status(PedalStatus.error("boom"))
    manager._publish_status(PedalStatus.scanning())
    kinds = [s.kind for s in manager.drain_status()]
    assert kinds == [StatusKind.SCANNING, StatusKind.ERROR, StatusKind.SCANNING]


def test_full_event_queue_drops_instead_of_blocking():
    manager = PedalManager(CANDIDATES, backend=FakeBackend([]), queue_size=2)
    for value in (1, 0, 1, 0, 1):
        manager._emit_event(PedalEvent(288, value))
    assert manager.drain_events() == [PedalEvent(288, 1), PedalEvent(288, 0)]
    assert manager.drain_events() == []


def test_scan_once_uses_candidate_order():
    other = DeviceInfo("/dev/input/event2", "Other", 0x05F3, 0x00FF)
    backend = FakeBackend([other, PEDAL], scripts=[[]])
    manager = PedalManager(
        [VidPidCandidate(0x0911, 0x1844), VidPidCandidate(0x05F3, 0x00FF)], backend=backend
    )
    handle = manager.scan_once()
    assert handle is not None
    assert backend.handles == [handle]


class BrokenHandle(ScriptedHandle):
    def read_batch(self, timeout):
        raise RuntimeError("driver returned garbage")


def test_unexpected_enumeration_error_keeps_scanning():
    backend = FakeBackend([], enumerate_error=ValueError("weird"))
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=0.01)
    manager.start()
    try:
        statuses, _ = _collect_until(manager, lambda s, e: backend.enumerate_calls >= 3)
        assert manager._thread.is_alive()
    finally:
        manager.stop()

    assert backend.enumerate_calls >= 3
    errors = [s for s in statuses if s.kind == StatusKind.ERROR]
    assert errors
    assert "weird" in errors[0].message
    assert not errors[0].disconnected


def test_unexpected_read_error_reports_disconnect_and_rescans():
    backend = FakeBackend([PEDAL])
    backend.open = lambda path: backend.handles.append(BrokenHandle(PEDAL, [])) or backend.handles[-1]
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=0.01)
    manager.start()
    try:
        statuses, _ = _collect_until(
            manager, lambda s, e: _has_disconnect(s, e) and backend.enumerate_calls >= 2
        )
        assert manager._thread.is_alive()
    finally:
        manager.stop()

    disconnects = [s for s in statuses if s.kind == StatusKind.ERROR and s.disconnected]
    assert "driver returned garbage" in disconnects[0].message
    assert backend.handles[0].closed


def test_dead_handle_closed_before_backoff():
    backend = FakeBackend([PEDAL], scripts=[[]])
    manager = PedalManager(CANDIDATES, backend=backend, backoff_sec=5.0)
    manager.start()
    try:
        _collect_until(manager, _has_disconnect)
        # the scanner is now sleeping through the backoff
        assert backend.enumerate_calls == 1
        assert backend.handles[0].closed
    finally:
        manager.stop()
