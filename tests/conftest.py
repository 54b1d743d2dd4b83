"""Shared pytest configuration and fixtures for the dictation player tests."""

import os
import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from models import OutputUnavailableError, PcmBuffer  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSink:
    def __init__(self, sample_rate: int, channels: int):
        self.sample_rate = sample_rate
        self.channels = channels
        self.sources = []
        self.playing = False
        self.stopped = False
        self.fail_on_play = False

    def append(self, source) -> None:
        self.sources.append(source)

    def play(self) -> None:
        if self.fail_on_play:
            raise OutputUnavailableError("device busy")
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def stop(self) -> None:
        self.playing = False
        self.stopped = True

    def is_playing(self) -> bool:
        return self.playing


class FakeOutput:
    """Sink factory recording every sink it hands out."""

    def __init__(self):
        self.sinks: list[FakeSink] = []
        self.fail_create = False
        self.fail_play = False

    def create_sink(self, sample_rate: int, channels: int) -> FakeSink:
        if self.fail_create:
            raise OutputUnavailableError("no output device")
        sink = FakeSink(sample_rate, channels)
        sink.fail_on_play = self.fail_play
        self.sinks.append(sink)
        return sink

    def live_sinks(self) -> list[FakeSink]:
        return [s for s in self.sinks if not s.stopped]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def qapp():
    from PySide6 import QtWidgets

    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    return app


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def output():
    return FakeOutput()


def make_buffer(frames: int, sample_rate: int = 10, channels: int = 1) -> PcmBuffer:
    samples = np.arange(frames * channels, dtype=np.float32)
    return PcmBuffer(samples=samples, sample_rate=sample_rate, channels=channels)


@pytest.fixture()
def ten_second_buffer():
    """Mono, 10 Hz, 10 s: one sample per 0.1 s."""
    return make_buffer(100, sample_rate=10, channels=1)
