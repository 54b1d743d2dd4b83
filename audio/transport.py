from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional, Protocol

from PySide6 import QtCore

from audio.source import ResampledSource
from config import MAX_SPEED, MIN_SPEED
from models import PcmBuffer, PlayerState
from utils import clamp

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def append(self, source: ResampledSource) -> None: ...
    def play(self) -> None: ...
    def pause(self) -> None: ...
    def stop(self) -> None: ...
    def is_playing(self) -> bool: ...


class SinkFactory(Protocol):
    def create_sink(self, sample_rate: int, channels: int) -> Sink: ...


def normalize_speed(factor: float) -> float:
    try:
        factor = float(factor)
    except (TypeError, ValueError):
        return 1.0
    if math.isnan(factor):
        return MIN_SPEED
    return clamp(factor, MIN_SPEED, MAX_SPEED)


class Transport(QtCore.QObject):
    """
    Owns the playback position of the loaded recording.

    While running, the position is extrapolated from the (index, time) pair
    captured when the current sink was bound:

        index = start_index + floor(elapsed * sample_rate * speed * channels)

    Every seek, speed change or resume tears the old sink down before a new
    one is created, so at most one source feeds the device at any time.
    Only the UI thread calls into a Transport.
    """

    stateChanged = QtCore.Signal(object)    # PlayerState
    durationChanged = QtCore.Signal(float)

    def __init__(
        self,
        output: SinkFactory,
        clock: Callable[[], float] = time.monotonic,
        parent=None,
    ):
        super().__init__(parent)
        self._output = output
        self._clock = clock
        self.buffer: Optional[PcmBuffer] = None
        self.speed = 1.0
        self.state = PlayerState.EMPTY
        self._running = False
        self._sink: Optional[Sink] = None
        self._resting_index = 0
        self._start_index = 0
        self._start_time = 0.0

    # -- lifecycle ---------------------------------------------------------

    def load(self, buffer: PcmBuffer) -> None:
        self._release_sink()
        self.buffer = buffer
        self.speed = 1.0
        self._running = False
        self._resting_index = 0
        self._start_index = 0
        self._start_time = 0.0
        self._set_state(PlayerState.PAUSED)
        self.durationChanged.emit(buffer.duration_sec)

    def unload(self) -> None:
        self._release_sink()
        self.buffer = None
        self._running = False
        self._resting_index = 0
        self._set_state(PlayerState.EMPTY)
        self.durationChanged.emit(0.0)

    @property
    def is_loaded(self) -> bool:
        return self.buffer is not None

    def is_playing(self) -> bool:
        return self._running

    # -- position ----------------------------------------------------------

    def _estimate_index(self) -> int:
        if self.buffer is None:
            return 0
        if not self._running:
            return self._resting_index
        elapsed = max(0.0, self._clock() - self._start_time)
        buf = self.buffer
        delta = math.floor(elapsed * buf.sample_rate * self.speed * buf.channels)
        return min(self._start_index + delta, buf.total_samples)

    def current_index(self) -> int:
        return self._estimate_index()

    def position_snapshot(self) -> tuple[int, int]:
        """(current_frames, total_frames); never commits the estimate."""
        if self.buffer is None:
            return 0, 0
        return self._estimate_index() // self.buffer.channels, self.buffer.total_frames

    def position_seconds(self) -> tuple[float, float]:
        if self.buffer is None:
            return 0.0, 0.0
        frames, total = self.position_snapshot()
        rate = float(self.buffer.sample_rate)
        return frames / rate, total / rate

    def _clamp_index(self, index: int) -> int:
        return int(clamp(int(index), 0, self.buffer.total_samples))

    # -- operations --------------------------------------------------------

    def play_from(self, index: int) -> None:
        if self.buffer is None:
            logger.debug("play_from ignored: nothing loaded")
            return
        self._bind(self._clamp_index(index), fallback=self._estimate_index())

    def play(self) -> None:
        self.resume()

    def resume(self) -> None:
        if self.buffer is None:
            return
        self.play_from(self._resting_index if not self._running else self._estimate_index())

    def pause(self) -> None:
        if not self._running:
            return
        self._resting_index = self._estimate_index()
        self._release_sink()
        self._running = False
        self._set_state(PlayerState.PAUSED)

    def seek(self, delta_seconds: float) -> int:
        if self.buffer is None:
            return 0
        base = self._estimate_index()
        delta_seconds = float(delta_seconds)
        if not math.isfinite(delta_seconds):
            logger.warning("Ignoring non-finite seek of %r seconds", delta_seconds)
            return base
        buf = self.buffer
        delta = math.floor(delta_seconds * buf.sample_rate * buf.channels)
        target = self._clamp_index(base + delta)
        if self._running:
            self._bind(target, fallback=base)
        else:
            self._resting_index = target
        return target

    def set_speed(self, factor: float) -> float:
        speed = normalize_speed(factor)
        if speed != factor:
            logger.debug("Speed %r normalized to %.2f", factor, speed)
        if self._running and self.buffer is not None:
            index = self._estimate_index()
            self.speed = speed
            self._bind(index, fallback=index)
        else:
            self.speed = speed
        return self.speed

    def clamp_at_end(self) -> bool:
        """Pause once the extrapolated position reaches the end of the buffer."""
        if self.buffer is None or not self._running:
            return False
        if self._estimate_index() < self.buffer.total_samples:
            return False
        self.pause()
        self._resting_index = self.buffer.total_samples
        logger.info("End of recording reached")
        return True

    # -- sink binding ------------------------------------------------------

    def _release_sink(self) -> None:
        sink, self._sink = self._sink, None
        if sink is not None:
            sink.stop()

    def _bind(self, index: int, *, fallback: int) -> None:
        buf = self.buffer
        self._release_sink()
        self._running = False
        self._resting_index = fallback
        sink: Optional[Sink] = None
        try:
            sink = self._output.create_sink(buf.sample_rate, buf.channels)
            sink.append(ResampledSource(buf, index, self.speed))
            sink.play()
        except Exception:
            if sink is not None:
                sink.stop()
            self._set_state(PlayerState.PAUSED)
            raise
        self._sink = sink
        self._resting_index = index
        self._start_index = index
        self._start_time = self._clock()
        self._running = True
        self._set_state(PlayerState.PLAYING)

    def _set_state(self, st: PlayerState):
        if self.state != st:
            self.state = st
            self.stateChanged.emit(st)
