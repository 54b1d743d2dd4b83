from __future__ import annotations

import math

import numpy as np

from models import PcmBuffer


class ResampledSource:
    """
    Pull-based, speed-scaled reader over a PcmBuffer.

    The cursor is a fractional frame position that advances by `speed`
    source frames per emitted frame; in-between positions are linearly
    interpolated per channel. Output is always at the buffer's sample rate.

    speed == 1.0 => samples are returned verbatim
    speed  > 1.0 => faster (and higher)
    speed  < 1.0 => slower (and lower)

    Iterating yields interleaved float samples; read(n) returns (n, ch)
    float32 blocks for the audio callback. A source is consumed one way or
    the other, not both.
    """

    def __init__(self, buffer: PcmBuffer, start_index: int, speed: float):
        if not math.isfinite(speed) or speed <= 0.0:
            raise ValueError(f"speed must be positive, got {speed!r}")
        self.channels = buffer.channels
        self.sample_rate = buffer.sample_rate
        self.speed = float(speed)
        self._frames = buffer.frames()
        self._total_frames = buffer.total_frames
        start_index = min(max(0, int(start_index)), buffer.total_samples)
        self._cursor = float(start_index // self.channels)
        self._pending: list[float] = []

    @property
    def cursor(self) -> float:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return not self._pending and self._cursor >= self._total_frames

    def remaining_frames(self) -> int:
        left = self._total_frames - self._cursor
        if left <= 0:
            return 0
        return int(math.ceil(left / self.speed))

    def _interpolate(self, positions: np.ndarray) -> np.ndarray:
        i0 = np.floor(positions).astype(np.int64)
        frac = (positions - i0).astype(np.float32)[:, None]
        # Past the last frame, the "next" frame is the last frame itself.
        i1 = np.minimum(i0 + 1, self._total_frames - 1)
        out = self._frames[i0] * (1.0 - frac) + self._frames[i1] * frac
        return out.astype(np.float32, copy=False)

    def read(self, frames: int) -> np.ndarray:
        if frames <= 0:
            return np.zeros((0, self.channels), dtype=np.float32)

        if self._cursor < self._total_frames:
            positions = self._cursor + self.speed * np.arange(frames, dtype=np.float64)
            count = int(np.searchsorted(positions, self._total_frames, side="left"))
            if count > 0:
                out = self._interpolate(positions[:count])
                self._cursor += self.speed * count
                return out
        return np.zeros((0, self.channels), dtype=np.float32)

    def __iter__(self):
        return self

    def __next__(self) -> float:
        if not self._pending:
            if self._cursor >= self._total_frames:
                raise StopIteration
            frame = self._interpolate(np.array([self._cursor], dtype=np.float64))[0]
            self._cursor += self.speed
            self._pending = [float(v) for v in frame]
        return self._pending.pop(0)
