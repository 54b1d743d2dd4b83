from __future__ import annotations

import logging
import threading
from typing import Optional

try:
    import sounddevice as sd
    _sounddevice_import_error = None
except Exception as e:
    sd = None
    _sounddevice_import_error = e

from audio.source import ResampledSource
from models import OutputUnavailableError

logger = logging.getLogger(__name__)


class SoundDeviceSink:
    """
    One playable binding on the audio device.

    Owns a sounddevice OutputStream whose callback pulls blocks from the
    appended source. Once the source runs dry the rest of the block is
    silence and the sink reports itself finished.
    """

    def __init__(
        self,
        sample_rate: int,
        channels: int,
        device: Optional[int] = None,
        blocksize: int = 1024,
        latency: str | float = "low",
    ):
        if sd is None:
            raise OutputUnavailableError(f"sounddevice not available: {_sounddevice_import_error}")
        self.sample_rate = sample_rate
        self.channels = channels
        self._lock = threading.Lock()
        self._source: Optional[ResampledSource] = None
        self._paused = True
        self._finished = False
        self._closed = False
        try:
            self._stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="float32",
                blocksize=blocksize,
                latency=latency,
                device=device,
                callback=self._callback,
            )
        except Exception as e:
            raise OutputUnavailableError(f"Audio output error: {e}") from e

    def _callback(self, outdata, frames, time_info, status):
        if status and getattr(status, "output_underflow", False):
            logger.debug("Output underflow")
        with self._lock:
            source = self._source
            if source is None or self._paused or self._finished:
                outdata.fill(0)
                return
            block = source.read(frames)
            filled = block.shape[0]
            if filled:
                outdata[:filled] = block
            if filled < frames:
                outdata[filled:].fill(0)
                self._finished = True

    def append(self, source: ResampledSource) -> None:
        if source.channels != self.channels:
            raise ValueError(f"source has {source.channels} channels, sink has {self.channels}")
        with self._lock:
            self._source = source
            self._finished = False

    def play(self) -> None:
        with self._lock:
            self._paused = False
        try:
            if not self._stream.active:
                self._stream.start()
        except Exception as e:
            self.stop()
            raise OutputUnavailableError(f"Audio output error: {e}") from e

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def stop(self) -> None:
        with self._lock:
            self._source = None
            self._paused = True
            if self._closed:
                return
            self._closed = True
        try:
            self._stream.abort()
            self._stream.close()
        except Exception as e:
            logger.debug("Closing output stream failed: %s", e)

    def is_playing(self) -> bool:
        with self._lock:
            return not self._paused and not self._finished and self._source is not None


class AudioOutput:
    """Factory for sinks bound to the process audio device."""

    def __init__(
        self,
        device: Optional[int] = None,
        blocksize: int = 1024,
        latency: str | float = "low",
    ):
        self.device = device
        self.blocksize = blocksize
        self.latency = latency

    def create_sink(self, sample_rate: int, channels: int) -> SoundDeviceSink:
        return SoundDeviceSink(
            sample_rate,
            channels,
            device=self.device,
            blocksize=self.blocksize,
            latency=self.latency,
        )
