from types import SimpleNamespace

import numpy as np
import pytest

from audio import output as output_module
from audio.output import AudioOutput, SoundDeviceSink
from audio.source import ResampledSource
from models import OutputUnavailableError, PcmBuffer


class FakeStream:
    def __init__(self, samplerate, channels, dtype, blocksize, latency, device, callback):
        self.samplerate = samplerate
        self.channels = channels
        self.callback = callback
        self.active = False
        self.aborted = False
        self.closed = False

    def start(self):
        self.active = True

    def abort(self):
        self.active = False
        self.aborted = True

    def close(self):
        self.closed = True

    def pull(self, frames):
        out = np.full((frames, self.channels), 9.0, dtype=np.float32)
        self.callback(out, frames, None, None)
        return out


@pytest.fixture()
def fake_sd(monkeypatch):
    streams = []

    def make_stream(**kwargs):
        stream = FakeStream(**kwargs)
        streams.append(stream)
        return stream

    monkeypatch.setattr(output_module, "sd", SimpleNamespace(OutputStream=make_stream))
    return streams


def _source(frames=4, channels=2):
    buf = PcmBuffer(np.arange(frames * channels, dtype=np.float32), 8000, channels)
    return ResampledSource(buf, 0, 1.0)


def test_callback_pulls_from_source_and_zero_fills(fake_sd):
    sink = AudioOutput().create_sink(8000, 2)
    sink.append(_source())
    sink.play()
    stream = fake_sd[0]
    assert stream.active

    block = stream.pull(3)
    assert block[:, 0].tolist() == [0.0, 2.0, 4.0]
    assert sink.is_playing()

    block = stream.pull(3)
    assert block.tolist() == [[6.0, 7.0], [0.0, 0.0], [0.0, 0.0]]
    assert not sink.is_playing()


def test_paused_sink_outputs_silence(fake_sd):
    sink = SoundDeviceSink(8000, 2)
    sink.append(_source())
    sink.play()
    sink.pause()
    assert not fake_sd[0].pull(2).any()


def test_stop_closes_stream_once(fake_sd):
    sink = SoundDeviceSink(8000, 2)
    sink.play()
    sink.stop()
    sink.stop()
    assert fake_sd[0].aborted
    assert fake_sd[0].closed
    assert not sink.is_playing()


def test_channel_mismatch_rejected(fake_sd):
    sink = SoundDeviceSink(8000, 1)
    with pytest.raises(ValueError):
        sink.append(_source(channels=2))


def test_missing_sounddevice_is_reported(monkeypatch):
    monkeypatch.setattr(output_module, "sd", None)
    with pytest.raises(OutputUnavailableError):
        AudioOutput().create_sink(8000, 1)


def test_stream_open_failure_is_reported(monkeypatch):
    def broken(**kwargs):
        raise RuntimeError("Error querying device -1")

    monkeypatch.setattr(output_module, "sd", SimpleNamespace(OutputStream=broken))
    with pytest.raises(OutputUnavailableError, match="Audio output error"):
        SoundDeviceSink(44100, 2)
