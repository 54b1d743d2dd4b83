from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List

import numpy as np

from models import DecodeError, PcmBuffer, UnsupportedChannelsError
from utils import have_exe, safe_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamInfo:
    sample_rate: int
    channels: int
    codec: str = ""


def make_ffprobe_cmd(path: str) -> List[str]:
    return [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "a:0",
        "-print_format",
        "json",
        "-show_entries",
        "stream=codec_name,sample_rate,channels",
        path,
    ]


def make_ffmpeg_cmd(path: str, sample_rate: int, channels: int) -> List[str]:
    return [
        "ffmpeg", "-hide_banner", "-loglevel", "error",
        "-i", path,
        "-vn",
        "-map", "0:a:0",
        "-ac", str(channels),
        "-ar", str(sample_rate),
        "-f", "f32le",
        "pipe:1"
    ]


def parse_probe_output(text: str) -> StreamInfo:
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        raise DecodeError(f"Probe failed: {e}") from e
    streams = data.get("streams", []) or []
    if not streams:
        raise DecodeError("No supported audio track found")
    stream = streams[0]
    sample_rate = safe_int(stream.get("sample_rate"), 0)
    channels = safe_int(stream.get("channels"), 0)
    if sample_rate <= 0:
        raise DecodeError("Missing sample rate")
    if channels == 0:
        raise DecodeError("Zero channels")
    if channels > 2:
        raise UnsupportedChannelsError(channels)
    return StreamInfo(sample_rate=sample_rate, channels=channels, codec=str(stream.get("codec_name", "")))


def probe_stream(path: str) -> StreamInfo:
    if not have_exe("ffprobe"):
        raise DecodeError("ffprobe not found in PATH.")
    try:
        p = subprocess.run(make_ffprobe_cmd(path), capture_output=True, text=True, check=False)
    except OSError as e:
        raise DecodeError(f"Failed to start ffprobe: {e}") from e
    if p.returncode != 0:
        detail = (p.stderr or "").strip().splitlines()
        raise DecodeError(f"Probe failed: {detail[-1] if detail else 'ffprobe exited with ' + str(p.returncode)}")
    return parse_probe_output(p.stdout)


def pcm_from_bytes(raw: bytes, sample_rate: int, channels: int) -> PcmBuffer:
    """Wrap raw f32le output; a trailing partial frame is dropped."""
    frame_bytes = 4 * channels
    usable = len(raw) - (len(raw) % frame_bytes)
    if usable <= 0:
        raise DecodeError("No audio decoded")
    samples = np.frombuffer(raw[:usable], dtype="<f4").astype(np.float32, copy=False)
    return PcmBuffer(samples=samples, sample_rate=sample_rate, channels=channels)


def decode_file(path: str) -> PcmBuffer:
    """
    Decode a whole file into memory as interleaved float32 PCM.

    The stream keeps its native rate and channel layout; anything beyond
    stereo is rejected rather than downmixed.
    """
    if not path or not os.path.isfile(path):
        raise DecodeError(f"Failed to open file: {path}")
    if not have_exe("ffmpeg"):
        raise DecodeError("ffmpeg not found in PATH.")

    info = probe_stream(path)
    try:
        p = subprocess.run(
            make_ffmpeg_cmd(path, info.sample_rate, info.channels),
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise DecodeError(f"Failed to start ffmpeg: {e}") from e
    if p.returncode != 0:
        detail = p.stderr.decode("utf-8", errors="ignore").strip().splitlines()
        if not p.stdout:
            raise DecodeError(f"Decode error: {detail[-1] if detail else 'ffmpeg failed'}")
        # ffmpeg skips corrupt packets and still returns what it could decode
        logger.error("Decode error (keeping decoded audio): %s", detail[-1] if detail else p.returncode)

    buf = pcm_from_bytes(p.stdout, info.sample_rate, info.channels)
    logger.info(
        "Decoded: sr=%d Hz, ch=%d, frames=%d, seconds=%.3f",
        buf.sample_rate,
        buf.channels,
        buf.total_frames,
        buf.duration_sec,
    )
    return buf
