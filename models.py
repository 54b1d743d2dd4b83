from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

import numpy as np


class DictationError(Exception):
    """Base class for every recoverable error raised by the player core."""


class DecodeError(DictationError):
    pass


class UnsupportedChannelsError(DecodeError):
    def __init__(self, channels: int):
        super().__init__(f"Unsupported channel count: {channels} (only mono/stereo supported)")
        self.channels = channels


class OutputUnavailableError(DictationError):
    pass


class PedalError(DictationError):
    pass


class ArchiveError(DictationError):
    pass


@dataclass(frozen=True)
class PcmBuffer:
    """
    Decoded recording, interleaved float32.

    samples: 1-D array of length total_samples (frames * channels)
    """

    samples: np.ndarray
    sample_rate: int
    channels: int

    def __post_init__(self) -> None:
        if self.channels not in (1, 2):
            raise UnsupportedChannelsError(self.channels)
        if self.sample_rate <= 0:
            raise DecodeError(f"Invalid sample rate: {self.sample_rate}")
        samples = np.ascontiguousarray(self.samples, dtype=np.float32).reshape(-1)
        if samples.shape[0] % self.channels != 0:
            raise DecodeError(
                f"Sample count {samples.shape[0]} is not a multiple of {self.channels} channels"
            )
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    @property
    def total_samples(self) -> int:
        return int(self.samples.shape[0])

    @property
    def total_frames(self) -> int:
        return self.total_samples // self.channels

    @property
    def duration_sec(self) -> float:
        return self.total_frames / float(self.sample_rate)

    def frames(self) -> np.ndarray:
        """(n, ch) read-only view of the samples."""
        return self.samples.reshape((-1, self.channels))


class PlayerState(Enum):
    EMPTY = auto()
    PAUSED = auto()
    PLAYING = auto()


class Button(Enum):
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


@dataclass(frozen=True)
class PedalEvent:
    code: int
    value: int  # 0=release, 1=press, 2=autorepeat


@dataclass(frozen=True)
class VidPidCandidate:
    vendor: int
    product: int

    def describe(self) -> str:
        return f"{self.vendor:04x}:{self.product:04x}"


@dataclass(frozen=True)
class PathCandidate:
    path: str

    def describe(self) -> str:
        return self.path


PedalCandidate = Union[VidPidCandidate, PathCandidate]


@dataclass(frozen=True)
class DeviceInfo:
    path: str
    name: str
    vendor: int
    product: int


class StatusKind(Enum):
    NOT_STARTED = auto()
    SCANNING = auto()
    CONNECTED = auto()
    ERROR = auto()


@dataclass(frozen=True)
class PedalStatus:
    kind: StatusKind
    name: str = ""
    path: str = ""
    vendor: int = 0
    product: int = 0
    message: str = ""
    disconnected: bool = False

    @classmethod
    def not_started(cls) -> "PedalStatus":
        return cls(StatusKind.NOT_STARTED)

    @classmethod
    def scanning(cls) -> "PedalStatus":
        return cls(StatusKind.SCANNING)

    @classmethod
    def connected(cls, info: DeviceInfo) -> "PedalStatus":
        return cls(
            StatusKind.CONNECTED,
            name=info.name,
            path=info.path,
            vendor=info.vendor,
            product=info.product,
        )

    @classmethod
    def error(cls, message: str, *, disconnected: bool = False) -> "PedalStatus":
        return cls(StatusKind.ERROR, message=message, disconnected=disconnected)

    def describe(self) -> str:
        if self.kind == StatusKind.NOT_STARTED:
            return "Not started"
        if self.kind == StatusKind.SCANNING:
            return "Scanning for pedal..."
        if self.kind == StatusKind.CONNECTED:
            return f"Connected: {self.name} ({self.vendor:04x}:{self.product:04x}) {self.path}"
        return f"Error: {self.message}"


@dataclass
class ButtonState:
    pressed: bool = False
    last_repeat: Optional[float] = None


@dataclass
class RoleMapping:
    left: int
    right: int
    middle: int

    def role_for(self, code: int) -> Optional[Button]:
        if code == self.right:
            return Button.RIGHT
        if code == self.left:
            return Button.LEFT
        if code == self.middle:
            return Button.MIDDLE
        return None

