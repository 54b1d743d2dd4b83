from __future__ import annotations

import logging
import select
from typing import Protocol

try:
    import evdev
    from evdev import ecodes
    _evdev_import_error = None
except Exception as e:
    evdev = None
    ecodes = None
    _evdev_import_error = e

from models import DeviceInfo, PedalError

logger = logging.getLogger(__name__)


class PedalHandle(Protocol):
    info: DeviceInfo

    def read_batch(self, timeout: float) -> list[tuple[int, int]]: ...
    def close(self) -> None: ...


class DeviceBackend(Protocol):
    def enumerate(self) -> list[DeviceInfo]: ...
    def open(self, path: str) -> PedalHandle: ...


def _require_evdev() -> None:
    if evdev is None:
        raise PedalError(f"evdev not available: {_evdev_import_error}")


def _device_info(device) -> DeviceInfo:
    return DeviceInfo(
        path=str(device.path),
        name=device.name or "Unknown",
        vendor=int(device.info.vendor),
        product=int(device.info.product),
    )


class EvdevPedal:
    """An opened /dev/input/event* node; only key events are reported."""

    def __init__(self, device):
        self._device = device
        self.info = _device_info(device)

    def read_batch(self, timeout: float) -> list[tuple[int, int]]:
        """
        Wait up to `timeout` for input and return the key events read.

        Raises OSError once the device is gone.
        """
        readable, _, _ = select.select([self._device.fd], [], [], timeout)
        if not readable:
            return []
        try:
            events = list(self._device.read())
        except BlockingIOError:
            return []
        return [(ev.code, ev.value) for ev in events if ev.type == ecodes.EV_KEY]

    def close(self) -> None:
        try:
            self._device.close()
        except OSError as e:
            logger.debug("Closing %s failed: %s", self.info.path, e)


class EvdevBackend:
    def enumerate(self) -> list[DeviceInfo]:
        _require_evdev()
        infos: list[DeviceInfo] = []
        for path in evdev.list_devices():
            try:
                device = evdev.InputDevice(path)
            except OSError as e:
                logger.debug("Cannot inspect %s: %s", path, e)
                continue
            try:
                infos.append(_device_info(device))
            finally:
                device.close()
        return infos

    def open(self, path: str) -> EvdevPedal:
        _require_evdev()
        return EvdevPedal(evdev.InputDevice(path))
