from __future__ import annotations

import logging
import queue
import threading
from typing import Optional, Sequence

from config import PEDAL_BACKOFF_SEC, PEDAL_QUEUE_SIZE
from models import PedalCandidate, PedalError, PedalEvent, PedalStatus
from pedal.devices import DeviceBackend, EvdevBackend, PedalHandle
from pedal.discovery import discover

logger = logging.getLogger(__name__)

READ_POLL_SEC = 0.25


class PedalManager:
    """
    Background scanner + reader for the foot pedal.

    Scans for a device matching the candidate list, forwards its key
    transitions, and starts over from the top of the list whenever the
    device goes away. Status and events go out on two separate bounded
    queues; a full queue drops the message instead of blocking the scanner.
    """

    def __init__(
        self,
        candidates: Sequence[PedalCandidate],
        backend: Optional[DeviceBackend] = None,
        backoff_sec: float = PEDAL_BACKOFF_SEC,
        queue_size: int = PEDAL_QUEUE_SIZE,
    ):
        self._candidates = tuple(candidates)
        self._backend = backend or EvdevBackend()
        self._backoff_sec = backoff_sec
        self._status_q: queue.Queue[PedalStatus] = queue.Queue(maxsize=queue_size)
        self._event_q: queue.Queue[PedalEvent] = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_status = PedalStatus.not_started()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pedal-manager", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def drain_status(self) -> list[PedalStatus]:
        return self._drain(self._status_q)

    def drain_events(self) -> list[PedalEvent]:
        return self._drain(self._event_q)

    @staticmethod
    def _drain(q: queue.Queue) -> list:
        items = []
        while True:
            try:
                items.append(q.get_nowait())
            except queue.Empty:
                return items

    def _publish_status(self, status: PedalStatus) -> None:
        if status == self._last_status:
            return
        self._last_status = status
        try:
            self._status_q.put_nowait(status)
        except queue.Full:
            logger.debug("Status queue full; dropped %s", status.kind.name)

    def _emit_event(self, event: PedalEvent) -> None:
        try:
            self._event_q.put_nowait(event)
        except queue.Full:
            logger.warning("Pedal event queue full; dropped code=%d value=%d", event.code, event.value)

    def scan_once(self) -> Optional[PedalHandle]:
        """One discovery pass; raises if enumeration fails."""
        devices = self._backend.enumerate()
        return discover(self._candidates, devices, self._backend.open)

    def _run(self) -> None:
        logger.info(
            "Pedal scan started; candidates: %s",
            ", ".join(c.describe() for c in self._candidates) or "none",
        )
        while not self._stop.is_set():
            self._publish_status(PedalStatus.scanning())
            try:
                handle = self.scan_once()
            except (OSError, PedalError) as e:
                logger.warning("Pedal enumeration failed: %s", e)
                self._publish_status(PedalStatus.error(str(e)))
                self._stop.wait(self._backoff_sec)
                continue
            except Exception as e:
                logger.exception("Unexpected error while scanning for pedal")
                self._publish_status(PedalStatus.error(f"Pedal scan failed: {e}"))
                self._stop.wait(self._backoff_sec)
                continue

            if handle is None:
                self._stop.wait(self._backoff_sec)
                continue

            info = handle.info
            logger.info("Pedal connected: %s @ %s", info.name, info.path)
            self._publish_status(PedalStatus.connected(info))
            try:
                self._read_loop(handle)
            except (OSError, PedalError) as e:
                logger.warning("Pedal disconnected or error: %s", e)
                self._disconnect(handle, f"Pedal disconnected: {e}")
            except Exception as e:
                logger.exception("Unexpected error while reading pedal %s", info.path)
                self._disconnect(handle, f"Pedal read failed: {e}")
            else:
                handle.close()
        logger.info("Pedal scan stopped")

    def _disconnect(self, handle: PedalHandle, message: str) -> None:
        # release the dead node before sleeping
        handle.close()
        self._publish_status(PedalStatus.error(message, disconnected=True))
        self._stop.wait(self._backoff_sec)

    def _read_loop(self, handle: PedalHandle) -> None:
        while not self._stop.is_set():
            for code, value in handle.read_batch(READ_POLL_SEC):
                # 2 is kernel autorepeat while a pedal stays down
                if value not in (0, 1):
                    continue
                self._emit_event(PedalEvent(code=code, value=value))
