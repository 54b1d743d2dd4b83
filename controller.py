from __future__ import annotations

import logging
import os
import time
from typing import Callable, Optional

from PySide6 import QtCore

from archive import archive_file
from audio.decoder import decode_file
from audio.output import AudioOutput
from audio.transport import SinkFactory, Transport
from config import DEFAULT_SPEED_INDEX, SPEED_PRESETS, UI_TICK_MS, AppConfig
from models import ArchiveError, DecodeError, DictationError, PcmBuffer, PedalStatus, StatusKind
from pedal.dispatcher import PedalDispatcher
from pedal.manager import PedalManager

logger = logging.getLogger(__name__)


class DictationController(QtCore.QObject):
    """
    Application core driven by the UI thread.

    A QTimer tick drains the pedal queues, runs hold-repeat, detects the
    end of the recording and publishes the position readout.
    """

    fileChanged = QtCore.Signal(str)         # "" when nothing is loaded
    stateChanged = QtCore.Signal(object)     # PlayerState
    positionChanged = QtCore.Signal(int, int)  # current frames, total frames
    timeChanged = QtCore.Signal(float, float)  # position, duration in seconds
    pedalStatusChanged = QtCore.Signal(str)
    archiveRequested = QtCore.Signal()
    errorOccurred = QtCore.Signal(str)

    def __init__(
        self,
        cfg: AppConfig,
        output: Optional[SinkFactory] = None,
        pedal: Optional[PedalManager] = None,
        decoder: Callable[[str], PcmBuffer] = decode_file,
        clock: Callable[[], float] = time.monotonic,
        parent=None,
    ):
        super().__init__(parent)
        self.cfg = cfg
        self._decoder = decoder
        self.transport = Transport(output or AudioOutput(), clock=clock, parent=self)
        self.pedal = pedal or PedalManager(cfg.pedal_candidates())
        self.dispatcher = PedalDispatcher(
            self.transport,
            cfg.role_mapping(),
            cfg.application,
            clock=clock,
            parent=self,
        )
        self.current_file: Optional[str] = None
        self.speed_index = DEFAULT_SPEED_INDEX
        self.pedal_status = PedalStatus.not_started()

        self.transport.stateChanged.connect(self.stateChanged)
        self.dispatcher.archiveRequested.connect(self.archiveRequested)
        self.dispatcher.errorOccurred.connect(self.errorOccurred)

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(UI_TICK_MS)
        self._timer.timeout.connect(self.tick)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self.pedal.start()
        self._timer.start()

    def shutdown(self) -> None:
        self._timer.stop()
        self.pedal.stop()
        self.transport.unload()

    def tick(self) -> None:
        for status in self.pedal.drain_status():
            self._on_pedal_status(status)
        for event in self.pedal.drain_events():
            self.dispatcher.handle_event(event)
        self.dispatcher.tick()
        self.transport.clamp_at_end()
        current, total = self.transport.position_snapshot()
        self.positionChanged.emit(current, total)
        self.timeChanged.emit(*self.transport.position_seconds())

    def _on_pedal_status(self, status: PedalStatus) -> None:
        self.pedal_status = status
        self.pedalStatusChanged.emit(status.describe())
        if status.kind != StatusKind.ERROR:
            return
        if status.disconnected:
            self.transport.pause()
            self.dispatcher.release_all()
            self.errorOccurred.emit("Pedal disconnected")
        else:
            self.errorOccurred.emit(f"Pedal error: {status.message}")

    # -- file handling -----------------------------------------------------

    def open_file(self, path: str) -> bool:
        try:
            buffer = self._decoder(path)
        except DecodeError as e:
            logger.error("Open failed for %s: %s", path, e)
            self.errorOccurred.emit(f"Open failed: {e}")
            return False
        self.transport.load(buffer)
        self.transport.set_speed(SPEED_PRESETS[self.speed_index])
        self.current_file = path
        logger.info("Opened %s", path)
        self.fileChanged.emit(path)
        return True

    def unload(self) -> None:
        self.transport.unload()
        self.current_file = None
        self.fileChanged.emit("")

    def file_name(self) -> str:
        if self.current_file is None:
            return "No file selected"
        return os.path.basename(self.current_file)

    # -- playback ----------------------------------------------------------

    def _guarded(self, action: Callable[[], object]) -> bool:
        try:
            action()
        except DictationError as e:
            logger.error("Playback error: %s", e)
            self.errorOccurred.emit(str(e))
            return False
        return True

    def toggle_play_pause(self) -> None:
        if not self.transport.is_loaded:
            return
        if self.transport.is_playing():
            self.transport.pause()
        else:
            self._guarded(self.transport.resume)

    def seek_relative(self, seconds: float) -> None:
        if self.transport.is_loaded:
            self._guarded(lambda: self.transport.seek(seconds))

    def rewind(self) -> None:
        self.seek_relative(-float(self.cfg.application.rewind_seconds))

    def forward(self) -> None:
        self.seek_relative(float(self.cfg.application.forward_seconds))

    def set_speed_index(self, index: int) -> None:
        if not 0 <= index < len(SPEED_PRESETS):
            return
        self.speed_index = index
        self._guarded(lambda: self.transport.set_speed(SPEED_PRESETS[index]))

    # -- archiving ---------------------------------------------------------

    def request_archive(self) -> None:
        self.transport.pause()
        self.archiveRequested.emit()

    def archive_current(self) -> bool:
        if self.current_file is None:
            self.errorOccurred.emit("No file to archive")
            return False
        self.transport.pause()
        try:
            archive_file(self.current_file, self.cfg.paths.archive_dir)
        except ArchiveError as e:
            logger.error("Archive failed: %s", e)
            self.errorOccurred.emit(f"Archive failed: {e}")
            return False
        self.unload()
        return True
