from __future__ import annotations

import os
from typing import Optional

from PySide6 import QtCore, QtGui, QtWidgets

from audio.output import sd, _sounddevice_import_error
from config import AUDIO_EXTS, AppConfig
from controller import DictationController
from models import PlayerState
from pedal.devices import evdev, _evdev_import_error
from utils import have_exe
from ui.widgets import ArchiveChoice, ArchiveDialog, ErrorListWidget, TransportWidget


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, cfg: AppConfig, controller: Optional[DictationController] = None):
        super().__init__()
        self.setWindowTitle("Dictation Player")
        self.resize(720, 260)

        self.cfg = cfg
        self.controller = controller or DictationController(cfg, parent=self)
        self._last_dir = cfg.resolve_default_open_dir()

        self.transport = TransportWidget(
            cfg.application.rewind_seconds,
            cfg.application.forward_seconds,
            self.controller.speed_index,
        )
        self.errors = ErrorListWidget()

        self.file_label = QtWidgets.QLabel("No file selected")
        self.file_label.setObjectName("file_label")
        self.file_label.setWordWrap(True)
        file_font = self.file_label.font()
        file_font.setPointSize(file_font.pointSize() + 3)
        file_font.setBold(True)
        self.file_label.setFont(file_font)

        self.pedal_label = QtWidgets.QLabel(self.controller.pedal_status.describe())
        self.pedal_label.setObjectName("pedal_label")

        self.status = QtWidgets.QLabel("Ready.")
        self.status.setObjectName("status_label")
        status_bar = self.statusBar()
        status_bar.addWidget(self.status, 1)
        status_bar.addPermanentWidget(self.pedal_label)

        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)
        layout.addWidget(self.file_label)
        layout.addWidget(self.transport)
        layout.addWidget(self.errors)
        layout.addStretch(1)
        self.setCentralWidget(central)

        self.transport.openClicked.connect(self._open_file_dialog)
        self.transport.playPauseClicked.connect(self.controller.toggle_play_pause)
        self.transport.rewindClicked.connect(self.controller.rewind)
        self.transport.forwardClicked.connect(self.controller.forward)
        self.transport.archiveClicked.connect(self.controller.request_archive)
        self.transport.speedIndexChanged.connect(self.controller.set_speed_index)

        self.controller.fileChanged.connect(self._on_file_changed)
        self.controller.stateChanged.connect(self._on_state_changed)
        self.controller.timeChanged.connect(self.transport.set_time)
        self.controller.pedalStatusChanged.connect(self.pedal_label.setText)
        self.controller.errorOccurred.connect(self._on_error)
        # queued so the dialog never opens inside a pedal dispatch
        self.controller.archiveRequested.connect(
            self._on_archive_requested, QtCore.Qt.ConnectionType.QueuedConnection
        )

        # Shortcuts
        QtGui.QShortcut(QtGui.QKeySequence("Space"), self, activated=self.controller.toggle_play_pause)
        QtGui.QShortcut(QtGui.QKeySequence("Ctrl+O"), self, activated=self._open_file_dialog)
        QtGui.QShortcut(QtGui.QKeySequence("Ctrl+Left"), self, activated=self.controller.rewind)
        QtGui.QShortcut(QtGui.QKeySequence("Ctrl+Right"), self, activated=self.controller.forward)

        self._initial_warnings()
        self.controller.start()

    def _initial_warnings(self):
        warnings = []
        if sd is None:
            warnings.append(f"sounddevice missing ({_sounddevice_import_error})")
        if evdev is None:
            warnings.append(f"evdev missing ({_evdev_import_error})")
        if not have_exe("ffmpeg"):
            warnings.append("ffmpeg not found in PATH")
        if not have_exe("ffprobe"):
            warnings.append("ffprobe not found in PATH")

        self.status.setText(("Warning: " + " | ".join(warnings)) if warnings else "Ready.")

    # Files
    def _open_file_dialog(self):
        patterns = " ".join(f"*{ext}" for ext in AUDIO_EXTS)
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self,
            "Open recording",
            self._last_dir,
            f"Audio ({patterns});;All files (*)",
        )
        if not path:
            return
        self._last_dir = os.path.dirname(path)
        self.controller.open_file(path)

    # Controller signals
    def _on_file_changed(self, path: str):
        self.file_label.setText(self.controller.file_name())
        self.transport.set_loaded(bool(path))
        if path:
            self.status.setText(f"Loaded {os.path.basename(path)}")

    def _on_state_changed(self, st: PlayerState):
        self.transport.set_play_pause_state(st == PlayerState.PLAYING)
        if st == PlayerState.PLAYING:
            self.status.setText("Playing")
        elif st == PlayerState.PAUSED:
            self.status.setText("Paused")

    def _on_error(self, msg: str):
        self.errors.add_error(msg)

    def _on_archive_requested(self):
        if self.controller.current_file is None:
            return
        dialog = ArchiveDialog(self.controller.file_name(), self)
        dialog.exec()
        if dialog.choice == ArchiveChoice.CONTINUE:
            return
        if not self.controller.archive_current():
            return
        self.status.setText("Archived")
        if dialog.choice == ArchiveChoice.EXIT:
            self.close()

    def closeEvent(self, e: QtGui.QCloseEvent):
        self.controller.shutdown()
        super().closeEvent(e)
