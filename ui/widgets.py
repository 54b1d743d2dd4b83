from __future__ import annotations

from enum import Enum

from PySide6 import QtCore, QtWidgets

from config import MAX_VISIBLE_ERRORS, SPEED_PRESETS
from utils import clamp, format_clock

# UI Widgets
# -----------------------------


class TransportWidget(QtWidgets.QWidget):
    openClicked = QtCore.Signal()
    playPauseClicked = QtCore.Signal()
    rewindClicked = QtCore.Signal()
    forwardClicked = QtCore.Signal()
    archiveClicked = QtCore.Signal()
    speedIndexChanged = QtCore.Signal(int)

    def __init__(self, rewind_seconds: int, forward_seconds: int, speed_index: int, parent=None):
        super().__init__(parent)

        self.open_btn = QtWidgets.QPushButton("Open")
        self.play_pause_btn = QtWidgets.QPushButton("Play")
        self.rewind_btn = QtWidgets.QPushButton(f"<< {rewind_seconds}s")
        self.forward_btn = QtWidgets.QPushButton(f"{forward_seconds}s >>")
        self.archive_btn = QtWidgets.QPushButton("Archive")
        for button in (self.play_pause_btn, self.rewind_btn, self.forward_btn):
            button.setMinimumSize(72, 32)
        self.open_btn.setToolTip("Open a recording (Ctrl+O).")
        self.play_pause_btn.setToolTip("Play/Pause (Space).")
        self.play_pause_btn.setAccessibleName("Play/Pause")
        self.rewind_btn.setToolTip("Rewind (Ctrl+Left).")
        self.rewind_btn.setAccessibleName("Rewind")
        self.forward_btn.setToolTip("Forward (Ctrl+Right).")
        self.forward_btn.setAccessibleName("Forward")
        self.archive_btn.setToolTip("Move the recording into the archive.")

        self.speed_combo = QtWidgets.QComboBox()
        for factor in SPEED_PRESETS:
            self.speed_combo.addItem(f"{factor:.2f}x")
        self.speed_combo.setCurrentIndex(speed_index)
        self.speed_combo.setToolTip("Playback speed.")
        self.speed_combo.setAccessibleName("Speed")

        self.progress = QtWidgets.QProgressBar()
        self.progress.setRange(0, 1000)
        self.progress.setValue(0)
        self.progress.setTextVisible(False)

        self.time_label = QtWidgets.QLabel(format_clock(0.0, 0.0))
        self.time_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter)

        btns = QtWidgets.QHBoxLayout()
        for b in [self.open_btn, self.rewind_btn, self.play_pause_btn, self.forward_btn]:
            btns.addWidget(b)
        btns.addStretch(1)
        btns.addWidget(QtWidgets.QLabel("Speed"))
        btns.addWidget(self.speed_combo)
        btns.addWidget(self.archive_btn)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addLayout(btns)

        progress_row = QtWidgets.QHBoxLayout()
        progress_row.addWidget(self.progress, 1)
        progress_row.addWidget(self.time_label)
        layout.addLayout(progress_row)

        self.open_btn.clicked.connect(self.openClicked)
        self.play_pause_btn.clicked.connect(self.playPauseClicked)
        self.rewind_btn.clicked.connect(self.rewindClicked)
        self.forward_btn.clicked.connect(self.forwardClicked)
        self.archive_btn.clicked.connect(self.archiveClicked)
        self.speed_combo.currentIndexChanged.connect(self.speedIndexChanged)

        self.set_loaded(False)

    def set_loaded(self, loaded: bool):
        for control in (self.play_pause_btn, self.rewind_btn, self.forward_btn, self.archive_btn):
            control.setEnabled(loaded)

    def set_play_pause_state(self, playing: bool):
        self.play_pause_btn.setText("Pause" if playing else "Play")

    def set_time(self, pos_sec: float, dur_sec: float):
        self.time_label.setText(format_clock(pos_sec, dur_sec))
        frac = clamp(pos_sec / dur_sec, 0.0, 1.0) if dur_sec > 0 else 0.0
        self.progress.setValue(int(round(frac * 1000)))


class ErrorNoticeWidget(QtWidgets.QFrame):
    dismissed = QtCore.Signal(object)

    def __init__(self, message: str, parent=None):
        super().__init__(parent)
        self.setObjectName("error_notice")
        self.setFrameShape(QtWidgets.QFrame.Shape.StyledPanel)
        self.setStyleSheet("#error_notice { background: #5a1d1d; color: #ffd7d7; border-radius: 4px; }")
        self.message = message

        self.label = QtWidgets.QLabel(message)
        self.label.setWordWrap(True)
        self.dismiss_btn = QtWidgets.QToolButton(text="x")
        self.dismiss_btn.setToolTip("Dismiss")
        self.dismiss_btn.setAccessibleName("Dismiss error")

        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(8, 4, 4, 4)
        layout.addWidget(self.label, 1)
        layout.addWidget(self.dismiss_btn)

        self.dismiss_btn.clicked.connect(lambda: self.dismissed.emit(self))


class ErrorListWidget(QtWidgets.QWidget):
    """Newest notice at the bottom; only the latest few are kept."""

    def __init__(self, limit: int = MAX_VISIBLE_ERRORS, parent=None):
        super().__init__(parent)
        self._limit = max(1, int(limit))
        self._notices: list[ErrorNoticeWidget] = []
        self._layout = QtWidgets.QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(4)
        self.setVisible(False)

    def messages(self) -> list[str]:
        return [notice.message for notice in self._notices]

    def add_error(self, message: str) -> None:
        notice = ErrorNoticeWidget(message, self)
        notice.dismissed.connect(self._remove)
        self._notices.append(notice)
        self._layout.addWidget(notice)
        while len(self._notices) > self._limit:
            self._remove(self._notices[0])
        self.setVisible(True)

    def clear(self) -> None:
        for notice in list(self._notices):
            self._remove(notice)

    def _remove(self, notice: ErrorNoticeWidget) -> None:
        if notice not in self._notices:
            return
        self._notices.remove(notice)
        self._layout.removeWidget(notice)
        notice.deleteLater()
        self.setVisible(bool(self._notices))


class ArchiveChoice(Enum):
    ARCHIVE = "archive"
    CONTINUE = "continue"
    EXIT = "exit"


class ArchiveDialog(QtWidgets.QDialog):
    def __init__(self, file_name: str, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Archive recording")
        self.setModal(True)
        self.choice = ArchiveChoice.CONTINUE

        text = QtWidgets.QLabel(f"Archive \"{file_name}\"?")
        text.setWordWrap(True)
        hint = QtWidgets.QLabel("Continue keeps the file open and paused.")
        hint.setWordWrap(True)

        self.archive_btn = QtWidgets.QPushButton("Archive")
        self.continue_btn = QtWidgets.QPushButton("Continue")
        self.exit_btn = QtWidgets.QPushButton("Archive && Exit")
        self.archive_btn.setDefault(True)

        btns = QtWidgets.QHBoxLayout()
        btns.addStretch(1)
        btns.addWidget(self.archive_btn)
        btns.addWidget(self.continue_btn)
        btns.addWidget(self.exit_btn)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(text)
        layout.addWidget(hint)
        layout.addLayout(btns)

        self.archive_btn.clicked.connect(lambda: self._finish(ArchiveChoice.ARCHIVE))
        self.continue_btn.clicked.connect(lambda: self._finish(ArchiveChoice.CONTINUE))
        self.exit_btn.clicked.connect(lambda: self._finish(ArchiveChoice.EXIT))

    def _finish(self, choice: ArchiveChoice) -> None:
        self.choice = choice
        if choice == ArchiveChoice.CONTINUE:
            self.reject()
        else:
            self.accept()
