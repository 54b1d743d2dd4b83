
"""
Foot-pedal dictation player (PySide6).

Backend pipeline:
- Decode: ffmpeg -> float32 PCM at the file's own rate and channel count
- Speed: linear-interpolation resampler, speed and pitch change together
- Output: sounddevice (PortAudio) callback pulling from the resampled source
- Pedal: evdev HID device, scanned and read on a background thread

Requirements:
  pip install PySide6 numpy sounddevice evdev
  ffmpeg + ffprobe installed and on PATH
  read access to /dev/input/event* (e.g. membership of the "input" group)

Env vars:
- DICTATION_CONFIG = explicit path to config.ini
- DICTATION_LOG_LEVEL = DEBUG | INFO | WARNING | ERROR (default INFO)
"""

from __future__ import annotations

import logging
import os
import sys

from PySide6 import QtWidgets

from config import APPLICATION, ORGANIZATION, config_path, load_config, open_settings, save_config
from ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level_name = os.environ.get("DICTATION_LOG_LEVEL", "INFO").strip().upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def main():
    setup_logging()
    app = QtWidgets.QApplication(sys.argv)
    app.setOrganizationName(ORGANIZATION)
    app.setApplicationName(APPLICATION)

    settings = open_settings()
    cfg, missing = load_config(settings)
    if missing:
        logger.info("No config found; writing defaults to %s", config_path())
        save_config(settings, cfg)

    w = MainWindow(cfg)
    w.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
