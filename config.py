from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from PySide6 import QtCore

from models import PathCandidate, PedalCandidate, RoleMapping, VidPidCandidate
from utils import safe_int

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_ID = 0x0911
DEFAULT_PRODUCT_ID = 0x1844
DEFAULT_LEFT_CODE = 288
DEFAULT_RIGHT_CODE = 289
DEFAULT_MIDDLE_CODE = 290

SPEED_PRESETS = (0.75, 1.0, 1.25, 1.5)
DEFAULT_SPEED_INDEX = 1
MIN_SPEED = 0.1
MAX_SPEED = 4.0

UI_TICK_MS = 16
PEDAL_BACKOFF_SEC = 2.0
PEDAL_QUEUE_SIZE = 256
MAX_VISIBLE_ERRORS = 3

AUDIO_EXTS = (".mp3", ".wav", ".ogg", ".opus", ".flac", ".m4a")

CONFIG_ENV = "DICTATION_CONFIG"
ORGANIZATION = "dictation-pedal"
APPLICATION = "dictation-player"


@dataclass
class PathsConfig:
    default_open_dir: str = ""
    archive_dir: str = "archive"


@dataclass
class ApplicationConfig:
    rewind_seconds: int = 3
    forward_seconds: int = 3
    hold_rewind_interval_ms: int = 500
    play_start_rewind_seconds: int = 1


@dataclass
class InputConfig:
    device_path: Optional[str] = None
    selected_model: Optional[str] = None


@dataclass
class PedalModel:
    name: str
    vendor_id: int
    product_id: int
    left_code: int = DEFAULT_LEFT_CODE
    middle_code: int = DEFAULT_MIDDLE_CODE
    right_code: int = DEFAULT_RIGHT_CODE


@dataclass
class PedalDefaults:
    vendor_id: int = DEFAULT_VENDOR_ID
    product_id: int = DEFAULT_PRODUCT_ID
    left_code: int = DEFAULT_LEFT_CODE
    middle_code: int = DEFAULT_MIDDLE_CODE
    right_code: int = DEFAULT_RIGHT_CODE


@dataclass
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    application: ApplicationConfig = field(default_factory=ApplicationConfig)
    input: InputConfig = field(default_factory=InputConfig)
    pedal_defaults: PedalDefaults = field(default_factory=PedalDefaults)
    pedals: list[PedalModel] = field(default_factory=list)

    def pedal_candidates(self) -> list[PedalCandidate]:
        """Default pedal first, then configured models in order, then the explicit path."""
        candidates: list[PedalCandidate] = [
            VidPidCandidate(self.pedal_defaults.vendor_id, self.pedal_defaults.product_id)
        ]
        for model in self.pedals:
            candidate = VidPidCandidate(model.vendor_id, model.product_id)
            if candidate not in candidates:
                candidates.append(candidate)
        if self.input.device_path:
            candidates.append(PathCandidate(self.input.device_path))
        return candidates

    def role_mapping(self) -> RoleMapping:
        selected = self.input.selected_model
        if selected:
            for model in self.pedals:
                if model.name == selected:
                    return RoleMapping(model.left_code, model.right_code, model.middle_code)
            logger.warning("Selected pedal model %r not configured; using default codes", selected)
        d = self.pedal_defaults
        return RoleMapping(d.left_code, d.right_code, d.middle_code)

    def resolve_default_open_dir(self) -> str:
        path = self.paths.default_open_dir
        if path and os.path.isdir(path):
            return path
        home = os.path.expanduser("~")
        if os.path.isdir(home):
            return home
        return os.getcwd()


def config_path() -> str:
    explicit = os.environ.get(CONFIG_ENV, "").strip()
    if explicit:
        return explicit
    base = QtCore.QStandardPaths.writableLocation(
        QtCore.QStandardPaths.StandardLocation.GenericConfigLocation
    )
    if not base:
        base = os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, APPLICATION, "config.ini")


def open_settings(path: Optional[str] = None) -> QtCore.QSettings:
    return QtCore.QSettings(path or config_path(), QtCore.QSettings.Format.IniFormat)


def _int(settings: QtCore.QSettings, key: str, default: int) -> int:
    value = settings.value(key, default)
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        logger.warning("Invalid value for %s: %r; using %s", key, value, default)
        return default


def _opt_str(settings: QtCore.QSettings, key: str) -> Optional[str]:
    value = settings.value(key, "")
    value = str(value).strip() if value is not None else ""
    return value or None


def load_config(settings: QtCore.QSettings) -> tuple[AppConfig, bool]:
    """Returns (config, missing); missing means no config file existed yet."""
    missing = not os.path.exists(settings.fileName())
    if settings.status() != QtCore.QSettings.Status.NoError:
        logger.warning("Failed to parse config at %s. Using defaults.", settings.fileName())
        return AppConfig(), missing
    if missing:
        logger.warning("Config not found at %s. Using defaults.", settings.fileName())
        return AppConfig(), True

    defaults = AppConfig()
    paths = PathsConfig(
        default_open_dir=str(settings.value("paths/default_open_dir", defaults.paths.default_open_dir)),
        archive_dir=str(settings.value("paths/archive_dir", defaults.paths.archive_dir)),
    )
    app = ApplicationConfig(
        rewind_seconds=_int(settings, "application/rewind_seconds", defaults.application.rewind_seconds),
        forward_seconds=_int(settings, "application/forward_seconds", defaults.application.forward_seconds),
        hold_rewind_interval_ms=_int(
            settings, "application/hold_rewind_interval_ms", defaults.application.hold_rewind_interval_ms
        ),
        play_start_rewind_seconds=_int(
            settings, "application/play_start_rewind_seconds", defaults.application.play_start_rewind_seconds
        ),
    )
    if app.hold_rewind_interval_ms <= 0:
        logger.warning("hold_rewind_interval_ms must be positive; using default")
        app.hold_rewind_interval_ms = defaults.application.hold_rewind_interval_ms

    inp = InputConfig(
        device_path=_opt_str(settings, "input/device_path"),
        selected_model=_opt_str(settings, "input/selected_model"),
    )
    pd = defaults.pedal_defaults
    pedal_defaults = PedalDefaults(
        vendor_id=_int(settings, "pedal_defaults/vendor_id", pd.vendor_id),
        product_id=_int(settings, "pedal_defaults/product_id", pd.product_id),
        left_code=_int(settings, "pedal_defaults/left_code", pd.left_code),
        middle_code=_int(settings, "pedal_defaults/middle_code", pd.middle_code),
        right_code=_int(settings, "pedal_defaults/right_code", pd.right_code),
    )

    pedals: list[PedalModel] = []
    count = settings.beginReadArray("pedals")
    for i in range(count):
        settings.setArrayIndex(i)
        vendor = safe_int(settings.value("vendor_id"), -1)
        product = safe_int(settings.value("product_id"), -1)
        if vendor < 0 or product < 0:
            logger.warning("Skipping pedal entry %d without vendor/product id", i)
            continue
        pedals.append(
            PedalModel(
                name=str(settings.value("name", f"pedal-{i}")),
                vendor_id=vendor,
                product_id=product,
                left_code=safe_int(settings.value("left_code"), pedal_defaults.left_code),
                middle_code=safe_int(settings.value("middle_code"), pedal_defaults.middle_code),
                right_code=safe_int(settings.value("right_code"), pedal_defaults.right_code),
            )
        )
    settings.endArray()

    logger.info("Loaded config from %s", settings.fileName())
    return AppConfig(paths=paths, application=app, input=inp, pedal_defaults=pedal_defaults, pedals=pedals), False


def save_config(settings: QtCore.QSettings, cfg: AppConfig) -> None:
    settings.setValue("paths/default_open_dir", cfg.paths.default_open_dir)
    settings.setValue("paths/archive_dir", cfg.paths.archive_dir)
    a = cfg.application
    settings.setValue("application/rewind_seconds", a.rewind_seconds)
    settings.setValue("application/forward_seconds", a.forward_seconds)
    settings.setValue("application/hold_rewind_interval_ms", a.hold_rewind_interval_ms)
    settings.setValue("application/play_start_rewind_seconds", a.play_start_rewind_seconds)
    settings.setValue("input/device_path", cfg.input.device_path or "")
    settings.setValue("input/selected_model", cfg.input.selected_model or "")
    d = cfg.pedal_defaults
    settings.setValue("pedal_defaults/vendor_id", f"0x{d.vendor_id:04x}")
    settings.setValue("pedal_defaults/product_id", f"0x{d.product_id:04x}")
    settings.setValue("pedal_defaults/left_code", d.left_code)
    settings.setValue("pedal_defaults/middle_code", d.middle_code)
    settings.setValue("pedal_defaults/right_code", d.right_code)
    settings.remove("pedals")
    settings.beginWriteArray("pedals", len(cfg.pedals))
    for i, model in enumerate(cfg.pedals):
        settings.setArrayIndex(i)
        settings.setValue("name", model.name)
        settings.setValue("vendor_id", f"0x{model.vendor_id:04x}")
        settings.setValue("product_id", f"0x{model.product_id:04x}")
        settings.setValue("left_code", model.left_code)
        settings.setValue("middle_code", model.middle_code)
        settings.setValue("right_code", model.right_code)
    settings.endArray()
    settings.sync()
    if settings.status() != QtCore.QSettings.Status.NoError:
        logger.error("Failed to write config to %s", settings.fileName())
    else:
        logger.info("Saved config to %s", settings.fileName())
