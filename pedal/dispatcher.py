from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PySide6 import QtCore

from audio.transport import Transport
from config import ApplicationConfig
from models import Button, ButtonState, DictationError, PedalEvent, RoleMapping

logger = logging.getLogger(__name__)


class PedalDispatcher(QtCore.QObject):
    """
    Turns raw pedal key codes into transport operations.

    right  press: rewind a little and play     release: pause
    left   press: start repeat-rewind          release: stop it
    middle press: pause and ask for archiving

    Each button is a Released/Pressed state machine; only a change of state
    acts, so a duplicate press or release does nothing.
    """

    archiveRequested = QtCore.Signal()
    errorOccurred = QtCore.Signal(str)

    def __init__(
        self,
        transport: Transport,
        mapping: RoleMapping,
        app_config: ApplicationConfig,
        clock: Callable[[], float] = time.monotonic,
        parent=None,
    ):
        super().__init__(parent)
        self._transport = transport
        self._mapping = mapping
        self._cfg = app_config
        self._clock = clock
        self._buttons = {button: ButtonState() for button in Button}

    def is_pressed(self, button: Button) -> bool:
        return self._buttons[button].pressed

    @property
    def left_held(self) -> bool:
        return self._buttons[Button.LEFT].pressed

    def release_all(self) -> None:
        for state in self._buttons.values():
            state.pressed = False
            state.last_repeat = None

    def handle_event(self, event: PedalEvent) -> None:
        if event.value not in (0, 1):
            return
        button = self._mapping.role_for(event.code)
        if button is None:
            logger.debug("Ignoring unmapped pedal code %d", event.code)
            return
        state = self._buttons[button]
        pressed = event.value == 1
        if state.pressed == pressed:
            return
        state.pressed = pressed
        logger.debug("Pedal %s %s", button.value, "pressed" if pressed else "released")

        if button == Button.RIGHT:
            self._on_right(pressed)
        elif button == Button.LEFT:
            # the next tick performs the first rewind
            state.last_repeat = None
        elif button == Button.MIDDLE and pressed:
            self._run(self._transport.pause)
            self.archiveRequested.emit()

    def _on_right(self, pressed: bool) -> None:
        if not self._transport.is_loaded:
            return
        if pressed:
            self._run(self._rewind_and_play)
        else:
            self._run(self._transport.pause)

    def _rewind_and_play(self) -> None:
        self._transport.seek(-float(self._cfg.play_start_rewind_seconds))
        if not self._transport.is_playing():
            self._transport.resume()

    def tick(self, now: Optional[float] = None) -> bool:
        """Hold-repeat for the left pedal; returns True when a rewind was issued."""
        state = self._buttons[Button.LEFT]
        if not state.pressed:
            return False
        if now is None:
            now = self._clock()
        interval = self._cfg.hold_rewind_interval_ms / 1000.0
        if state.last_repeat is not None and now - state.last_repeat < interval:
            return False
        state.last_repeat = now
        self._run(lambda: self._transport.seek(-float(self._cfg.rewind_seconds)))
        return True

    def _run(self, action: Callable[[], object]) -> None:
        try:
            action()
        except DictationError as e:
            logger.error("Pedal action failed: %s", e)
            self.errorOccurred.emit(str(e))
