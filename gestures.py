"""
Press / long-press disambiguation for preset buttons.

    IDLE --press_start--> PRESSING --timer--> LONG_PRESS_FIRED --press_end--> IDLE
                             |
                             +--press_end--> RELEASED (click) --> IDLE
                             +--press_cancel--> IDLE

A long press never produces a click, whatever happens in its confirmation
dialog.
"""

import enum
import logging

import config

logger = logging.getLogger("sparkle_matrix.gestures")


class GestureState(enum.Enum):
    IDLE = "idle"
    PRESSING = "pressing"
    LONG_PRESS_FIRED = "long_press_fired"
    RELEASED = "released"


class PressGesture:
    def __init__(self, scheduler, on_click, on_long_press,
                 delay_ms=config.LONG_PRESS_DELAY_MS):
        self.scheduler = scheduler
        self.on_click = on_click
        self.on_long_press = on_long_press
        self.delay_ms = delay_ms

        self.state = GestureState.IDLE
        self.target = None
        self._timer = None
        self._press_id = 0

    def press_start(self, target):
        self._cancel_timer()
        self._press_id += 1
        press_id = self._press_id
        self.state = GestureState.PRESSING
        self.target = target
        self._timer = self.scheduler.call_later(
            self.delay_ms, lambda: self._fire_long_press(press_id)
        )

    def press_end(self):
        """Release. Returns True if the release counted as a click."""
        self._cancel_timer()
        state, target = self.state, self.target
        self._reset()
        if state is GestureState.PRESSING:
            self.state = GestureState.RELEASED
            self.on_click(target)
            self.state = GestureState.IDLE
            return True
        return False

    def press_cancel(self):
        """Pointer left the button or the press was interrupted."""
        self._cancel_timer()
        self._reset()

    def _fire_long_press(self, press_id):
        self._timer = None
        if press_id != self._press_id or self.state is not GestureState.PRESSING:
            return
        self.state = GestureState.LONG_PRESS_FIRED
        logger.debug(f"[Gesture] Long press on {self.target!r}")
        self.on_long_press(self.target)

    def _cancel_timer(self):
        if self._timer is not None:
            self.scheduler.cancel(self._timer)
        self._timer = None

    def _reset(self):
        self.state = GestureState.IDLE
        self.target = None
