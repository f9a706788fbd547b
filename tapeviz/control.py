from __future__ import annotations

import threading
import time

DEFAULT_STEP_DELAY = 0.5
SINGLE_STEP_DELAY = 0.01
POLL_INTERVAL = 0.05


class RunControl:
    """Pause, cancel and pacing signals shared by one run and its controller.

    The run thread only reads these flags; the controller side flips them.
    Every wait goes through one condition so a state change wakes sleepers
    immediately instead of being noticed on the next poll.
    """

    def __init__(self, step_delay: float = DEFAULT_STEP_DELAY) -> None:
        if step_delay < 0:
            raise ValueError("step delay must not be negative")
        self._cond = threading.Condition()
        self._cancel_requested = False
        self._paused = False
        self._step_pending = False
        self._step_delay = step_delay

    @property
    def cancel_requested(self) -> bool:
        with self._cond:
            return self._cancel_requested

    @property
    def paused(self) -> bool:
        with self._cond:
            return self._paused

    @property
    def step_delay(self) -> float:
        with self._cond:
            return self._step_delay

    def cancel(self) -> None:
        with self._cond:
            self._cancel_requested = True
            self._cond.notify_all()

    def pause(self) -> None:
        with self._cond:
            self._paused = True
            self._cond.notify_all()

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._step_pending = False
            self._cond.notify_all()

    def toggle_pause(self) -> bool:
        with self._cond:
            self._paused = not self._paused
            self._step_pending = False
            self._cond.notify_all()
            return self._paused

    def step(self) -> None:
        """Let exactly one instruction through, quickly, then pause again."""
        with self._cond:
            self._paused = False
            self._step_pending = True
            self._cond.notify_all()

    def set_step_delay(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("step delay must not be negative")
        with self._cond:
            self._step_delay = seconds
            self._cond.notify_all()

    def wait_until_runnable(self) -> bool:
        """Block while paused. Returns False once cancellation is requested."""
        with self._cond:
            self._cond.wait_for(lambda: self._cancel_requested or not self._paused)
            return not self._cancel_requested

    def sleep_step_delay(self) -> bool:
        """Sleep the pacing delay, waking early on cancellation.

        The delay is re-read on every wake-up so speed changes and step
        requests shorten a sleep already in progress.
        """
        with self._cond:
            started = time.monotonic()
            while not self._cancel_requested:
                delay = SINGLE_STEP_DELAY if self._step_pending else self._step_delay
                remaining = started + delay - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            return not self._cancel_requested

    def instruction_finished(self) -> None:
        with self._cond:
            if self._step_pending:
                self._step_pending = False
                self._paused = True
                self._cond.notify_all()


__all__ = ["DEFAULT_STEP_DELAY", "SINGLE_STEP_DELAY", "POLL_INTERVAL", "RunControl"]
