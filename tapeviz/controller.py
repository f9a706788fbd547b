from __future__ import annotations

import logging
import queue
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .control import DEFAULT_STEP_DELAY, POLL_INTERVAL, RunControl
from .interpreter import INVALID_INPUT, CELL_MAX, EventKind, Interpreter, TraceEvent
from .parser import parse_source

logger = logging.getLogger(__name__)

# Asked for one value for the given cell; None means the prompt was dismissed.
Prompt = Callable[[int], Optional[str]]

_CLOSED = object()

# ASCII decimal only: no padding, "_" separators or non-ASCII digits.
_INTEGER = re.compile(r"[+-]?[0-9]+")


class RunInProgress(RuntimeError):
    """Raised when a run is started while the previous one is still alive."""


def parse_input_text(text: Optional[str]) -> int:
    """Turn a prompt answer into a cell value or ``INVALID_INPUT``.

    Decimal integers (optionally signed) are taken literally and must fit a
    cell. Any other answer of exactly one byte is read as that byte, so ``A``
    gives 65.
    """
    if text is None:
        return INVALID_INPUT
    if _INTEGER.fullmatch(text) is None:
        encoded = text.encode("utf-8")
        if len(encoded) == 1:
            return encoded[0]
        return INVALID_INPUT
    number = int(text)
    if 0 <= number <= CELL_MAX:
        return number
    return INVALID_INPUT


class VisualizationSurface:
    """Callbacks the controller drives while draining a run's trace."""

    def reset(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def set_cell(self, index: int, value: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def mark_current(self, index: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def append_output(self, value: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def highlight_source(self, position: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def show_fault(self, message: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def run_finished(self) -> None:
        pass

    def trace_event(self, event: TraceEvent) -> None:
        """Called with every event before it is rendered."""


class InputChannel:
    """Controller-to-run queue of input values.

    ``get`` waits in short slices so a cancelled run stops waiting even when
    nobody ever answers.
    """

    def __init__(self, control: RunControl, poll_interval: float = POLL_INTERVAL) -> None:
        self._queue: "queue.Queue[int]" = queue.Queue()
        self._control = control
        self._poll_interval = poll_interval

    def put(self, value: int) -> None:
        self._queue.put(value)

    def get(self) -> Optional[int]:
        while not self._control.cancel_requested:
            try:
                value = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if self._control.cancel_requested:
                return None
            return value
        return None


@dataclass
class _Run:
    control: RunControl
    inputs: InputChannel
    events: "queue.Queue[object]" = field(default_factory=queue.Queue)
    thread: Optional[threading.Thread] = None
    abandoned: bool = False


class ExecutionController:
    """Owns the run thread and renders its trace onto a surface.

    ``start`` spawns the run, ``drain`` consumes its events on the calling
    thread until the run ends. Pause, step, speed and reset may be called from
    any thread while a drain is in progress.
    """

    def __init__(
        self,
        surface: VisualizationSurface,
        prompt: Prompt,
        step_delay: float = DEFAULT_STEP_DELAY,
    ) -> None:
        if step_delay < 0:
            raise ValueError("step delay must not be negative")
        self.surface = surface
        self.prompt = prompt
        self._step_delay = step_delay
        self._lock = threading.Lock()
        # Held while rendering an event and by reset, never across a prompt.
        self._render_lock = threading.RLock()
        self._run: Optional[_Run] = None

    @property
    def step_delay(self) -> float:
        return self._step_delay

    @property
    def control(self) -> Optional[RunControl]:
        run = self._run
        return run.control if run is not None else None

    def is_running(self) -> bool:
        run = self._run
        return run is not None and run.thread is not None and run.thread.is_alive()

    def start(self, source: str, paused: bool = False) -> None:
        with self._lock:
            if self.is_running():
                raise RunInProgress("A run is already in progress")
            control = RunControl(step_delay=self._step_delay)
            if paused:
                control.pause()
            run = _Run(control=control, inputs=InputChannel(control))
            run.thread = threading.Thread(
                target=self._run_program,
                args=(source, run),
                name="tapeviz-run",
                daemon=True,
            )
            self._run = run
            self.surface.reset()
            logger.info("Starting run (%d chars, delay %.3fs)", len(source), self._step_delay)
            run.thread.start()

    def drain(self) -> None:
        run = self._run
        if run is None:
            return
        while True:
            item = run.events.get()
            if item is _CLOSED:
                break
            with self._render_lock:
                if run.abandoned:
                    continue
                self._dispatch(item)
            if item.kind is EventKind.INPUT_REQUESTED and not run.abandoned:
                answer = self.prompt(item.cell_index)
                run.inputs.put(parse_input_text(answer))
        if run.thread is not None:
            run.thread.join()
        with self._render_lock:
            if not run.abandoned:
                self.surface.run_finished()
        logger.debug("Trace channel closed")

    def run(self, source: str) -> None:
        self.start(source)
        self.drain()

    def join(self, timeout: Optional[float] = None) -> bool:
        run = self._run
        if run is None or run.thread is None:
            return True
        run.thread.join(timeout)
        return not run.thread.is_alive()

    def pause(self) -> None:
        if self.control is not None:
            self.control.pause()

    def resume(self) -> None:
        if self.control is not None:
            self.control.resume()

    def toggle_pause(self) -> bool:
        if self.control is None:
            return False
        return self.control.toggle_pause()

    def step(self) -> None:
        if self.control is not None:
            self.control.step()

    def set_speed(self, delay_ms: float) -> None:
        if delay_ms < 0:
            raise ValueError("step delay must not be negative")
        self._step_delay = delay_ms / 1000.0
        if self.control is not None:
            self.control.set_step_delay(self._step_delay)

    def reset(self) -> None:
        with self._render_lock:
            run = self._run
            if run is not None:
                run.abandoned = True
                run.control.cancel()
                logger.info("Run reset")
            self.surface.reset()

    def _run_program(self, source: str, run: _Run) -> None:
        interpreter = Interpreter(control=run.control, input_source=run.inputs.get)
        try:
            program = parse_source(source)
            for event in interpreter.execute(program):
                run.events.put(event)
        except Exception as exc:
            logger.exception("Run thread failed")
            run.control.cancel()
            run.events.put(
                TraceEvent(
                    cell_index=interpreter.pointer,
                    cell_content=interpreter.tape[interpreter.pointer],
                    kind=EventKind.FAULTED,
                    position=0,
                    reason=str(exc),
                )
            )
        finally:
            run.events.put(_CLOSED)
            logger.debug("Run thread finished (cancelled=%s)", run.control.cancel_requested)

    def _dispatch(self, event: TraceEvent) -> None:
        surface = self.surface
        surface.trace_event(event)
        if event.kind is EventKind.CELL_CHANGED:
            surface.set_cell(event.cell_index, event.cell_content)
            surface.mark_current(event.cell_index)
            surface.highlight_source(event.position)
        elif event.kind is EventKind.OUTPUT_EMITTED:
            surface.append_output(event.cell_content)
            surface.highlight_source(event.position)
        elif event.kind is EventKind.INPUT_REQUESTED:
            surface.mark_current(event.cell_index)
            surface.set_cell(event.cell_index, event.cell_content)
            surface.highlight_source(event.position)
        elif event.kind is EventKind.FAULTED:
            logger.info("Run faulted: %s", event.reason)
            surface.show_fault(event.reason or "")
        elif event.kind is EventKind.PAUSED:
            logger.debug("Run paused at index %d", event.position)


__all__ = [
    "Prompt",
    "RunInProgress",
    "parse_input_text",
    "VisualizationSurface",
    "InputChannel",
    "ExecutionController",
]
