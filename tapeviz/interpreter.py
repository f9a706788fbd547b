from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generator, Iterable, Iterator, List, Optional, Sequence

from .control import RunControl
from .parser import (
    Decrement,
    Increment,
    Instruction,
    Loop,
    Malformed,
    MoveBack,
    MoveForward,
    Read,
    Write,
)

logger = logging.getLogger(__name__)

TAPE_LENGTH = 32
CELL_MAX = 255
INVALID_INPUT = -1

# Returns the next input value, or None when the wait was abandoned.
InputSource = Callable[[], Optional[int]]


class EventKind(str, Enum):
    CELL_CHANGED = "cell_changed"
    OUTPUT_EMITTED = "output_emitted"
    INPUT_REQUESTED = "input_requested"
    FAULTED = "faulted"
    PAUSED = "paused"


@dataclass(frozen=True)
class TraceEvent:
    cell_index: int
    cell_content: int
    kind: EventKind
    position: int
    reason: Optional[str] = None


@dataclass
class RunResult:
    output: str
    events: List[TraceEvent]
    tape: List[int]
    pointer: int
    fault: Optional[TraceEvent] = None


# Walk generators yield events and return False once the run must stop.
_Walk = Generator[TraceEvent, None, bool]


@dataclass
class Interpreter:
    control: RunControl = field(default_factory=lambda: RunControl(step_delay=0))
    input_source: Optional[InputSource] = None
    tape_length: int = TAPE_LENGTH
    cell_max: int = CELL_MAX

    tape: List[int] = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = [0] * self.tape_length
        self.pointer = 0

    def execute(self, program: Sequence[Instruction]) -> Iterator[TraceEvent]:
        """Walk ``program`` lazily, yielding one trace event per state change.

        The walk checks the control before every instruction: cancellation ends
        it silently, a pause blocks it (after a single ``PAUSED`` event) and the
        step delay paces it. A fault yields one ``FAULTED`` event, cancels the
        control and ends the whole walk, enclosing loops included.
        """
        self.reset()
        yield from self._run_block(program)

    def run(self, program: Sequence[Instruction], inputs: Iterable[int] = ()) -> RunResult:
        """Execute to completion feeding ``inputs`` to ``,`` in order.

        Once the inputs are exhausted a read receives ``INVALID_INPUT``.
        """
        input_iter = iter(inputs)
        previous_source = self.input_source
        self.input_source = lambda: next(input_iter, INVALID_INPUT)
        events: List[TraceEvent] = []
        output: List[str] = []
        fault: Optional[TraceEvent] = None
        try:
            for event in self.execute(program):
                events.append(event)
                if event.kind is EventKind.OUTPUT_EMITTED:
                    output.append(chr(event.cell_content))
                elif event.kind is EventKind.FAULTED:
                    fault = event
        finally:
            self.input_source = previous_source
        return RunResult(
            output="".join(output),
            events=events,
            tape=list(self.tape),
            pointer=self.pointer,
            fault=fault,
        )

    def _run_block(self, instructions: Sequence[Instruction]) -> _Walk:
        for instruction in instructions:
            if self.control.cancel_requested:
                return False
            if not (yield from self._await_runnable(instruction.position)):
                return False
            if not self.control.sleep_step_delay():
                return False

            if isinstance(instruction, Loop):
                # The first condition check counts as one step, skipped or entered.
                self.control.instruction_finished()
                while self.tape[self.pointer] != 0:
                    if not (yield from self._run_block(instruction.body)):
                        return False
                    if not (yield from self._await_runnable(instruction.position)):
                        return False
                continue

            if not (yield from self._execute_instruction(instruction)):
                return False
            self.control.instruction_finished()
        return True

    def _await_runnable(self, position: int) -> _Walk:
        if self.control.paused:
            yield self._event(EventKind.PAUSED, position)
        return self.control.wait_until_runnable()

    def _execute_instruction(self, instruction: Instruction) -> _Walk:
        position = instruction.position
        if isinstance(instruction, MoveForward):
            if self.pointer >= self.tape_length - 1:
                return (yield from self._fault(f"Data pointer out of bounds at index {position}", position))
            self.pointer += 1
        elif isinstance(instruction, MoveBack):
            if self.pointer <= 0:
                return (yield from self._fault(f"Data pointer out of bounds at index {position}", position))
            self.pointer -= 1
        elif isinstance(instruction, Increment):
            if self.tape[self.pointer] >= self.cell_max:
                return (yield from self._fault(f"Addition overflow at index {position}", position))
            self.tape[self.pointer] += 1
        elif isinstance(instruction, Decrement):
            if self.tape[self.pointer] <= 0:
                return (yield from self._fault(f"Subtraction underflow at index {position}", position))
            self.tape[self.pointer] -= 1
        elif isinstance(instruction, Write):
            yield self._event(EventKind.OUTPUT_EMITTED, position)
            return True
        elif isinstance(instruction, Read):
            yield self._event(EventKind.INPUT_REQUESTED, position)
            value = self._next_input()
            if value is None:
                return False
            if not 0 <= value <= self.cell_max:
                return (yield from self._fault(f"invalid input at index {position}", position))
            self.tape[self.pointer] = value
        elif isinstance(instruction, Malformed):
            return (yield from self._fault(instruction.message, position))
        else:
            raise TypeError(f"Unknown instruction: {instruction!r}")

        yield self._event(EventKind.CELL_CHANGED, position)
        return True

    def _next_input(self) -> Optional[int]:
        if self.input_source is None:
            return INVALID_INPUT
        return self.input_source()

    def _fault(self, reason: str, position: int) -> _Walk:
        logger.debug("Run faulted: %s", reason)
        self.control.cancel()
        yield self._event(EventKind.FAULTED, position, reason)
        return False

    def _event(self, kind: EventKind, position: int, reason: Optional[str] = None) -> TraceEvent:
        return TraceEvent(
            cell_index=self.pointer,
            cell_content=self.tape[self.pointer],
            kind=kind,
            position=position,
            reason=reason,
        )


__all__ = [
    "TAPE_LENGTH",
    "CELL_MAX",
    "INVALID_INPUT",
    "InputSource",
    "EventKind",
    "TraceEvent",
    "RunResult",
    "Interpreter",
]
