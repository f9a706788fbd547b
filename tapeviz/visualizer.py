from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from typing import List, Optional, TextIO

from .controller import VisualizationSurface
from .interpreter import TAPE_LENGTH


@dataclass
class ViewState:
    tape: List[int]
    pointer: Optional[int]
    output: str
    highlight: Optional[int]
    fault: Optional[str]


class TapeView(VisualizationSurface):
    """In-memory surface that keeps what a tape display would show."""

    def __init__(self, tape_length: int = TAPE_LENGTH) -> None:
        self.tape_length = tape_length
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.cells: List[int] = [0] * self.tape_length
            self.current: Optional[int] = None
            self.output: List[int] = []
            self.highlight: Optional[int] = None
            self.fault: Optional[str] = None
            self.finished = False

    def set_cell(self, index: int, value: int) -> None:
        with self._lock:
            self.cells[index] = value

    def mark_current(self, index: int) -> None:
        with self._lock:
            self.current = index

    def append_output(self, value: int) -> None:
        with self._lock:
            self.output.append(value)

    def highlight_source(self, position: int) -> None:
        with self._lock:
            self.highlight = position

    def show_fault(self, message: str) -> None:
        with self._lock:
            self.fault = message

    def run_finished(self) -> None:
        with self._lock:
            self.finished = True

    @property
    def output_text(self) -> str:
        """Text of the output area; a fault replaces whatever was printed."""
        with self._lock:
            if self.fault is not None:
                return f"Error: {self.fault}"
            return "".join(chr(value) for value in self.output)

    def snapshot(self) -> ViewState:
        text = self.output_text
        with self._lock:
            return ViewState(
                tape=list(self.cells),
                pointer=self.current,
                output=text,
                highlight=self.highlight,
                fault=self.fault,
            )


class TerminalSurface(TapeView):
    """TapeView that streams output bytes or, in trace mode, every step."""

    def __init__(self, stream: Optional[TextIO] = None, trace: bool = False, source: str = "") -> None:
        super().__init__()
        self.stream = stream if stream is not None else sys.stdout
        self.trace = trace
        self.source = source

    def append_output(self, value: int) -> None:
        super().append_output(value)
        if not self.trace:
            self.stream.write(chr(value))
            self.stream.flush()

    def highlight_source(self, position: int) -> None:
        # last callback of every dispatched event
        super().highlight_source(position)
        if self.trace:
            self.stream.write("-" * 40 + "\n")
            self.stream.write(format_state(self.snapshot(), self.source) + "\n")
            self.stream.flush()


def format_state(state: ViewState, code: str) -> str:
    lines: List[str] = []
    pointer_display = state.pointer if state.pointer is not None else "-"
    highlight_display = state.highlight if state.highlight is not None else "-"
    lines.append(f"pointer={pointer_display} index={highlight_display}")
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for index, value in enumerate(state.tape):
        cell_repr = f"{index}:{value:03}"
        if index == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    if state.highlight is not None:
        lines.append(f"code={_format_code_window(code, state.highlight)}")
    return "\n".join(lines)


def _format_code_window(code: str, pc: int, window: int = 16) -> str:
    if not code:
        return "(empty)"
    start = max(0, pc - window)
    end = min(len(code), pc + window + 1)
    pieces: List[str] = []
    for index in range(start, end):
        ch = code[index]
        if ch == "\n":
            ch = " "
        if index == pc:
            pieces.append(f"[{ch}]")
        else:
            pieces.append(ch)
    if pc >= len(code):
        pieces.append("[END]")
    return "".join(pieces)


__all__ = ["ViewState", "TapeView", "TerminalSurface", "format_state"]
