from .control import RunControl
from .controller import ExecutionController, RunInProgress, VisualizationSurface, parse_input_text
from .interpreter import EventKind, Interpreter, RunResult, TraceEvent
from .lexer import OpCode, lex
from .parser import Loop, Malformed, parse, parse_source
from .visualizer import TapeView, TerminalSurface

__all__ = [
    "EventKind",
    "ExecutionController",
    "Interpreter",
    "Loop",
    "Malformed",
    "OpCode",
    "RunControl",
    "RunInProgress",
    "RunResult",
    "TapeView",
    "TerminalSurface",
    "TraceEvent",
    "VisualizationSurface",
    "lex",
    "parse",
    "parse_input_text",
    "parse_source",
]
