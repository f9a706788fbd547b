from __future__ import annotations

import argparse
import logging
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from .control import DEFAULT_STEP_DELAY
from .controller import ExecutionController, Prompt
from .parser import find_malformed, parse_source
from .visualizer import TerminalSurface


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _make_prompt(preset: str, ask: Callable[[str], str] = input) -> Prompt:
    """Answer reads from ``preset`` one character at a time, then ask the user.

    Preset characters are fed as their character codes, so ``7`` stores 55.
    """
    pending = deque(ord(ch) for ch in preset)

    def prompt(cell: int) -> Optional[str]:
        if pending:
            return str(pending.popleft())
        try:
            return ask(f"Input for cell {cell}: ")
        except EOFError:
            return None

    return prompt


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _run(args: argparse.Namespace) -> int:
    try:
        source_text = _read_source(args.source)
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    surface = TerminalSurface(stream=sys.stdout, trace=args.trace, source=source_text)
    controller = ExecutionController(
        surface,
        _make_prompt(args.input),
        step_delay=args.delay_ms / 1000.0,
    )
    try:
        controller.run(source_text)
    except KeyboardInterrupt:
        controller.reset()
        controller.join()
        print("\nInterrupted.", file=sys.stderr)
        return 130

    if surface.fault is not None:
        print(f"Error: {surface.fault}", file=sys.stderr)
        return 1
    if args.trace:
        sys.stdout.write(surface.output_text)
    if surface.output and not surface.output_text.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def _check(args: argparse.Namespace) -> int:
    try:
        source_text = _read_source(args.source)
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    problems = find_malformed(parse_source(source_text))
    for problem in problems:
        print(problem.message)
    if problems:
        return 1
    print("OK")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Tape language visualizer CLI")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log run lifecycle details to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a program")
    run_parser.add_argument("source", help="Path to the program source file")
    run_parser.add_argument(
        "--input",
        default="",
        help="Characters fed to ',' before falling back to an interactive prompt",
    )
    run_parser.add_argument(
        "--delay-ms",
        type=float,
        default=0.0,
        help=f"Pause between instructions in milliseconds (viewer default: {DEFAULT_STEP_DELAY * 1000:.0f})",
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Print the tape after every instruction",
    )
    run_parser.set_defaults(handler=_run)

    check_parser = subparsers.add_parser("check", help="Report unmatched brackets")
    check_parser.add_argument("source", help="Path to the program source file")
    check_parser.set_defaults(handler=_check)

    args = parser.parse_args(argv)
    if getattr(args, "delay_ms", 0) < 0:
        parser.error("--delay-ms must not be negative")
    _configure_logging(args.verbose)
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
