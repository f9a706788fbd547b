from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple, Type

from .lexer import OpCode, Token, lex


# === Instruction tree ===


class Instruction:
    position: int


@dataclass(frozen=True)
class MoveForward(Instruction):
    position: int


@dataclass(frozen=True)
class MoveBack(Instruction):
    position: int


@dataclass(frozen=True)
class Increment(Instruction):
    position: int


@dataclass(frozen=True)
class Decrement(Instruction):
    position: int


@dataclass(frozen=True)
class Write(Instruction):
    position: int


@dataclass(frozen=True)
class Read(Instruction):
    position: int


@dataclass(frozen=True)
class Loop(Instruction):
    body: Tuple[Instruction, ...]
    # offset of the closing bracket
    position: int


@dataclass(frozen=True)
class Malformed(Instruction):
    message: str
    position: int


Program = List[Instruction]

_LEAVES: Dict[OpCode, Type[Instruction]] = {
    OpCode.MOVE_FORWARD: MoveForward,
    OpCode.MOVE_BACK: MoveBack,
    OpCode.INCREMENT: Increment,
    OpCode.DECREMENT: Decrement,
    OpCode.WRITE: Write,
    OpCode.READ: Read,
}


def parse(opcodes: Sequence[Token]) -> Program:
    """Build the instruction tree for a lexed program.

    Bracket mismatches never abort the parse. They become ``Malformed`` nodes
    at the place they occur so the interpreter only faults once control
    actually reaches them.
    """
    program: Program = []
    depth = 0
    loop_start = 0

    for index, (op, position) in enumerate(opcodes):
        if depth == 0:
            if op is OpCode.LOOP_BEGIN:
                loop_start = index
                depth += 1
            elif op is OpCode.LOOP_END:
                program.append(
                    Malformed(f"Loop without beginning at index {position}", position)
                )
            else:
                program.append(_LEAVES[op](position))
            continue

        if op is OpCode.LOOP_BEGIN:
            depth += 1
        elif op is OpCode.LOOP_END:
            depth -= 1
            if depth == 0:
                body = parse(opcodes[loop_start + 1 : index])
                program.append(Loop(tuple(body), position))

    if depth != 0:
        start_position = opcodes[loop_start][1]
        program.append(
            Malformed(f"Loop without ending at index {start_position}", start_position)
        )
    return program


def parse_source(source: str) -> Program:
    return parse(lex(source))


def iter_leaves(program: Sequence[Instruction]) -> Iterator[Instruction]:
    for instruction in program:
        if isinstance(instruction, Loop):
            yield from iter_leaves(instruction.body)
        else:
            yield instruction


def find_malformed(program: Sequence[Instruction]) -> List[Malformed]:
    return [node for node in iter_leaves(program) if isinstance(node, Malformed)]


__all__ = [
    "Instruction",
    "MoveForward",
    "MoveBack",
    "Increment",
    "Decrement",
    "Write",
    "Read",
    "Loop",
    "Malformed",
    "Program",
    "parse",
    "parse_source",
    "iter_leaves",
    "find_malformed",
]
