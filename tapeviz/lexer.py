from __future__ import annotations

from enum import Enum
from typing import Dict, List, Tuple


class OpCode(str, Enum):
    MOVE_FORWARD = ">"
    MOVE_BACK = "<"
    INCREMENT = "+"
    DECREMENT = "-"
    WRITE = "."
    READ = ","
    LOOP_BEGIN = "["
    LOOP_END = "]"


SYMBOLS: Dict[str, OpCode] = {op.value: op for op in OpCode}

Token = Tuple[OpCode, int]


def lex(source: str) -> List[Token]:
    """Turn source text into ``(opcode, offset)`` pairs.

    Characters outside the eight-symbol alphabet are comments and dropped. The
    offset is the position in ``source`` itself, so faults and cursor
    highlights can point back into the text the user typed.
    """
    tokens: List[Token] = []
    for position, char in enumerate(source):
        op = SYMBOLS.get(char)
        if op is not None:
            tokens.append((op, position))
    return tokens


__all__ = ["OpCode", "SYMBOLS", "Token", "lex"]
