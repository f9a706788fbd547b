import unittest
from collections import Counter

from tapeviz import OpCode, lex, parse
from tapeviz.parser import (
    Decrement,
    Increment,
    Loop,
    Malformed,
    MoveBack,
    MoveForward,
    Read,
    Write,
    find_malformed,
    iter_leaves,
    parse_source,
)

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]>>.>---.+++++++..+++."
    ">>.<-.<.+++.------.--------.>>+.>++."
)


class LexerTests(unittest.TestCase):
    def test_maps_every_symbol(self) -> None:
        tokens = lex("><+-.,[]")
        self.assertEqual(
            [op for op, _ in tokens],
            [
                OpCode.MOVE_FORWARD,
                OpCode.MOVE_BACK,
                OpCode.INCREMENT,
                OpCode.DECREMENT,
                OpCode.WRITE,
                OpCode.READ,
                OpCode.LOOP_BEGIN,
                OpCode.LOOP_END,
            ],
        )
        self.assertEqual([pos for _, pos in tokens], list(range(8)))

    def test_comments_keep_source_offsets(self) -> None:
        source = "add: +\nprint it .  # done"
        tokens = lex(source)
        self.assertEqual(tokens, [(OpCode.INCREMENT, 5), (OpCode.WRITE, 16)])

    def test_offsets_point_at_their_symbols(self) -> None:
        for source in (HELLO_WORLD, "a[b]c<d>e,f.g-h+", "", "no code at all", "[[]]]]"):
            tokens = lex(source)
            self.assertLessEqual(len(tokens), len(source))
            for op, position in tokens:
                self.assertEqual(source[position], op.value)


class ParserTests(unittest.TestCase):
    def test_flat_program_keeps_positions(self) -> None:
        program = parse(lex("> <+ -.,"))
        self.assertEqual(
            program,
            [
                MoveForward(0),
                MoveBack(2),
                Increment(3),
                Decrement(5),
                Write(6),
                Read(7),
            ],
        )

    def test_nested_loops(self) -> None:
        program = parse_source("[[+]-]")
        self.assertEqual(
            program,
            [Loop((Loop((Increment(2),), 3), Decrement(4)), 5)],
        )

    def test_empty_loop_is_valid(self) -> None:
        self.assertEqual(parse_source("[]"), [Loop((), 1)])

    def test_loop_without_beginning(self) -> None:
        self.assertEqual(
            parse_source("]"),
            [Malformed("Loop without beginning at index 0", 0)],
        )

    def test_loop_without_ending(self) -> None:
        self.assertEqual(
            parse_source("["),
            [Malformed("Loop without ending at index 0", 0)],
        )

    def test_unclosed_loop_reports_source_offset(self) -> None:
        program = parse_source("x +[+")
        self.assertEqual(
            program,
            [Increment(2), Malformed("Loop without ending at index 3", 3)],
        )

    def test_parsing_continues_after_stray_bracket(self) -> None:
        program = parse_source("+]-][")
        self.assertEqual(
            program,
            [
                Increment(0),
                Malformed("Loop without beginning at index 1", 1),
                Decrement(2),
                Malformed("Loop without beginning at index 3", 3),
                Malformed("Loop without ending at index 4", 4),
            ],
        )

    def test_stray_bracket_inside_loop_body(self) -> None:
        # the outer loop closes at the first ']', the second is stray
        program = parse_source("[+]]")
        self.assertEqual(
            program,
            [Loop((Increment(1),), 2), Malformed("Loop without beginning at index 3", 3)],
        )

    def test_only_outermost_unclosed_loop_is_reported(self) -> None:
        source = (
            "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<->>.>---.+++++++..+++."
            ">>.<-.<.+++.------.--------.>>+.>++."
        )
        program = parse_source(source)
        self.assertEqual(len(program), 9)
        self.assertEqual(program[-1], Malformed("Loop without ending at index 8", 8))

    def test_well_bracketed_sources_have_matching_leaves(self) -> None:
        for source in (HELLO_WORLD, "[[[]]]", ",[.,]", "+[->+<]>."):
            program = parse_source(source)
            self.assertEqual(find_malformed(program), [])
            leaf_kinds = Counter(type(node).__name__ for node in iter_leaves(program))
            expected = Counter(
                {
                    OpCode.MOVE_FORWARD: "MoveForward",
                    OpCode.MOVE_BACK: "MoveBack",
                    OpCode.INCREMENT: "Increment",
                    OpCode.DECREMENT: "Decrement",
                    OpCode.WRITE: "Write",
                    OpCode.READ: "Read",
                }[op]
                for op, _ in lex(source)
                if op not in (OpCode.LOOP_BEGIN, OpCode.LOOP_END)
            )
            self.assertEqual(leaf_kinds, expected)

    def test_find_malformed_reaches_nested_nodes(self) -> None:
        program = parse_source("[+[]]")
        self.assertEqual(find_malformed(program), [])
        problems = find_malformed(parse_source("+[-]]["))
        self.assertEqual(
            [problem.message for problem in problems],
            ["Loop without beginning at index 4", "Loop without ending at index 5"],
        )


if __name__ == "__main__":
    unittest.main()
