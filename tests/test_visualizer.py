import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from tapeviz.cli import _make_prompt, main as cli_main
from tapeviz.visualizer import TapeView, TerminalSurface, ViewState, _format_code_window, format_state

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]>>.>---.+++++++..+++."
    ">>.<-.<.+++.------.--------.>>+.>++."
)


class TapeViewTests(unittest.TestCase):
    def test_records_callbacks(self) -> None:
        view = TapeView()
        view.set_cell(3, 42)
        view.mark_current(3)
        view.append_output(72)
        view.append_output(105)
        view.highlight_source(9)
        state = view.snapshot()
        self.assertEqual(state.tape[3], 42)
        self.assertEqual(state.pointer, 3)
        self.assertEqual(state.output, "Hi")
        self.assertEqual(state.highlight, 9)
        self.assertIsNone(state.fault)

    def test_fault_replaces_output_and_reset_clears(self) -> None:
        view = TapeView()
        view.append_output(65)
        view.show_fault("Addition overflow at index 255")
        self.assertEqual(view.output_text, "Error: Addition overflow at index 255")
        view.reset()
        self.assertEqual(view.output_text, "")
        self.assertIsNone(view.fault)
        self.assertEqual(len(view.cells), 32)


class TerminalSurfaceTests(unittest.TestCase):
    def test_streams_output_bytes(self) -> None:
        stream = io.StringIO()
        surface = TerminalSurface(stream=stream)
        surface.append_output(79)
        surface.append_output(75)
        self.assertEqual(stream.getvalue(), "OK")

    def test_trace_mode_prints_state(self) -> None:
        stream = io.StringIO()
        surface = TerminalSurface(stream=stream, trace=True, source="+>.")
        surface.set_cell(0, 1)
        surface.mark_current(0)
        surface.highlight_source(0)
        rendered = stream.getvalue()
        self.assertIn("[0:001]", rendered)
        self.assertIn("code=[+]>.", rendered)


class FormatTests(unittest.TestCase):
    def test_format_code_window_marks_end(self) -> None:
        self.assertEqual(_format_code_window("+", 5), "+[END]")

    def test_format_code_window_flattens_newlines(self) -> None:
        self.assertEqual(_format_code_window("+\n-", 2), "+ [-]")

    def test_format_state_renders_core_sections(self) -> None:
        state = ViewState(tape=[1, 2, 3], pointer=1, output="A", highlight=1, fault=None)
        rendered = format_state(state, "++.")
        self.assertIn("pointer=1 index=1", rendered)
        self.assertIn("output='A'", rendered)
        self.assertIn("[1:002]", rendered)
        self.assertIn("code=+[+].", rendered)

    def test_format_state_before_first_event(self) -> None:
        state = TapeView(tape_length=2).snapshot()
        rendered = format_state(state, "")
        self.assertIn("pointer=- index=-", rendered)
        self.assertNotIn("code=", rendered)


class CliTests(unittest.TestCase):
    def _write_source(self, directory: str, text: str) -> str:
        path = Path(directory) / "program.bf"
        path.write_text(text, encoding="utf-8")
        return str(path)

    def _run_cli(self, argv):
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli_main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_run_hello_world(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, HELLO_WORLD)
            code, out, err = self._run_cli(["run", path])
        self.assertEqual(code, 0)
        self.assertEqual(out, "Hello World!\n")
        self.assertEqual(err, "")

    def test_run_with_preset_input(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, ",.,.")
            code, out, _ = self._run_cli(["run", path, "--input", "ok"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "ok\n")

    def test_preset_digits_are_characters(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, ",.")
            code, out, _ = self._run_cli(["run", path, "--input", "7"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "7\n")

    def test_run_reports_fault(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, "<")
            code, _, err = self._run_cli(["run", path])
        self.assertEqual(code, 1)
        self.assertIn("Error: Data pointer out of bounds at index 0", err)

    def test_run_trace_mode(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, "+" * 65 + ".")
            code, out, _ = self._run_cli(["run", path, "--trace"])
        self.assertEqual(code, 0)
        self.assertIn("[0:065]", out)
        self.assertTrue(out.endswith("A\n"))

    def test_check_reports_brackets(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, "+]\n[")
            code, out, _ = self._run_cli(["check", path])
        self.assertEqual(code, 1)
        self.assertIn("Loop without beginning at index 1", out)
        self.assertIn("Loop without ending at index 3", out)

    def test_check_ok(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write_source(tmpdir, HELLO_WORLD)
            code, out, _ = self._run_cli(["check", path])
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "OK")

    def test_missing_source(self) -> None:
        code, _, err = self._run_cli(["run", "/nonexistent/program.bf"])
        self.assertEqual(code, 1)
        self.assertIn("Source file not found", err)

    def test_prompt_falls_back_to_asking(self) -> None:
        asked = []

        def ask(message: str) -> str:
            asked.append(message)
            return "9"

        prompt = _make_prompt("x", ask=ask)
        self.assertEqual(prompt(0), "120")
        self.assertEqual(prompt(4), "9")
        self.assertEqual(asked, ["Input for cell 4: "])

    def test_prompt_end_of_input(self) -> None:
        def ask(message: str) -> str:
            raise EOFError

        self.assertIsNone(_make_prompt("", ask=ask)(0))


if __name__ == "__main__":
    unittest.main()
