import io

import numpy as np
import pytest

from vrc_core import DEFAULT_FRAMES, Parity, check, parse
from vrc_sim import (
    ENV_PARITY,
    EXIT_INPUT,
    EXIT_MISMATCH,
    EXIT_OK,
    Session,
    main,
)


@pytest.fixture(autouse=True)
def no_env_parity(monkeypatch):
    monkeypatch.delenv(ENV_PARITY, raising=False)


def first_line(out):
    return out.splitlines()[0]


class TestCommands:

    def test_check_clean(self, capsys):
        assert main(["check", "101100100"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "[Row 1]: Received Frame: 10110010 [Parity: 0]" in out
        assert "  1. Receiver Mode: Even Parity" in out
        assert "Result: OK - Bits match." in out
        assert "All clear!" in out

    def test_check_mismatch(self, capsys):
        assert main(["check", "101100100", "--parity", "odd"]) == EXIT_MISMATCH
        out = capsys.readouterr().out
        assert "Result: ERROR DETECTED" in out
        assert "Error!" in out
        assert "1 frame(s) failed" in out

    def test_check_malformed(self, capsys):
        assert main(["check", "010010000", "1010"]) == EXIT_INPUT
        err = capsys.readouterr().err
        assert '"1010"' in err

    def test_parity_from_environment(self, monkeypatch, capsys):
        monkeypatch.setenv(ENV_PARITY, "odd")
        assert main(["check", "101100101"]) == EXIT_OK
        assert "Odd Parity" in capsys.readouterr().out

    def test_bad_environment_parity(self, monkeypatch, capsys):
        monkeypatch.setenv(ENV_PARITY, "mark")
        assert main(["check", "101100101"]) == EXIT_INPUT
        assert "mark" in capsys.readouterr().err

    def test_explicit_parity_beats_bad_environment(self, monkeypatch, capsys):
        monkeypatch.setenv(ENV_PARITY, "mark")
        assert main(["check", "101100101", "--parity", "odd"]) == EXIT_OK
        assert "Odd Parity" in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [["algorithm"], ["flip", "000000000", "--seed", "1"]])
    def test_bad_environment_ignored_without_parity(self, argv, monkeypatch, capsys):
        monkeypatch.setenv(ENV_PARITY, "mark")
        assert main(argv) == EXIT_OK
        assert capsys.readouterr().err == ""

    def test_verbose_enables_debug_records(self, caplog, capsys):
        assert main(["-v", "check", "101100100"]) == EXIT_OK
        assert "parsed 1 frame(s)" in caplog.text
        assert "check (even): 1 frame(s), 0 mismatch(es)" in caplog.text

    def test_quiet_by_default(self, caplog, capsys):
        assert main(["check", "101100100"]) == EXIT_OK
        assert "parsed" not in caplog.text

    def test_interactive_subcommand(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("check\nflip\nquit\n"))
        argv = ["interactive", "--frames", "101100101", "--parity", "odd", "--seed", "3"]
        assert main(argv) == EXIT_OK
        out = capsys.readouterr().out
        assert "Frames: 101100101" in out
        assert "Parity: odd" in out
        assert "All clear!" in out
        assert "Flipped frame 1" in out
        assert "Session ended." in out

    def test_no_subcommand_starts_session(self, monkeypatch, capsys):
        monkeypatch.setenv(ENV_PARITY, "odd")
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert main([]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Frames: " + DEFAULT_FRAMES in out
        assert "Parity: odd" in out

    @pytest.mark.parametrize("parity", ["even", "odd"])
    def test_generate(self, parity, capsys):
        assert main(["generate", "-n", "4", "-p", parity, "--seed", "5"]) == EXIT_OK
        frames = parse(first_line(capsys.readouterr().out))
        assert len(frames) == 4
        assert check(frames, parity).ok

    def test_generate_rejects_zero(self, capsys):
        assert main(["generate", "-n", "0"]) == EXIT_INPUT
        assert "positive integer" in capsys.readouterr().err

    def test_flip(self, capsys):
        assert main(["flip", "000000000", "--seed", "11"]) == EXIT_OK
        out = capsys.readouterr().out
        assert first_line(out).count("1") == 1
        assert "[1]" in out
        assert "Flipped frame 1" in out

    def test_correct(self, capsys):
        assert main(["correct", "101100101", "010010000"]) == EXIT_OK
        out = capsys.readouterr().out
        assert first_line(out) == "101100100 010010000"
        assert "|(0)" in out
        assert "Corrected parity bit in frame(s): 1" in out

    def test_correct_nothing_to_do(self, capsys):
        assert main(["correct", "101100100"]) == EXIT_OK
        assert "already correct" in capsys.readouterr().out

    def test_algorithm(self, capsys):
        assert main(["algorithm"]) == EXIT_OK
        assert "How VRC (Parity Check) Works" in capsys.readouterr().out


class TestSession:

    def make(self, **kw):
        kw.setdefault("rng", np.random.default_rng(99))
        return Session(**kw)

    def test_defaults(self):
        s = self.make()
        assert s.text == DEFAULT_FRAMES
        assert s.parity is Parity.EVEN

    def test_generate_flip_fix(self, capsys):
        s = self.make(parity="odd")
        assert s.execute("gen 2")
        assert len(parse(s.text)) == 2
        assert check(parse(s.text), Parity.ODD).ok

        s.execute("flip")
        assert not check(parse(s.text), Parity.ODD).ok

        s.execute("fix")
        assert check(parse(s.text), Parity.ODD).ok
        capsys.readouterr()

    def test_bad_input_keeps_state(self, capsys):
        s = self.make()
        s.execute("set 1010")
        s.execute("mode mark")
        s.execute("gen zero")
        out = capsys.readouterr().out
        assert 'Invalid 9-bit frame: "1010"' in out
        assert "unknown parity convention" in out
        assert s.text == DEFAULT_FRAMES
        assert s.parity is Parity.EVEN

    def test_set_and_mode(self, capsys):
        s = self.make()
        s.execute("set 101100101   000000000")
        s.execute("mode ODD")
        assert s.text == "101100101 000000000"
        assert s.parity is Parity.ODD

    def test_check_on_empty_text(self, capsys):
        s = self.make(text="   ")
        s.execute("check")
        assert "Input cannot be empty." in capsys.readouterr().out

    def test_unknown_command(self, capsys):
        s = self.make()
        assert s.execute("frobnicate")
        assert s.execute("")
        assert "Unknown command: frobnicate" in capsys.readouterr().out

    def test_quit(self):
        assert self.make().execute("quit") is False

    def test_run_reads_until_quit(self, capsys):
        s = self.make()
        s.run(io.StringIO("check\nalgo\nquit\nshow\n"))
        out = capsys.readouterr().out
        assert "1 frame(s) failed" in out
        assert "How VRC" in out
        assert out.rstrip().endswith("Session ended.")

    def test_run_stops_at_eof(self, capsys):
        self.make().run(io.StringIO("show\n"))
        out = capsys.readouterr().out
        assert "Frames: " + DEFAULT_FRAMES in out
        assert "Session ended." in out
