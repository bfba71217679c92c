import os
import sys
import tempfile
import types
import unittest
from io import StringIO
from unittest.mock import patch

import cli
from circles_game import CirclesGame
from circles_genetic import GeneticConfig


def run_cli(inputs, argv=None):
    feed = iter(inputs)
    out = StringIO()
    with (
        patch("builtins.input", side_effect=lambda _prompt="": next(feed)),
        patch.object(cli, "sink_from_env", return_value=None),
        patch("sys.stdout", new=out),
    ):
        rc = cli.main(argv or [])
    return rc, out.getvalue()


class TestCLI(unittest.TestCase):
    def test_read_command_eof_quits(self):
        with patch("builtins.input", side_effect=EOFError), patch("sys.stdout", new=StringIO()):
            self.assertEqual(cli.read_command("> "), "q")

    def test_quit_immediately(self):
        rc, out = run_cli(["q"])
        self.assertEqual(rc, 0)
        self.assertIn("Score: 74/74", out)

    def test_eof_exits_cleanly(self):
        with (
            patch("builtins.input", side_effect=EOFError),
            patch.object(cli, "sink_from_env", return_value=None),
            patch("sys.stdout", new=StringIO()),
        ):
            self.assertEqual(cli.main([]), 0)

    def test_move_and_undo(self):
        rc, out = run_cli(["LR", "u", "q"])
        self.assertEqual(rc, 0)
        scores = [line for line in out.splitlines() if line.startswith("Score:")]
        self.assertEqual(scores[0], "Score: 74/74")
        self.assertNotEqual(scores[1], "Score: 74/74")
        self.assertEqual(scores[2], "Score: 74/74")

    def test_unknown_move_reports_error(self):
        rc, out = run_cli(["x", "q"])
        self.assertEqual(rc, 0)
        self.assertIn("unknown move", out)

    def test_hint_on_solved_puzzle(self):
        rc, out = run_cli(["h", "g", "q"])
        self.assertEqual(rc, 0)
        self.assertEqual(out.count("Already solved."), 2)

    def test_hint_and_apply(self):
        rc, out = run_cli(["L", "h", "a", "q"])
        self.assertEqual(rc, 0)
        self.assertIn("Hint: ", out)
        self.assertNotIn("No hint to apply", out)

    def test_apply_without_hint(self):
        rc, out = run_cli(["a", "q"])
        self.assertEqual(rc, 0)
        self.assertIn("No hint to apply", out)

    def test_shuffle_then_genetic_solve(self):
        rc, out = run_cli(
            ["s", "g", "q"],
            ["--population", "4", "--generations", "2", "--shuffle-steps", "12", "--seed", "3"],
        )
        self.assertEqual(rc, 0)
        self.assertIn("Shuffle(", out)
        self.assertTrue("Solved:" in out or "Partially solved:" in out or "Already solved." in out)

    def test_genetic_solve_with_short_shuffles(self):
        rc, out = run_cli(
            ["s", "g", "q"],
            ["--population", "4", "--generations", "2", "--shuffle-steps", "3", "--seed", "7"],
        )
        self.assertEqual(rc, 0)
        self.assertTrue("Solved:" in out or "Partially solved:" in out or "Already solved." in out)

    def test_event_loop_scheduler_uses_blocking_host(self):
        class _LoopScheduler:
            def call_soon(self, callback):
                return 1

            def cancel(self, handle):
                return None

        config = GeneticConfig(population=4, generations=2, chromosome_length=4)
        game = CirclesGame(config=config, scheduler=_LoopScheduler())
        game.initialize()
        game.apply_move("L")
        calls = []

        def fake_blocking(solve_game, on_status=None):
            calls.append(solve_game)
            return None

        host = types.SimpleNamespace(run_solve_blocking=fake_blocking)
        with patch.dict(sys.modules, {"circles_qt": host}), patch("sys.stdout", new=StringIO()):
            cli.run_solve(game, use_qt=False)
        self.assertEqual(calls, [game])

    def test_invalid_solver_settings(self):
        rc, out = run_cli([], ["--population", "3"])
        self.assertEqual(rc, 2)
        self.assertIn("Invalid solver settings", out)

    def test_negative_shuffle_steps(self):
        rc, out = run_cli([], ["--shuffle-steps", "-1"])
        self.assertEqual(rc, 2)

    def test_restore_and_save(self):
        rc, out = run_cli(["restore", "save", "L", "restore", "q"])
        self.assertEqual(rc, 0)
        self.assertIn("Snapshot saved.", out)
        scores = [line for line in out.splitlines() if line.startswith("Score:")]
        self.assertEqual(scores[-1], "Score: 74/74")

    def test_telemetry_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "events.jsonl")
            rc, _ = run_cli(["s", "q"], ["--seed", "2", "--telemetry-file", path])
            self.assertEqual(rc, 0)
            with open(path, encoding="utf-8") as handle:
                content = handle.read()
        self.assertIn('"event":"shuffle"', content)


if __name__ == "__main__":
    unittest.main()
