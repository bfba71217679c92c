import unittest
from io import StringIO
from unittest.mock import patch

import bench_solver


class TestBenchSolver(unittest.TestCase):
    def test_rejects_non_positive_steps(self):
        with patch("sys.stdout", new=StringIO()), patch("sys.stderr", new=StringIO()) as err:
            self.assertEqual(bench_solver.main(["--steps", "0"]), 2)
        self.assertIn("--steps", err.getvalue())

    def test_rejects_non_positive_positions(self):
        with patch("sys.stdout", new=StringIO()), patch("sys.stderr", new=StringIO()):
            self.assertEqual(bench_solver.main(["--positions", "0"]), 2)

    def test_small_run(self):
        with patch("sys.stdout", new=StringIO()) as out:
            rc = bench_solver.main(
                ["--positions", "2", "--steps", "6", "--population", "4", "--generations", "2", "--seed", "3"]
            )
        self.assertEqual(rc, 0)
        self.assertIn("genetic solved:", out.getvalue())


if __name__ == "__main__":
    unittest.main()
