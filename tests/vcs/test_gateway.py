import sys
import threading
import time
import unittest

from qit.errors import OperationCancelledError, ProcessError, ProcessTimeoutError
from qit.vcs.gateway import CancellationToken, ProcessGateway


PY = sys.executable


class TestProcessGateway(unittest.TestCase):
    def setUp(self) -> None:
        self.gateway = ProcessGateway(default_timeout=20)

    def test_run_captures_output(self) -> None:
        result = self.gateway.run(PY, ["-c", "import sys; print('out'); sys.stderr.write('err')"])
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.stdout.strip(), "out")
        self.assertEqual(result.stderr, "err")
        self.assertEqual(result.argv[0], PY)

    def test_non_zero_exit_raises_with_stderr(self) -> None:
        with self.assertRaises(ProcessError) as ctx:
            self.gateway.run(PY, ["-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"])
        self.assertEqual(ctx.exception.exit_code, 3)
        self.assertEqual(ctx.exception.stderr, "boom")
        self.assertIn("boom", str(ctx.exception))

    def test_tolerated_exit_code(self) -> None:
        result = self.gateway.run(PY, ["-c", "import sys; sys.exit(1)"], ok_codes=(0, 1))
        self.assertEqual(result.exit_code, 1)

    def test_input_is_passed_on_stdin(self) -> None:
        script = "import sys; sys.stdout.write(sys.stdin.read().upper())"
        result = self.gateway.run(PY, ["-c", script], input="fix: thing\n")
        self.assertEqual(result.stdout, "FIX: THING\n")

    def test_timeout_kills_the_child(self) -> None:
        started = time.monotonic()
        with self.assertRaises(ProcessTimeoutError) as ctx:
            self.gateway.run(PY, ["-c", "import time; time.sleep(30)"], timeout=0.5)
        self.assertLess(time.monotonic() - started, 10)
        self.assertEqual(ctx.exception.timeout, 0.5)

    def test_cancelled_token_prevents_start(self) -> None:
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(OperationCancelledError):
            self.gateway.run(PY, ["-c", "print('never')"], cancel=token)

    def test_cancel_while_running(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.3, token.cancel)
        timer.start()
        started = time.monotonic()
        try:
            with self.assertRaises(OperationCancelledError):
                self.gateway.run(PY, ["-c", "import time; time.sleep(30)"], cancel=token)
        finally:
            timer.cancel()
        self.assertLess(time.monotonic() - started, 10)

    def test_missing_executable(self) -> None:
        with self.assertRaises(ProcessError) as ctx:
            self.gateway.run("qit-no-such-executable-anywhere", [])
        self.assertEqual(ctx.exception.exit_code, 127)

    def test_run_interactive_returns_exit_code(self) -> None:
        self.assertEqual(self.gateway.run_interactive(PY, ["-c", "pass"]), 0)
        with self.assertRaises(ProcessError):
            self.gateway.run_interactive(PY, ["-c", "import sys; sys.exit(2)"])


if __name__ == "__main__":
    unittest.main()
