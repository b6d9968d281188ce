"""
Tests for the process runner and cancellation token.
"""

import sys

import pytest

from core.errors import OperationCancelled, ProcessTimeout, ToolNotFound
from core.process_runner import CancellationToken, ProcessRunner, check_cancelled


class TestCancellationToken:

    def test_cancel(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_check_cancelled_accepts_none(self):
        check_cancelled(None)

    def test_wait_returns_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert token.wait(5) is True


class TestProcessRunner:

    def test_missing_tool(self):
        with pytest.raises(ToolNotFound) as exc_info:
            ProcessRunner().run(["srtx-tool-that-does-not-exist", "--version"])
        assert exc_info.value.tool == "srtx-tool-that-does-not-exist"

    def test_is_available_for_missing_tool(self):
        assert ProcessRunner().is_available("srtx-tool-that-does-not-exist") is False

    def test_already_cancelled_token_does_not_start_process(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            ProcessRunner().run(["srtx-tool-that-does-not-exist"], cancel=token)

    def test_captures_output(self):
        result = ProcessRunner(poll_interval=0.05).run(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"],
            timeout=30)

        assert result.returncode == 3
        assert not result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_timeout_kills_process(self):
        runner = ProcessRunner(poll_interval=0.05, kill_grace=1.0)
        with pytest.raises(ProcessTimeout):
            runner.run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.3)

    def test_cancellation_kills_process(self):
        import threading

        token = CancellationToken()
        timer = threading.Timer(0.3, token.cancel)
        timer.start()
        try:
            with pytest.raises(OperationCancelled):
                ProcessRunner(poll_interval=0.05, kill_grace=1.0).run(
                    [sys.executable, "-c", "import time; time.sleep(30)"], timeout=30, cancel=token)
        finally:
            timer.cancel()
