"""
External process execution with timeouts and cooperative cancellation.

This module provides:
- CancellationToken, a thread-safe cancellation signal
- ProcessRunner, which runs a command, enforces a timeout, honours
  cancellation and kills the whole process tree when either fires
"""

import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import List, Optional
from utils.constants import PROCESS_KILL_GRACE, PROCESS_POLL_INTERVAL
from utils.logging_config import get_logger
from core.errors import OperationCancelled, ProcessTimeout, ToolNotFound

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and workers."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, message: str = "Operation cancelled") -> None:
        """Raise OperationCancelled if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled(message)

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; returns True if cancelled."""
        return self._event.wait(timeout)


def check_cancelled(cancel: Optional[CancellationToken], message: str = "Operation cancelled") -> None:
    """Raise OperationCancelled when an optional token has been triggered."""
    if cancel is not None:
        cancel.raise_if_cancelled(message)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a completed process."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """Runs external tools as subprocesses."""

    def __init__(self, poll_interval: float = PROCESS_POLL_INTERVAL,
                 kill_grace: float = PROCESS_KILL_GRACE):
        """
        Initialize the runner.

        Args:
            poll_interval: How often cancellation is checked while waiting
            kill_grace: Seconds between terminate and kill of the process tree
        """
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace

    def run(self, cmd: List[str], timeout: Optional[float] = None,
            cancel: Optional[CancellationToken] = None,
            cwd: Optional[str] = None) -> ProcessResult:
        """
        Run a command and capture its output.

        Args:
            cmd: Command and arguments as list
            timeout: Timeout in seconds (None for no limit)
            cancel: Optional cancellation token

        Returns:
            ProcessResult (a non-zero exit code is not an error here)

        Raises:
            ToolNotFound: If the executable cannot be started
            ProcessTimeout: If the timeout elapsed; the process tree is killed
            OperationCancelled: If cancelled; the process tree is killed
        """
        check_cancelled(cancel)
        logger.debug(f"Running command: {' '.join(cmd[:3])}...")  # Show only first 3 args

        popen_kwargs = {
            'stdout': subprocess.PIPE,
            'stderr': subprocess.PIPE,
            'stdin': subprocess.DEVNULL,
            'text': True,
            'encoding': 'utf-8',
            'errors': 'replace',
            'cwd': cwd,
        }
        if sys.platform == 'win32':
            popen_kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs['start_new_session'] = True

        try:
            proc = subprocess.Popen(cmd, **popen_kwargs)
        except FileNotFoundError:
            raise ToolNotFound(os.path.basename(cmd[0]), cmd[0])
        except PermissionError as e:
            logger.error(f"Cannot execute {cmd[0]}: {e}")
            raise ToolNotFound(os.path.basename(cmd[0]), cmd[0])

        elapsed = 0.0
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except KeyboardInterrupt:
                # The child runs in its own session and does not see Ctrl+C
                self._kill_tree(proc)
                raise
            except subprocess.TimeoutExpired:
                elapsed += self.poll_interval
                if cancel is not None and cancel.is_cancelled:
                    logger.info(f"Cancelling {os.path.basename(cmd[0])} (pid {proc.pid})")
                    self._kill_tree(proc)
                    raise OperationCancelled(f"{os.path.basename(cmd[0])} cancelled")
                if timeout is not None and elapsed >= timeout:
                    logger.error(f"Command timed out after {timeout}s: {' '.join(cmd[:3])}...")
                    self._kill_tree(proc)
                    raise ProcessTimeout(cmd, timeout)

        if proc.returncode != 0:
            logger.debug(f"Command failed with return code {proc.returncode}")
            if stderr:
                logger.debug(f"Command stderr: {stderr[:500]}...")

        return ProcessResult(proc.returncode, stdout or "", stderr or "")

    def _kill_tree(self, proc: subprocess.Popen) -> None:
        """Terminate a process and its children, escalating after the grace period."""
        try:
            if sys.platform == 'win32':
                subprocess.run(['taskkill', '/PID', str(proc.pid), '/T', '/F'],
                               stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                               timeout=self.kill_grace)
            else:
                os.killpg(proc.pid, signal.SIGTERM)
        except (ProcessLookupError, PermissionError, OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Terminate failed for pid {proc.pid}: {e}")

        try:
            proc.communicate(timeout=self.kill_grace)
            return
        except subprocess.TimeoutExpired:
            pass

        logger.warning(f"Process {proc.pid} did not exit within {self.kill_grace}s, killing")
        try:
            if sys.platform == 'win32':
                proc.kill()
            else:
                os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError, OSError) as e:
            logger.debug(f"Kill failed for pid {proc.pid}: {e}")
        try:
            proc.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            logger.error(f"Process {proc.pid} could not be reaped; continuing cleanup")

    def is_available(self, executable: str, version_arg: str = '--version') -> bool:
        """
        Check whether a tool can be started.

        Args:
            executable: Tool path or name on PATH
            version_arg: Harmless argument that makes the tool exit

        Returns:
            True if the tool ran and exited with code 0
        """
        try:
            return self.run([executable, version_arg], timeout=15).ok
        except (ToolNotFound, ProcessTimeout):
            return False
