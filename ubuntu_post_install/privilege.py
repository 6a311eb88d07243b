"""
Administrative privilege checks and the sudo keep-alive loop.
"""

import logging
import os
import threading
from typing import Optional

from ubuntu_post_install.command import CommandRunner
from ubuntu_post_install.errors import PrivilegeError

logger = logging.getLogger(__name__)


def require_admin_rights(runner: CommandRunner) -> None:
    """
    Make sure the invoking user can elevate with sudo.

    Prompts for the sudo password if no session is active.

    Raises:
        PrivilegeError: if sudo rights are unavailable
    """
    try:
        result = runner.run(["sudo", "-v"], check=False)
    except OSError as e:
        raise PrivilegeError(f"sudo could not be executed: {e}") from e
    if result.returncode != 0:
        raise PrivilegeError(
            "This program requires administrative privileges. "
            "Please run it as a user with sudo rights."
        )
    logger.info("Administrative privileges confirmed.")


def process_alive(pid: int) -> bool:
    """Return True if a process with this PID exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class SudoKeepAlive:
    """
    Periodically refresh the sudo timestamp for the lifetime of the run.

    The loop stops when the context exits or ``stop()`` is called. It also
    ends if the process that launched the run (the parent shell, by default)
    goes away. The thread is a daemon, so it never outlives the interpreter.
    """

    def __init__(
        self,
        runner: CommandRunner,
        interval: float = 60.0,
        parent_pid: Optional[int] = None,
    ):
        self.runner = runner
        self.interval = interval
        self.parent_pid = parent_pid if parent_pid is not None else os.getppid()
        self.refresh_count = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "SudoKeepAlive":
        if self.running:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="sudo-keepalive", daemon=True
        )
        self._thread.start()
        logger.debug(f"sudo keep-alive started (interval {self.interval}s)")
        return self

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.debug("sudo keep-alive stopped")

    def _loop(self) -> None:
        while True:
            if not process_alive(self.parent_pid):
                logger.debug("Parent process is gone; ending sudo keep-alive.")
                return
            try:
                self.runner.run(["sudo", "-n", "true"], capture_output=True, check=False)
                self.refresh_count += 1
            except OSError as e:
                logger.warning(f"sudo keep-alive refresh failed: {e}")
            if self._stop_event.wait(self.interval):
                return

    def __enter__(self) -> "SudoKeepAlive":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
