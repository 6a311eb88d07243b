"""
Command execution helpers shared by every adapter.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------
# Command Runner
# ----------------------------------------------------------------
class CommandRunner:
    """Run external programs synchronously with logging and error handling."""

    def run(
        self,
        command: Sequence[str],
        capture_output: bool = False,
        check: bool = True,
        input: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """
        Execute a command and wait for it to exit.

        Args:
            command: Command as a list of strings
            capture_output: Whether to capture stdout/stderr
            check: Whether to raise on a non-zero exit code
            input: Optional text fed to the command's stdin

        Returns:
            CompletedProcess instance with command results
        """
        cmd_str = " ".join(command)
        logger.debug(f"Executing: {cmd_str}")
        try:
            return subprocess.run(
                list(command),
                capture_output=capture_output,
                text=True,
                check=check,
                input=input,
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Command failed with exit code {e.returncode}: {cmd_str}")
            if e.stdout:
                logger.error(f"Command stdout: {e.stdout.strip()}")
            if e.stderr:
                logger.error(f"Command stderr: {e.stderr.strip()}")
            raise

    def succeeds(self, command: Sequence[str]) -> bool:
        """Return True if the command exits with status 0, discarding its output."""
        result = self.run(command, capture_output=True, check=False)
        return result.returncode == 0

    def output(self, command: Sequence[str]) -> str:
        """Run a command that must succeed and return its stripped stdout."""
        result = self.run(command, capture_output=True)
        return (result.stdout or "").strip()


def sudo(*args: str) -> List[str]:
    """Prefix a command with sudo."""
    return ["sudo", *args]


# ----------------------------------------------------------------
# Filesystem Helpers
# ----------------------------------------------------------------
def command_exists(command: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command) is not None


def backup_file(file_path: Union[str, Path], suffix: str = ".bak") -> Optional[Path]:
    """
    Copy a file next to itself before it is modified.

    Args:
        file_path: Path to the file to back up
        suffix: Suffix appended to the file name

    Returns:
        Path to the backup file or None if the source does not exist
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        logger.warning(f"File {file_path} not found; skipping backup.")
        return None
    backup_path = file_path.with_name(file_path.name + suffix)
    shutil.copy2(file_path, backup_path)
    logger.info(f"Backed up {file_path} to {backup_path}")
    return backup_path
