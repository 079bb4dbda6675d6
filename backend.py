"""
Local workspace backend for the built-in tools.

Every path a tool touches is resolved (symlinks included) against the
working directory and must stay inside it.
"""

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class PathOutsideWorkspace(ValueError):
    """A path resolves outside the working directory"""
    pass


@dataclass
class CommandOutput:
    stdout: str
    stderr: str
    returncode: int
    timed_out: bool = False


class LocalBackend:
    """Files and shell commands confined to one directory on the local machine."""

    def __init__(self, working_directory: str = "."):
        self.working_directory = os.path.realpath(working_directory)

    def resolve(self, path: str = "") -> str:
        """Absolute, symlink-free form of path; raises PathOutsideWorkspace on escape."""
        candidate = os.path.join(self.working_directory, path) if path else self.working_directory
        real = os.path.realpath(candidate)
        if os.path.commonpath([real, self.working_directory]) != self.working_directory:
            raise PathOutsideWorkspace(f"Path escapes working directory: {path!r}")
        return real

    def exists(self, path: str) -> bool:
        return os.path.exists(self.resolve(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self.resolve(path))

    def entries(self, path: str = "") -> List[Dict[str, Any]]:
        """Directory entries sorted by name: {name, is_dir, size}."""
        with os.scandir(self.resolve(path)) as it:
            found = [
                {
                    "name": e.name,
                    "is_dir": e.is_dir(),
                    "size": 0 if e.is_dir() else e.stat().st_size,
                }
                for e in it
                if e.is_dir() or e.is_file()
            ]
        return sorted(found, key=lambda e: e["name"])

    def read_text(self, path: str) -> str:
        with open(self.resolve(path), encoding="utf-8", errors="replace") as f:
            return f.read()

    def write_text(self, path: str, content: str) -> None:
        target = self.resolve(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            f.write(content)

    def run(self, command: str, timeout: int = 30) -> CommandOutput:
        """Run a shell command in the working directory.

        The command gets its own process group so a timeout kills everything
        it spawned.
        """
        logger.info(f"Running command (timeout={timeout}s): {command[:200]}")
        proc = subprocess.Popen(
            command, shell=True, cwd=self.working_directory,
            stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
            start_new_session=True,
        )
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s, killing process group {proc.pid}")
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            stdout, stderr = proc.communicate()
            return CommandOutput(stdout or "", stderr or "", proc.returncode, timed_out=True)
        return CommandOutput(stdout or "", stderr or "", proc.returncode)
