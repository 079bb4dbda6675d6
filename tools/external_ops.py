"""Shell command and human-input tools."""

import logging
from typing import Any, Awaitable, Callable

from backend import LocalBackend
from tools._common import _require

logger = logging.getLogger(__name__)

_MAX_OUTPUT_CHARS = 20_000


class CommandFailed(RuntimeError):
    """Shell command exited non-zero"""
    pass


def shell_command(backend: LocalBackend, command: str, timeout: int = 30) -> str:
    """Execute a shell command in the working directory.

    A non-zero exit raises CommandFailed carrying the captured output, so the
    executor reports it as a failed call.
    """
    _require(command, "command")
    result = backend.run(command, timeout=int(timeout or 30))
    stdout, stderr, rc = result.stdout, result.stderr, result.returncode

    parts = []
    if stdout:
        parts.append(stdout)
    if stderr:
        parts.append(f"[stderr]\n{stderr}")
    output = "\n".join(parts) if parts else "(no output)"

    if len(output) > _MAX_OUTPUT_CHARS:
        lines_out = output.split("\n")
        if len(lines_out) > 200:
            output = (
                "\n".join(lines_out[:100])
                + f"\n\n... [{len(lines_out) - 150} lines truncated] ...\n\n"
                + "\n".join(lines_out[-50:])
            )
        else:
            output = output[:10000] + "\n\n... [truncated] ...\n\n" + output[-5000:]

    if result.timed_out:
        raise CommandFailed(f"Command timed out after {timeout}s\n{output}")
    if rc != 0:
        raise CommandFailed(f"Command exited with code {rc}\n{output}")
    return output


def make_user_input(ask: Callable[[str], Awaitable[str]]) -> Callable[..., Awaitable[Any]]:
    """Build the user_input tool around an async question channel."""

    async def user_input(prompt: str) -> dict:
        _require(prompt, "prompt")
        answer = await ask(prompt)
        return {"user_input": answer}

    return user_input
