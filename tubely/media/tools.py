from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Sequence

from tubely.core.logging import get_logger

logger = get_logger(component="media_tools")


class ToolError(Exception):
    """An external media tool could not be run, timed out, or exited non-zero."""

    def __init__(self, message: str, *, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


@dataclass(slots=True)
class ToolResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def combined_output(self) -> str:
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def run_tool(command: Sequence[str], *, timeout_s: float, check: bool = True) -> ToolResult:
    """Run ``command`` and capture its output.

    ``subprocess.run`` kills the child when ``timeout_s`` elapses; the timeout
    surfaces as ``ToolError`` like any other failure.
    """
    logger.debug("media_tool_run", command=list(command), timeout_s=timeout_s)
    try:
        proc = subprocess.run(
            list(command),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as exc:
        output = _decode(exc.stdout) + _decode(exc.stderr)
        raise ToolError(f"{command[0]} timed out after {timeout_s:g}s", output=output) from exc
    except OSError as exc:
        raise ToolError(f"{command[0]} could not be started: {exc}") from exc

    result = ToolResult(returncode=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or "")
    if check and proc.returncode != 0:
        raise ToolError(
            f"{command[0]} exited with status {proc.returncode}",
            returncode=proc.returncode,
            output=result.combined_output,
        )
    return result


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = ["ToolError", "ToolResult", "run_tool"]
