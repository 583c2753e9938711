"""
process.py

Responsibility: Run an external executable synchronously and capture its output.

Contract:
- `run_command(cwd, executable, *args)` blocks until the child exits.
- stdout and stderr are captured independently as UTF-8 text. Lines are joined
  with `\n` and a single trailing newline is stripped.
- A non-zero exit code is a normal `CommandResult`, never an exception.
- Only failure to start the process (missing executable, missing working
  directory, pipe setup failure) raises `ProcessStartError`.

Input ordering: when `input_text` is given, all input is written and the
child's stdin is closed before stdout/stderr are drained, and the process is
waited on last. `Popen.communicate` implements exactly this sequence and
drains both pipes concurrently, so a child that fills one pipe while we are
still writing cannot deadlock us. Streams are closed and the child reaped on
every exit path by the `with` block.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

LOG = logging.getLogger(__name__)


class ProcessStartError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def _normalize_output(text: str | None) -> str:
    if not text:
        return ""
    if text.endswith("\n"):
        return text[:-1]
    return text


def run_command(
    cwd: str | Path,
    executable: str,
    *args: str,
    input_text: str | None = None,
) -> CommandResult:
    """
    Run `executable args...` in `cwd` and return its captured result.
    """
    cmd = [executable, *args]
    LOG.debug("Running command in %s: %s", cwd, " ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise ProcessStartError(f"failed to execute {executable}: {exc}") from exc

    with proc:
        stdout, stderr = proc.communicate(input=input_text)

    result = CommandResult(
        exit_code=proc.returncode,
        stdout=_normalize_output(stdout),
        stderr=_normalize_output(stderr),
    )
    if not result.success:
        LOG.debug("%s exited with %d: %s", executable, result.exit_code, result.stderr)
    return result
