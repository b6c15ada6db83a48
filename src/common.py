"""Common utilities and types for the lifecycle harness."""

import logging
import subprocess
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """An external command exited non-zero."""

    def __init__(self, cmd: list[str], returncode: int, output: str = ''):
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        detail = f": {output.strip()}" if output.strip() else ''
        super().__init__(f"{' '.join(cmd)} exited with {returncode}{detail}")


@dataclass
class ActionResult:
    """Result returned by an action."""
    success: bool
    message: str = ''
    duration: float = 0.0
    context_updates: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PhaseOutcome:
    """Completion mark of a phase on the run timeline."""
    name: str
    timestamp: datetime
    elapsed: float  # seconds since the previous mark


class Timeline:
    """Sequence of phase completion marks.

    Only deltas between adjacent marks are meaningful.
    """

    def __init__(self):
        self._last = time.monotonic()
        self.outcomes: list[PhaseOutcome] = []

    def mark(self, name: str) -> PhaseOutcome:
        now = time.monotonic()
        outcome = PhaseOutcome(name=name, timestamp=datetime.now(), elapsed=now - self._last)
        self._last = now
        self.outcomes.append(outcome)
        return outcome


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = 600,
    capture: bool = True,
    env: Optional[dict] = None
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr).

    With capture=False the child inherits our stdout/stderr, so its output
    goes straight to the console and the returned strings are empty.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, result.stdout or '', result.stderr or ''
    except subprocess.TimeoutExpired:
        return -1, '', f'Command timed out after {timeout}s'
    except OSError as e:
        return -1, '', str(e)


def run_checked(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = 600,
    capture: bool = True,
    env: Optional[dict] = None
) -> str:
    """Run a command, raising CommandError on non-zero exit. Returns stdout."""
    rc, out, err = run_command(cmd, cwd=cwd, timeout=timeout, capture=capture, env=env)
    if rc != 0:
        raise CommandError(cmd, rc, err or out)
    return out


def run_streaming(
    cmd: list[str],
    cwd: Optional[Path] = None,
    env: Optional[dict] = None
) -> tuple[int, str]:
    """Run a command, echoing its combined output while capturing it.

    Returns (returncode, output). No timeout: the command runs to its own
    completion.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    lines: list[str] = []
    try:
        with subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        ) as proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                sys.stdout.write(line)
                lines.append(line)
            sys.stdout.flush()
            returncode = proc.wait()
    except OSError as e:
        return -1, str(e)
    return returncode, ''.join(lines)
