"""Juju model settle-wait actions."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from common import ActionResult, run_command
from config import HarnessConfig

logger = logging.getLogger(__name__)

# Every unit alive, active and idle
ACTIVE_UNITS_QUERY = (
    'forEach(units, unit => unit.life=="alive" && '
    'unit.workload-status=="active" && unit.agent-status=="idle")'
)


class SettleTimeout(Exception):
    """juju wait-for exited non-zero (timeout or failure)."""


def wait_for_model(
    model: str = 'main',
    query: Optional[str] = None,
    timeout: Optional[str] = None,
    juju: str = 'juju'
) -> None:
    """Block until juju reports the model settled.

    Without a query this only reliably detects settlement while a destroy
    is in progress; it is not a definitive "model is empty" check.
    """
    cmd = [juju, 'wait-for', 'model', model]
    if query:
        cmd.append(f'--query={query}')
    if timeout:
        cmd.append(f'--timeout={timeout}')

    # juju enforces its own timeout
    rc, _, err = run_command(cmd, timeout=None, capture=False)
    if rc != 0:
        detail = f": {err}" if err else ''
        raise SettleTimeout(f"Model '{model}' did not settle (exit code {rc}){detail}")


@dataclass
class WaitForSettledAction:
    """Wait for the model to settle, optionally until query holds."""
    name: str
    query: Optional[str] = ACTIVE_UNITS_QUERY
    best_effort: bool = False  # report success regardless (cleanup)

    def run(self, config: HarnessConfig, _context: dict) -> ActionResult:
        """Run juju wait-for against the configured model."""
        start = time.time()
        what = 'all units active' if self.query else 'settled'
        logger.info(f"[{self.name}] Waiting for model '{config.model}' ({what})...")

        try:
            wait_for_model(config.model, self.query, config.wait_timeout, juju=config.juju_binary)
        except SettleTimeout as e:
            if self.best_effort:
                logger.info(f"[{self.name}] Ignoring wait result: {e}")
                return ActionResult(
                    success=True,
                    message=f"Ignored: {e}",
                    duration=time.time() - start
                )
            return ActionResult(
                success=False,
                message=str(e),
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"Model '{config.model}' {what}",
            duration=time.time() - start
        )
