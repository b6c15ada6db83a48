"""Provisioner (terraform/tofu) driver and apply/destroy phase actions."""

import logging
import os
import re
import time
from dataclasses import dataclass, field, replace
from pathlib import Path

from common import ActionResult, run_streaming
from config import HarnessConfig
from verify import SummaryKind, VerificationError, verify

logger = logging.getLogger(__name__)

# Environment variable naming the CLI config file that carries dev_overrides
CLI_CONFIG_ENV = 'TF_CLI_CONFIG_FILE'

# Known transient failures of provider installation and plugin startup
DEFAULT_RETRYABLE_ERRORS = {
    r'.*read: connection reset by peer.*': 'Connection reset by peer',
    r'.*handshake timeout.*': 'TLS handshake timeout',
    r'(?s).*Error installing provider.*tcp.*connection reset by peer.*': 'Provider download reset',
    r'.*Failed to query available provider packages.*': 'Registry query failed',
    r'.*could not query provider registry for.*': 'Registry unreachable',
    r'.*timeout while waiting for plugin to start.*': 'Plugin start timeout',
    r'.*timed out waiting for server handshake.*': 'Plugin handshake timeout',
}


class ProvisionerError(Exception):
    """A provisioner operation exited non-zero."""

    def __init__(self, operation: str, returncode: int, output: str = ''):
        self.operation = operation
        self.returncode = returncode
        self.output = output
        super().__init__(f"{operation} failed with exit code {returncode}")


@dataclass(frozen=True)
class ProvisionOptions:
    """How to invoke the provisioner for one phase.

    Immutable: use with_env() to derive options carrying extra environment.
    """
    working_dir: Path
    binary: str = 'terraform'
    env: dict = field(default_factory=dict)
    retryable_errors: dict = field(default_factory=lambda: dict(DEFAULT_RETRYABLE_ERRORS))
    max_retries: int = 0
    time_between_retries: float = 5.0

    @classmethod
    def from_config(cls, config: HarnessConfig) -> 'ProvisionOptions':
        return cls(
            working_dir=config.working_dir,
            binary=config.provisioner,
            max_retries=config.max_retries,
            time_between_retries=config.time_between_retries,
        )

    def with_env(self, **overrides: str) -> 'ProvisionOptions':
        return replace(self, env={**self.env, **overrides})


class Provisioner:
    """Runs init/apply/destroy in a working directory."""

    def __init__(self, options: ProvisionOptions):
        self.options = options

    def _environ(self) -> dict:
        # Summary lines are only matched in English
        return {**os.environ, 'TF_IN_AUTOMATION': '1', 'LC_ALL': 'C', **self.options.env}

    def _retryable(self, output: str) -> str | None:
        for pattern, description in self.options.retryable_errors.items():
            if re.search(pattern, output):
                return description
        return None

    def _run(self, operation: str, *args: str) -> str:
        cmd = [self.options.binary, *args]
        attempt = 0
        while True:
            rc, output = run_streaming(cmd, cwd=self.options.working_dir, env=self._environ())
            if rc == 0:
                return output
            description = self._retryable(output)
            if description is None or attempt >= self.options.max_retries:
                raise ProvisionerError(operation, rc, output)
            attempt += 1
            logger.warning(f"{operation} hit a retryable error ({description}); "
                           f"retry {attempt}/{self.options.max_retries} in {self.options.time_between_retries}s")
            time.sleep(self.options.time_between_retries)

    def init(self) -> None:
        """Run init, discarding output."""
        self._run('init', 'init', '-input=false')

    def init_and_apply(self) -> str:
        """Run init then apply; returns apply output."""
        self._run('init', 'init', '-upgrade=false', '-input=false')
        return self._run('apply', 'apply', '-auto-approve', '-input=false', '-lock=true')

    def destroy(self) -> str:
        return self._run('destroy', 'destroy', '-auto-approve', '-input=false')


def options_for_phase(config: HarnessConfig, context: dict) -> ProvisionOptions:
    """Build fresh options for a phase, routing through an override if present."""
    options = ProvisionOptions.from_config(config)
    override_file = context.get('override_file')
    if override_file:
        options = options.with_env(**{CLI_CONFIG_ENV: str(override_file)})
    return options


@dataclass
class ApplyAndVerifyAction:
    """Run init + apply and verify the summary line.

    kind=APPLY expects additions only; kind=REAPPLY expects a strict no-op
    and routes through the provider override produced by the build phase.
    """
    name: str
    kind: SummaryKind = SummaryKind.APPLY

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Execute apply and verify its summary."""
        start = time.time()

        if self.kind is SummaryKind.REAPPLY and not context.get('override_file'):
            return ActionResult(
                success=False,
                message="No override_file in context; build phase must run first",
                duration=time.time() - start
            )

        options = options_for_phase(config, context) if self.kind is SummaryKind.REAPPLY \
            else ProvisionOptions.from_config(config)
        if CLI_CONFIG_ENV in options.env:
            logger.info(f"[{self.name}] Using provider override: {options.env[CLI_CONFIG_ENV]}")

        logger.info(f"[{self.name}] Running {options.binary} init + apply in {options.working_dir}...")
        try:
            output = Provisioner(options).init_and_apply()
        except ProvisionerError as e:
            return ActionResult(
                success=False,
                message=f"{options.binary} {e}",
                duration=time.time() - start
            )

        try:
            summary = verify(self.kind, output)
        except VerificationError as e:
            return ActionResult(
                success=False,
                message=str(e),
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"{self.kind.value.capitalize()} verified: {summary.describe()}",
            duration=time.time() - start
        )


@dataclass
class DestroyAndVerifyAction:
    """Run destroy and verify at least one resource was destroyed."""
    name: str

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Execute destroy and verify its summary."""
        start = time.time()
        options = options_for_phase(config, context)

        logger.info(f"[{self.name}] Running {options.binary} destroy in {options.working_dir}...")
        try:
            output = Provisioner(options).destroy()
            summary = verify(SummaryKind.DESTROY, output)
        except ProvisionerError as e:
            return ActionResult(
                success=False,
                message=f"{options.binary} {e}",
                duration=time.time() - start
            )
        except VerificationError as e:
            return ActionResult(
                success=False,
                message=str(e),
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"Destroy verified: {summary.destroyed} destroyed",
            duration=time.time() - start
        )


@dataclass
class FallbackDestroyAction:
    """Destroy without verifying the summary (cleanup)."""
    name: str
    reinit: bool = False  # re-prime local state before destroying

    def run(self, config: HarnessConfig, _context: dict) -> ActionResult:
        """Best-effort destroy; never routes through an override."""
        start = time.time()
        provisioner = Provisioner(ProvisionOptions.from_config(config))
        try:
            if self.reinit:
                logger.info(f"[{self.name}] Re-running init before destroy...")
                provisioner.init()
            logger.info(f"[{self.name}] Destroying (if not already destroyed)...")
            provisioner.destroy()
        except ProvisionerError as e:
            return ActionResult(
                success=False,
                message=str(e),
                duration=time.time() - start
            )
        return ActionResult(
            success=True,
            message="Fallback destroy completed",
            duration=time.time() - start
        )
