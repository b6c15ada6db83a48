"""Lifecycle scenarios and their orchestration."""

import logging
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from common import Timeline
from config import HarnessConfig
from reporting import TestReport

logger = logging.getLogger(__name__)

Phase = tuple[str, Any, str]


@runtime_checkable
class Scenario(Protocol):
    """Protocol for scenario definitions.

    Class attributes:
        name: Scenario identifier (e.g., 'apply-destroy')
        description: Human-readable description
        requires_build: If True, preflight also checks build prerequisites (default: False)
    """
    name: str
    description: str

    def get_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return list of (phase_name, action, description) tuples."""
        ...

    def get_cleanup_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return the fallback cleanup, run once whatever the outcome."""
        ...


class Orchestrator:
    """Runs a scenario's phases in order, then its fallback cleanup.

    The first failed phase aborts the remaining ones. Cleanup steps are
    best-effort: their failures are logged and reported but never change
    the run's result.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: HarnessConfig,
        report_dir: Path,
        dry_run: bool = False
    ):
        self.scenario = scenario
        self.config = config
        self.report_dir = report_dir
        self.dry_run = dry_run
        self.report = TestReport(target=config.model, report_dir=report_dir, scenario=scenario.name)
        self.timeline = Timeline()
        self.context: dict[str, Any] = {}

    def preview(self) -> bool:
        """Show what would be executed without running. Returns True."""
        print("")
        print("═══════════════════════════════════════════════════════════════")
        print(f"  DRY-RUN: {self.scenario.name}")
        print(f"  Working dir: {self.config.working_dir}")
        print(f"  Model: {self.config.model}")
        print("═══════════════════════════════════════════════════════════════")
        print("")

        sections = [
            ("Phases to execute:", self.scenario.get_phases(self.config)),
            ("Fallback cleanup (always runs):", self.scenario.get_cleanup_phases(self.config)),
        ]
        for title, phases in sections:
            print(title)
            for phase_name, action, description in phases:
                print(f"  {phase_name}: {description}")
                print(f"         Action: {type(action).__name__}")
            print("")

        print("═══════════════════════════════════════════════════════════════")
        print("  Mode: DRY-RUN (no changes made)")
        print("═══════════════════════════════════════════════════════════════")
        print("")
        return True

    def run(self) -> bool:
        """Run all phases and the cleanup. Returns True if all phases passed."""
        if self.dry_run:
            return self.preview()

        logger.info(f"Starting scenario '{self.scenario.name}' in {self.config.working_dir}")
        self.report.start()
        start_time = time.time()

        phases = self.scenario.get_phases(self.config)
        # Registered before the first provisioning operation
        cleanup = self.scenario.get_cleanup_phases(self.config)

        all_passed = False
        try:
            all_passed = self._run_phases(phases)
        finally:
            self._run_cleanup(cleanup)
            total_time = time.time() - start_time
            logger.info(f"Scenario completed in {total_time:.1f}s")
            self.report.finish(all_passed)
        return all_passed

    def _run_phases(self, phases: list[Phase]) -> bool:
        for phase_name, action, description in phases:
            logger.info(f"Running phase: {phase_name} - {description}")
            self.report.start_phase(phase_name, description)

            try:
                result = action.run(self.config, self.context)
            except Exception as e:
                logger.exception(f"Phase {phase_name} raised exception")
                self.report.fail_phase(phase_name, str(e), self.timeline.mark(phase_name).elapsed)
                return False

            outcome = self.timeline.mark(phase_name)
            if not result.success:
                logger.error(f"Phase {phase_name} failed: {result.message}")
                self.report.fail_phase(phase_name, result.message, outcome.elapsed)
                return False

            logger.info(f"Phase {phase_name} passed ({outcome.elapsed:.1f}s since previous phase)")
            self.report.pass_phase(phase_name, result.message, outcome.elapsed)
            self.context.update(result.context_updates or {})
        return True

    def _run_cleanup(self, cleanup: list[Phase]) -> None:
        logger.info("Cleanup: tearing down (if not already torn down)")
        for phase_name, action, description in cleanup:
            logger.info(f"Cleanup: {description}")
            try:
                result = action.run(self.config, self.context)
            except Exception as e:
                # The run is already ending; nothing more can be done
                logger.warning(f"Cleanup step {phase_name} raised: {e}")
                self.report.record_cleanup(phase_name, description, False, str(e))
                continue
            if not result.success:
                logger.warning(f"Cleanup step {phase_name} failed: {result.message}")
            self.report.record_cleanup(phase_name, description, result.success, result.message, result.duration)


# Registry of available scenarios
_scenarios: dict[str, type[Scenario]] = {}


def register_scenario(cls: type[Scenario]) -> type[Scenario]:
    """Decorator to register a scenario class."""
    _scenarios[cls.name] = cls
    return cls


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in _scenarios:
        available = list(_scenarios.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return _scenarios[name]()


def list_scenarios() -> list[str]:
    """List available scenario names."""
    return sorted(_scenarios.keys())


# Import scenarios to trigger registration
from scenarios import apply_destroy  # noqa: E402, F401
from scenarios import upgrade  # noqa: E402, F401
