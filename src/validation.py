"""Preflight checks run before a scenario touches any infrastructure."""

import logging
import shutil

from config import HarnessConfig

logger = logging.getLogger(__name__)


def validate_executables(names: list[str]) -> list[str]:
    """Return an error for each executable not found on PATH."""
    errors = []
    for name in names:
        if shutil.which(name) is None:
            errors.append(f"Executable not found on PATH: {name}")
        else:
            logger.debug(f"Found executable: {name}")
    return errors


def validate_working_dir(config: HarnessConfig) -> list[str]:
    """The working directory must exist and hold provisioner configuration."""
    working_dir = config.working_dir
    if not working_dir.is_dir():
        return [f"Working directory not found: {working_dir}"]
    if not any(working_dir.glob('*.tf')):
        return [f"No *.tf files in {working_dir}"]
    return []


def validate_scenario_settings(config: HarnessConfig, scenario) -> list[str]:
    """Settings a scenario cannot run without."""
    errors = []
    if getattr(scenario, 'requires_build', False):
        if not config.deploy_version:
            errors.append(f"Scenario '{scenario.name}' requires --deploy-version")
        if not config.upgrade_ref:
            errors.append(f"Scenario '{scenario.name}' requires --upgrade-ref")
    return errors


def run_preflight_checks(config: HarnessConfig, scenario) -> list[str]:
    """Run all preflight checks. Returns a list of error messages."""
    executables = [config.provisioner, config.juju_binary]
    if getattr(scenario, 'requires_build', False):
        executables += [name for name in config.build_prerequisites if name not in executables]

    errors = validate_scenario_settings(config, scenario)
    errors += validate_working_dir(config)
    errors += validate_executables(executables)
    return errors


def format_preflight_results(scenario_name: str, errors: list[str]) -> str:
    """Format preflight results for display."""
    lines = [f"Preflight checks for {scenario_name}:"]
    if not errors:
        lines.append("  [PASS] all checks passed")
    for error in errors:
        lines.append(f"  [FAIL] {error}")
    return '\n'.join(lines)
