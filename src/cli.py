#!/usr/bin/env python3
"""CLI entry point for provider-lifecycle.

Examples:
    provider-lifecycle --list-scenarios
    provider-lifecycle --scenario apply-destroy --dir ./plan
    provider-lifecycle --scenario apply-upgrade-destroy \\
        --deploy-version 0.22.0 --upgrade-ref v1.0.0-beta2
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from config import ConfigError, load_config
from scenarios import Orchestrator, get_scenario, list_scenarios
from validation import format_preflight_results, run_preflight_checks

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='provider-lifecycle',
        description='Lifecycle tests for the Juju provider: apply, settle, upgrade, destroy'
    )
    parser.add_argument(
        '--scenario', '-S',
        help='Scenario to run (see --list-scenarios)'
    )
    parser.add_argument(
        '--list-scenarios',
        action='store_true',
        help='List available scenarios and exit'
    )
    parser.add_argument(
        '--dir', '-d',
        type=Path,
        default=None,
        help='Provisioner working directory (default: current directory)'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        default=None,
        help='YAML config file (default: $PROVIDER_LIFECYCLE_CONFIG or <dir>/lifecycle.yaml)'
    )
    parser.add_argument(
        '--deploy-version',
        help='Provider version pinned for the initial deploy'
    )
    parser.add_argument(
        '--upgrade-ref',
        help='Git ref of the provider to build for the upgrade re-apply'
    )
    parser.add_argument(
        '--provisioner',
        choices=['terraform', 'tofu'],
        help='Provisioner binary (default: terraform)'
    )
    parser.add_argument(
        '--model', '-m',
        help='Juju model to wait on (default: main)'
    )
    parser.add_argument(
        '--report-dir', '-r',
        type=Path,
        default=Path('reports'),
        help='Directory for run reports (default: ./reports)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show phases without executing'
    )
    parser.add_argument(
        '--preflight',
        action='store_true',
        help='Run preflight checks only'
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Do not run preflight checks before the scenario'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the run result as JSON on stdout'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def main(argv=None) -> int:
    """Entry point. Returns process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.list_scenarios:
        print("Available scenarios:")
        for name in list_scenarios():
            print(f"  {name:<24} {get_scenario(name).description}")
        return 0

    if not args.scenario:
        print("Error: --scenario is required (see --list-scenarios)")
        return 1

    try:
        scenario = get_scenario(args.scenario)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    try:
        config = load_config(
            working_dir=args.dir.resolve() if args.dir else None,
            config_file=args.config,
            overrides={
                'deploy_version': args.deploy_version,
                'upgrade_ref': args.upgrade_ref,
                'provisioner': args.provisioner,
                'model': args.model,
            }
        )
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if args.preflight or not (args.skip_preflight or args.dry_run):
        errors = run_preflight_checks(config, scenario)
        if args.preflight or errors:
            print(format_preflight_results(scenario.name, errors))
            return 1 if errors else 0

    orchestrator = Orchestrator(
        scenario=scenario,
        config=config,
        report_dir=args.report_dir,
        dry_run=args.dry_run
    )
    success = orchestrator.run()

    if args.json and not args.dry_run:
        print(json.dumps(orchestrator.report.to_dict(), indent=2))

    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
