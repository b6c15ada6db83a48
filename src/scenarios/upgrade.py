"""Provider upgrade lifecycle.

Deploys with the released provider pinned in versions.tf, builds the
upgrade target from source, and re-applies through a dev_overrides CLI
config. The re-apply must be a strict no-op: swapping the provider binary
without touching configuration should change nothing.
"""

from actions import (
    ApplyAndVerifyAction,
    BuildProviderAction,
    PinProviderVersionAction,
    RemoveLocalStateAction,
    WaitForSettledAction,
)
from actions.file import DATA_DIR, LOCK_FILE
from config import HarnessConfig
from scenarios import Phase, register_scenario
from scenarios.apply_destroy import destroy_phases, fallback_cleanup
from verify import SummaryKind


@register_scenario
class ApplyUpgradeDestroy:
    """Deploy with a released provider, re-apply with a source build, destroy."""

    name = 'apply-upgrade-destroy'
    description = 'Apply, build provider from source, verify no-op re-apply, destroy'
    requires_build = True

    def get_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return phases for the upgrade lifecycle."""
        return [
            ('pin', PinProviderVersionAction(
                name='pin',
            ), f'Pin provider to {config.deploy_version}'),
            ('apply', ApplyAndVerifyAction(
                name='apply',
            ), 'Initial apply and verify summary'),
            ('settle', WaitForSettledAction(
                name='settle',
            ), 'Wait until all units are active and idle'),
            ('build', BuildProviderAction(
                name='build',
            ), f'Build provider {config.upgrade_ref} from source'),
            ('reapply', ApplyAndVerifyAction(
                name='reapply',
                kind=SummaryKind.REAPPLY,
            ), 'Re-apply with built provider and verify no changes'),
            ('resettle', WaitForSettledAction(
                name='resettle',
            ), 'Wait until all units are active and idle'),
        ] + destroy_phases()

    def get_cleanup_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return fallback cleanup.

        The lock file and plugin caches may reference the built provider, so
        they go first and init re-primes state before the fallback destroy.
        """
        return [
            ('cleanup-cache', RemoveLocalStateAction(
                name='cleanup-cache',
                paths=[LOCK_FILE, DATA_DIR],
                plugin_cache=True,
            ), f'Remove {LOCK_FILE}, {DATA_DIR} and provider plugin cache'),
        ] + fallback_cleanup(reinit=True) + [
            ('cleanup-build', RemoveLocalStateAction(
                name='cleanup-build',
                paths=[],
                context_keys=['build_dir'],
            ), 'Remove provider build directory'),
        ]
