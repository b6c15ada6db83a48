"""Plain deploy/destroy lifecycle.

Apply, wait for every unit to be active, destroy, wait for the model to
settle. The fallback cleanup destroys again and removes local state.
"""

from actions import (
    ApplyAndVerifyAction,
    DestroyAndVerifyAction,
    FallbackDestroyAction,
    PinProviderVersionAction,
    RemoveLocalStateAction,
    RestoreVersionsAction,
    WaitForSettledAction,
)
from actions.file import STATE_FILE
from config import HarnessConfig
from scenarios import Phase, register_scenario


def destroy_phases() -> list[Phase]:
    """Destroy and the post-destroy wait, shared by all scenarios."""
    return [
        ('destroy', DestroyAndVerifyAction(
            name='destroy',
        ), 'Destroy and verify summary'),
        # Only reliable while the destroy is still in progress
        ('destroyed', WaitForSettledAction(
            name='destroyed',
            query=None,
        ), 'Wait for model to settle after destroy'),
    ]


def fallback_cleanup(reinit: bool = False) -> list[Phase]:
    """Destroy whatever is left, then drop the state file and restore config."""
    return [
        ('cleanup-destroy', FallbackDestroyAction(
            name='cleanup-destroy',
            reinit=reinit,
        ), 'Provisioner-level destroy'),
        ('cleanup-wait', WaitForSettledAction(
            name='cleanup-wait',
            query=None,
            best_effort=True,
        ), 'juju wait-for (result ignored)'),
        ('cleanup-state', RemoveLocalStateAction(
            name='cleanup-state',
            paths=[STATE_FILE],
        ), f'Remove {STATE_FILE}'),
        ('cleanup-restore', RestoreVersionsAction(
            name='cleanup-restore',
        ), 'Restore versions file'),
    ]


@register_scenario
class ApplyDestroy:
    """Deploy, settle and tear down."""

    name = 'apply-destroy'
    description = 'Apply, wait for active units, destroy'

    def get_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return phases for the plain lifecycle."""
        phases: list[Phase] = []
        if config.deploy_version:
            phases.append(('pin', PinProviderVersionAction(
                name='pin',
            ), f'Pin provider to {config.deploy_version}'))
        phases += [
            ('apply', ApplyAndVerifyAction(
                name='apply',
            ), 'Initial apply and verify summary'),
            ('settle', WaitForSettledAction(
                name='settle',
            ), 'Wait until all units are active and idle'),
        ]
        return phases + destroy_phases()

    def get_cleanup_phases(self, config: HarnessConfig) -> list[Phase]:
        """Return fallback cleanup."""
        return fallback_cleanup()
