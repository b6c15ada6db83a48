"""Reusable lifecycle actions."""

from actions.tofu import (
    ApplyAndVerifyAction,
    DestroyAndVerifyAction,
    FallbackDestroyAction,
)
from actions.juju import WaitForSettledAction
from actions.build import BuildProviderAction
from actions.file import PinProviderVersionAction, RestoreVersionsAction, RemoveLocalStateAction

__all__ = [
    'ApplyAndVerifyAction',
    'DestroyAndVerifyAction',
    'FallbackDestroyAction',
    'WaitForSettledAction',
    'BuildProviderAction',
    'PinProviderVersionAction',
    'RestoreVersionsAction',
    'RemoveLocalStateAction',
]
