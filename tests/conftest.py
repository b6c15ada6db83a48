"""Shared pytest fixtures for provider-lifecycle tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import HarnessConfig  # noqa: E402


APPLY_OUTPUT = """\
juju_model.main: Creating...
juju_model.main: Creation complete after 1s [id=main]
juju_application.app: Creating...
juju_application.app: Creation complete after 4s [id=main:app]

Apply complete! Resources: 2 added, 0 changed, 0 destroyed.
"""

REAPPLY_OUTPUT = """\
No changes. Your infrastructure matches the configuration.

Apply complete! Resources: 0 added, 0 changed, 0 destroyed.
"""

DESTROY_OUTPUT = """\
juju_application.app: Destroying... [id=main:app]
juju_application.app: Destruction complete after 2s

Destroy complete! Resources: 2 destroyed.
"""


@pytest.fixture
def working_dir(tmp_path):
    """Provisioner working directory with a minimal plan."""
    plan = tmp_path / 'plan'
    plan.mkdir()
    (plan / 'main.tf').write_text('resource "juju_application" "app" {}\n')
    (plan / 'versions.tf').write_text('# original versions.tf\n')
    return plan


@pytest.fixture
def harness_config(working_dir):
    """HarnessConfig pointed at the temporary working directory."""
    return HarnessConfig(
        working_dir=working_dir,
        deploy_version='0.22.0',
        upgrade_ref='v1.0.0-beta2',
    )


@pytest.fixture
def home_dir(tmp_path, monkeypatch):
    """Isolated $HOME so plugin cache removal stays in tmp_path."""
    home = tmp_path / 'home'
    home.mkdir()
    monkeypatch.setenv('HOME', str(home))
    return home
