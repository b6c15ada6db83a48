"""Tests for juju settle-wait actions."""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from actions.juju import ACTIVE_UNITS_QUERY, SettleTimeout, WaitForSettledAction, wait_for_model


class TestWaitForModel:
    """Test wait_for_model command construction."""

    def test_with_query(self):
        """Should pass the query as a single --query argument."""
        with patch('actions.juju.run_command', return_value=(0, '', '')) as mock_cmd:
            wait_for_model('main', ACTIVE_UNITS_QUERY)

        cmd = mock_cmd.call_args.args[0]
        assert cmd == ['juju', 'wait-for', 'model', 'main', f'--query={ACTIVE_UNITS_QUERY}']

    def test_without_query(self):
        """The post-destroy variant should omit --query."""
        with patch('actions.juju.run_command', return_value=(0, '', '')) as mock_cmd:
            wait_for_model('main')

        assert mock_cmd.call_args.args[0] == ['juju', 'wait-for', 'model', 'main']

    def test_timeout_passed_to_juju(self):
        """A configured timeout should be handed to juju, not subprocess."""
        with patch('actions.juju.run_command', return_value=(0, '', '')) as mock_cmd:
            wait_for_model('dev', timeout='20m')

        assert '--timeout=20m' in mock_cmd.call_args.args[0]
        assert mock_cmd.call_args.kwargs['timeout'] is None

    def test_output_passes_through(self):
        """Output should go to the console rather than be captured."""
        with patch('actions.juju.run_command', return_value=(0, '', '')) as mock_cmd:
            wait_for_model()

        assert mock_cmd.call_args.kwargs['capture'] is False

    def test_nonzero_exit_raises(self):
        """A non-zero exit should raise SettleTimeout."""
        with patch('actions.juju.run_command', return_value=(1, '', '')):
            with pytest.raises(SettleTimeout, match="did not settle"):
                wait_for_model('main', ACTIVE_UNITS_QUERY)

    def test_query_checks_all_unit_states(self):
        """The active-units query should cover life, workload and agent status."""
        assert 'unit.life=="alive"' in ACTIVE_UNITS_QUERY
        assert 'unit.workload-status=="active"' in ACTIVE_UNITS_QUERY
        assert 'unit.agent-status=="idle"' in ACTIVE_UNITS_QUERY


class TestWaitForSettledAction:
    """Test WaitForSettledAction."""

    def test_success(self, harness_config):
        """A settled model should pass."""
        with patch('actions.juju.run_command', return_value=(0, '', '')):
            result = WaitForSettledAction(name='settle').run(harness_config, {})
        assert result.success is True

    def test_uses_configured_model(self, harness_config):
        """Should wait on config.model with config.juju_binary."""
        harness_config.model = 'staging'
        harness_config.juju_binary = '/snap/bin/juju'
        with patch('actions.juju.run_command', return_value=(0, '', '')) as mock_cmd:
            WaitForSettledAction(name='settle', query=None).run(harness_config, {})
        assert mock_cmd.call_args.args[0] == ['/snap/bin/juju', 'wait-for', 'model', 'staging']

    def test_failure(self, harness_config):
        """A wait failure should fail the phase."""
        with patch('actions.juju.run_command', return_value=(1, '', 'timed out')):
            result = WaitForSettledAction(name='settle').run(harness_config, {})
        assert result.success is False
        assert 'timed out' in result.message

    def test_best_effort_ignores_failure(self, harness_config):
        """best_effort should report success even when the wait fails."""
        with patch('actions.juju.run_command', return_value=(1, '', '')):
            result = WaitForSettledAction(name='cleanup-wait', query=None, best_effort=True).run(harness_config, {})
        assert result.success is True
        assert result.message.startswith('Ignored')
