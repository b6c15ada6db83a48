"""Tests for the provisioner driver and apply/destroy actions."""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from conftest import APPLY_OUTPUT, DESTROY_OUTPUT, REAPPLY_OUTPUT


class TestProvisionOptions:
    """Test ProvisionOptions."""

    def test_from_config(self, harness_config):
        """Options should follow the harness config."""
        from actions.tofu import ProvisionOptions
        harness_config.provisioner = 'tofu'
        harness_config.max_retries = 2
        options = ProvisionOptions.from_config(harness_config)
        assert options.binary == 'tofu'
        assert options.working_dir == harness_config.working_dir
        assert options.max_retries == 2
        assert options.env == {}

    def test_with_env_returns_new_value(self, tmp_path):
        """with_env should not mutate the original options."""
        from actions.tofu import ProvisionOptions
        base = ProvisionOptions(working_dir=tmp_path)
        derived = base.with_env(TF_CLI_CONFIG_FILE='/tmp/x.tfrc')
        assert base.env == {}
        assert derived.env == {'TF_CLI_CONFIG_FILE': '/tmp/x.tfrc'}

    def test_options_for_phase_routes_override(self, harness_config):
        """An override_file in context should set TF_CLI_CONFIG_FILE."""
        from actions.tofu import options_for_phase, CLI_CONFIG_ENV
        options = options_for_phase(harness_config, {'override_file': '/b/provider-override.tfrc'})
        assert options.env[CLI_CONFIG_ENV] == '/b/provider-override.tfrc'
        assert CLI_CONFIG_ENV not in options_for_phase(harness_config, {}).env


class TestProvisioner:
    """Test Provisioner command sequencing."""

    def test_init_and_apply_commands(self, tmp_path):
        """init_and_apply should run init then apply and return apply output."""
        from actions.tofu import Provisioner, ProvisionOptions
        provisioner = Provisioner(ProvisionOptions(working_dir=tmp_path))

        with patch('actions.tofu.run_streaming') as mock_run:
            mock_run.side_effect = [(0, 'Initialized'), (0, APPLY_OUTPUT)]
            output = provisioner.init_and_apply()

        assert output == APPLY_OUTPUT
        cmds = [c.args[0] for c in mock_run.call_args_list]
        assert cmds[0] == ['terraform', 'init', '-upgrade=false', '-input=false']
        assert cmds[1] == ['terraform', 'apply', '-auto-approve', '-input=false', '-lock=true']
        assert mock_run.call_args_list[1].kwargs['cwd'] == tmp_path

    def test_environment_forces_c_locale(self, tmp_path):
        """Commands should run with LC_ALL=C and the option overrides."""
        from actions.tofu import Provisioner, ProvisionOptions
        options = ProvisionOptions(working_dir=tmp_path).with_env(TF_CLI_CONFIG_FILE='/x.tfrc')

        with patch('actions.tofu.run_streaming', return_value=(0, DESTROY_OUTPUT)) as mock_run:
            Provisioner(options).destroy()

        env = mock_run.call_args.kwargs['env']
        assert env['LC_ALL'] == 'C'
        assert env['TF_CLI_CONFIG_FILE'] == '/x.tfrc'

    def test_nonzero_exit_raises(self, tmp_path):
        """A failing init should raise and skip apply."""
        from actions.tofu import Provisioner, ProvisionOptions, ProvisionerError
        provisioner = Provisioner(ProvisionOptions(working_dir=tmp_path))

        with patch('actions.tofu.run_streaming', return_value=(1, 'Error: bad')) as mock_run:
            with pytest.raises(ProvisionerError) as exc_info:
                provisioner.init_and_apply()

        assert exc_info.value.operation == 'init'
        assert exc_info.value.returncode == 1
        assert mock_run.call_count == 1

    def test_single_attempt_by_default(self, tmp_path):
        """Retryable errors should not be retried when max_retries is 0."""
        from actions.tofu import Provisioner, ProvisionOptions, ProvisionerError
        provisioner = Provisioner(ProvisionOptions(working_dir=tmp_path))

        with patch('actions.tofu.run_streaming', return_value=(1, 'read: connection reset by peer')) as mock_run, \
             patch('actions.tofu.time.sleep'):
            with pytest.raises(ProvisionerError):
                provisioner.destroy()

        assert mock_run.call_count == 1

    def test_retries_matching_errors(self, tmp_path):
        """Retryable errors should be retried up to max_retries."""
        from actions.tofu import Provisioner, ProvisionOptions
        options = ProvisionOptions(working_dir=tmp_path, max_retries=2, time_between_retries=0)

        with patch('actions.tofu.run_streaming') as mock_run, \
             patch('actions.tofu.time.sleep') as mock_sleep:
            mock_run.side_effect = [
                (1, 'Error: Failed to query available provider packages'),
                (0, DESTROY_OUTPUT),
            ]
            output = Provisioner(options).destroy()

        assert output == DESTROY_OUTPUT
        assert mock_run.call_count == 2
        mock_sleep.assert_called_once_with(0)

    def test_does_not_retry_other_errors(self, tmp_path):
        """Errors not in the table should fail immediately."""
        from actions.tofu import Provisioner, ProvisionOptions, ProvisionerError
        options = ProvisionOptions(working_dir=tmp_path, max_retries=3)

        with patch('actions.tofu.run_streaming', return_value=(1, 'Error: Invalid reference')) as mock_run:
            with pytest.raises(ProvisionerError):
                Provisioner(options).init()

        assert mock_run.call_count == 1


class TestApplyAndVerifyAction:
    """Test ApplyAndVerifyAction."""

    def test_apply_success(self, harness_config):
        """A verified apply should succeed."""
        from actions.tofu import ApplyAndVerifyAction

        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (0, APPLY_OUTPUT)]):
            result = ApplyAndVerifyAction(name='apply').run(harness_config, {})

        assert result.success is True
        assert '2 added' in result.message

    def test_apply_verification_failure(self, harness_config):
        """An apply that added nothing should fail with the reason."""
        from actions.tofu import ApplyAndVerifyAction

        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (0, REAPPLY_OUTPUT)]):
            result = ApplyAndVerifyAction(name='apply').run(harness_config, {})

        assert result.success is False
        assert 'Zero "added" count on apply' in result.message

    def test_apply_command_failure(self, harness_config):
        """A non-zero apply should fail without verifying."""
        from actions.tofu import ApplyAndVerifyAction

        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (1, 'Error')]), \
             patch('actions.tofu.verify') as mock_verify:
            result = ApplyAndVerifyAction(name='apply').run(harness_config, {})

        assert result.success is False
        assert 'apply failed' in result.message
        mock_verify.assert_not_called()

    def test_apply_ignores_override(self, harness_config):
        """The initial apply should never route through an override."""
        from actions.tofu import ApplyAndVerifyAction

        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (0, APPLY_OUTPUT)]) as mock_run:
            ApplyAndVerifyAction(name='apply').run(harness_config, {'override_file': '/x.tfrc'})

        assert mock_run.call_args.kwargs['env'].get('TF_CLI_CONFIG_FILE') != '/x.tfrc'

    def test_reapply_uses_override(self, harness_config):
        """Re-apply should pass the override file and expect a no-op."""
        from actions.tofu import ApplyAndVerifyAction
        from verify import SummaryKind

        action = ApplyAndVerifyAction(name='reapply', kind=SummaryKind.REAPPLY)
        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (0, REAPPLY_OUTPUT)]) as mock_run:
            result = action.run(harness_config, {'override_file': '/b/override.tfrc'})

        assert result.success is True
        for call in mock_run.call_args_list:
            assert call.kwargs['env']['TF_CLI_CONFIG_FILE'] == '/b/override.tfrc'

    def test_reapply_requires_override(self, harness_config):
        """Re-apply without a build should fail before running anything."""
        from actions.tofu import ApplyAndVerifyAction
        from verify import SummaryKind

        with patch('actions.tofu.run_streaming') as mock_run:
            result = ApplyAndVerifyAction(name='reapply', kind=SummaryKind.REAPPLY).run(harness_config, {})

        assert result.success is False
        assert 'override_file' in result.message
        mock_run.assert_not_called()

    def test_reapply_detects_change(self, harness_config):
        """A re-apply that changed something should fail."""
        from actions.tofu import ApplyAndVerifyAction
        from verify import SummaryKind

        changed = "Apply complete! Resources: 0 added, 1 changed, 0 destroyed.\n"
        action = ApplyAndVerifyAction(name='reapply', kind=SummaryKind.REAPPLY)
        with patch('actions.tofu.run_streaming', side_effect=[(0, ''), (0, changed)]):
            result = action.run(harness_config, {'override_file': '/b/override.tfrc'})

        assert result.success is False
        assert 'Non-zero "changed" count on re-apply' in result.message


class TestDestroyActions:
    """Test DestroyAndVerifyAction and FallbackDestroyAction."""

    def test_destroy_success(self, harness_config):
        """A verified destroy should succeed."""
        from actions.tofu import DestroyAndVerifyAction

        with patch('actions.tofu.run_streaming', return_value=(0, DESTROY_OUTPUT)):
            result = DestroyAndVerifyAction(name='destroy').run(harness_config, {})

        assert result.success is True
        assert '2 destroyed' in result.message

    def test_destroy_nothing_destroyed(self, harness_config):
        """A destroy of nothing should fail."""
        from actions.tofu import DestroyAndVerifyAction

        output = "Destroy complete! Resources: 0 destroyed.\n"
        with patch('actions.tofu.run_streaming', return_value=(0, output)):
            result = DestroyAndVerifyAction(name='destroy').run(harness_config, {})

        assert result.success is False
        assert 'Zero "destroyed" count' in result.message

    def test_fallback_destroy_skips_verification(self, harness_config):
        """Fallback destroy should accept any successful output."""
        from actions.tofu import FallbackDestroyAction

        output = "Destroy complete! Resources: 0 destroyed.\n"
        with patch('actions.tofu.run_streaming', return_value=(0, output)):
            result = FallbackDestroyAction(name='cleanup').run(harness_config, {})

        assert result.success is True

    def test_fallback_destroy_reinit(self, harness_config):
        """reinit should run init before destroy, without any override."""
        from actions.tofu import FallbackDestroyAction

        with patch('actions.tofu.run_streaming', return_value=(0, '')) as mock_run:
            FallbackDestroyAction(name='cleanup', reinit=True).run(harness_config, {'override_file': '/x.tfrc'})

        cmds = [c.args[0][1] for c in mock_run.call_args_list]
        assert cmds == ['init', 'destroy']
        for call in mock_run.call_args_list:
            assert call.kwargs['env'].get('TF_CLI_CONFIG_FILE') != '/x.tfrc'

    def test_fallback_destroy_failure(self, harness_config):
        """A failing fallback destroy should report failure."""
        from actions.tofu import FallbackDestroyAction

        with patch('actions.tofu.run_streaming', return_value=(1, 'Error')):
            result = FallbackDestroyAction(name='cleanup').run(harness_config, {})

        assert result.success is False
