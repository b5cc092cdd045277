"""
Tests for the stack runner CLI commands.
"""

from unittest.mock import patch

from typing import Any

import pytest
import yaml
from botocore.exceptions import ProfileNotFound
from click.testing import CliRunner

from cli.cloudformation import main as cli
from cloudformation.exceptions import ProvisioningFailed, StackExistsConflict
from cloudformation.models import (
    ProvisionAction,
    ProvisionResult,
    ServiceFailure,
    StackFound,
    StackNotFound,
)


class TestRunStackCommand:
    """Test the run-stack command."""

    @pytest.fixture
    def runner(self) -> Any:
        """Create a CLI test runner."""
        return CliRunner()

    @pytest.fixture
    def mock_service(self) -> Any:
        """Mock the StackService."""
        with patch("cli.cloudformation.StackService") as mock:
            yield mock

    @pytest.fixture
    def mock_provisioner(self) -> Any:
        """Mock the StackProvisioner."""
        with patch("cli.cloudformation.StackProvisioner") as mock:
            mock.return_value.run.return_value = ProvisionResult(
                stack_name="test-stack",
                action=ProvisionAction.CREATE,
                status="CREATE_COMPLETE",
                attempts=2,
                outputs={"ApiUrl": "https://api.example.com"},
            )
            yield mock

    def test_run_stack_from_options(
        self, runner, mock_service, mock_provisioner, tmp_path
    ) -> None:
        """Test running a stack configured on the command line."""
        template = tmp_path / "template.yaml"
        template.write_text("Resources: {}\n")

        result = runner.invoke(
            cli,
            [
                "run-stack",
                "--stack-name",
                "test-stack",
                "--template-path",
                str(template),
                "--param",
                "Env=dev",
                "--param",
                "Env=prod",
                "--capabilities",
                "CAPABILITY_IAM",
                "--update-on-conflict",
                "--region",
                "eu-west-1",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "CREATE_COMPLETE" in result.output
        assert "ApiUrl: https://api.example.com" in result.output

        mock_service.assert_called_once_with(region="eu-west-1", profile=None)
        request = mock_provisioner.return_value.run.call_args[0][0]
        assert request.name == "test-stack"
        assert [(p.key, p.value) for p in request.params] == [
            ("Env", "dev"),
            ("Env", "prod"),
        ]
        assert request.capabilities == "CAPABILITY_IAM"
        assert request.update_on_conflict is True

    def test_run_stack_from_config_file(
        self, runner, mock_service, mock_provisioner, tmp_path
    ) -> None:
        """Test that command line options override the definition file."""
        config_file = tmp_path / "api.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "name": "api-stack",
                    "template_path": "api.yaml",
                    "params": {"Env": "dev"},
                    "poll_interval": 10,
                    "timeout": 600,
                }
            )
        )

        result = runner.invoke(
            cli,
            ["run-stack", "-c", str(config_file), "-p", "Size=3", "--no-timeout"],
        )

        assert result.exit_code == 0, result.output
        mock_provisioner.assert_called_once_with(
            mock_service.return_value,
            poll_interval=10,
            max_attempts=None,
            timeout=None,
        )
        request = mock_provisioner.return_value.run.call_args[0][0]
        assert request.name == "api-stack"
        assert [p.key for p in request.params] == ["Env", "Size"]

    def test_max_attempts_option(
        self, runner, mock_service, mock_provisioner
    ) -> None:
        """Test that the status check budget is passed to the provisioner."""
        result = runner.invoke(
            cli,
            ["run-stack", "-s", "test-stack", "-t", "t.yaml", "--max-attempts", "5"],
        )

        assert result.exit_code == 0, result.output
        assert mock_provisioner.call_args.kwargs["max_attempts"] == 5

    def test_max_attempts_must_be_positive(
        self, runner, mock_service, mock_provisioner
    ) -> None:
        result = runner.invoke(
            cli,
            ["run-stack", "-s", "test-stack", "-t", "t.yaml", "--max-attempts", "0"],
        )

        assert result.exit_code == 2
        mock_provisioner.assert_not_called()

    def test_unknown_profile(self, runner, mock_service, mock_provisioner) -> None:
        """Test that a bad AWS profile is reported without a traceback."""
        mock_service.side_effect = ProfileNotFound(profile="missing")

        result = runner.invoke(
            cli,
            ["run-stack", "-s", "test-stack", "-t", "t.yaml", "--profile", "missing"],
        )

        assert result.exit_code == 1
        assert "Error: The config profile (missing) could not be found" in result.output
        mock_provisioner.assert_not_called()

    def test_missing_template_path(self, runner, mock_service, mock_provisioner) -> None:
        """Test that validation fails before any AWS client is created."""
        result = runner.invoke(cli, ["run-stack", "--stack-name", "test-stack"])

        assert result.exit_code == 1
        assert "template-path" in result.output
        mock_service.assert_not_called()
        mock_provisioner.assert_not_called()

    def test_invalid_param(self, runner, mock_service, mock_provisioner) -> None:
        """Test that malformed parameters are rejected."""
        result = runner.invoke(
            cli, ["run-stack", "-s", "test-stack", "-t", "t.yaml", "-p", "Env"]
        )

        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_conflict_exits_nonzero(self, runner, mock_service, mock_provisioner) -> None:
        """Test that provisioning errors exit with status 1."""
        mock_provisioner.return_value.run.side_effect = StackExistsConflict("test-stack")

        result = runner.invoke(
            cli, ["run-stack", "-s", "test-stack", "-t", "template.yaml"]
        )

        assert result.exit_code == 1
        assert "Stack test-stack already exists!" in result.output

    def test_failure_lists_resources(self, runner, mock_service, mock_provisioner) -> None:
        """Test that failed resources are reported."""
        mock_provisioner.return_value.run.side_effect = ProvisioningFailed(
            "test-stack",
            "ROLLBACK_COMPLETE",
            [{"logical_id": "MyBucket", "reason": "test-bucket already exists"}],
        )

        result = runner.invoke(
            cli, ["run-stack", "-s", "test-stack", "-t", "template.yaml"]
        )

        assert result.exit_code == 1
        assert "ROLLBACK_COMPLETE" in result.output
        assert "MyBucket: test-bucket already exists" in result.output


class TestStatusCommand:
    """Test the status command."""

    def test_status_existing_stack(self) -> None:
        with patch("cli.cloudformation.StackService") as mock_service:
            service = mock_service.return_value
            service.describe_stack.return_value = StackFound(
                stack={
                    "StackStatus": "UPDATE_COMPLETE",
                    "Outputs": [{"OutputKey": "BucketName", "OutputValue": "my-bucket"}],
                }
            )

            result = CliRunner().invoke(cli, ["status", "-s", "test-stack"])

        assert result.exit_code == 0
        assert "UPDATE_COMPLETE" in result.output
        assert "BucketName: my-bucket" in result.output
        service.describe_stack.assert_called_once_with("test-stack")

    def test_status_unknown_profile(self) -> None:
        with patch("cli.cloudformation.StackService") as mock_service:
            mock_service.side_effect = ProfileNotFound(profile="missing")

            result = CliRunner().invoke(
                cli, ["status", "-s", "test-stack", "--profile", "missing"]
            )

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Traceback" not in result.output

    def test_status_service_failure(self) -> None:
        with patch("cli.cloudformation.StackService") as mock_service:
            mock_service.return_value.describe_stack.return_value = ServiceFailure(
                code="AccessDenied", message="User is not authorized"
            )

            result = CliRunner().invoke(cli, ["status", "-s", "test-stack"])

        assert result.exit_code == 1
        assert "AccessDenied: User is not authorized" in result.output

    def test_status_missing_stack(self) -> None:
        with patch("cli.cloudformation.StackService") as mock_service:
            mock_service.return_value.describe_stack.return_value = StackNotFound()

            result = CliRunner().invoke(cli, ["status", "-s", "test-stack"])

        assert result.exit_code == 1
        assert "does not exist" in result.output


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_definition(self, tmp_path) -> None:
        template = tmp_path / "template.yaml"
        template.write_text("Resources: {}\n")
        config_file = tmp_path / "stack.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "name": "test-stack",
                    "template_path": str(template),
                    "capabilities": "CAPABILITY_IAM,CAPABILITY_NAMED_IAM",
                    "params": {"Env": "dev"},
                }
            )
        )

        result = CliRunner().invoke(cli, ["validate", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Stack test-stack is valid" in result.output
        assert "Parameters: 1" in result.output
        assert "CAPABILITY_IAM, CAPABILITY_NAMED_IAM" in result.output

    def test_unreadable_template(self, tmp_path) -> None:
        result = CliRunner().invoke(
            cli,
            ["validate", "-s", "test-stack", "-t", str(tmp_path / "missing.yaml")],
        )

        assert result.exit_code == 1
        assert "Cannot read template" in result.output

    def test_missing_name(self, tmp_path) -> None:
        result = CliRunner().invoke(cli, ["validate", "-t", "template.yaml"])

        assert result.exit_code == 1
        assert "name attribute" in result.output
