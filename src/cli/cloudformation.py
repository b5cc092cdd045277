#!/usr/bin/env python3
"""
CloudFormation stack provisioning CLI commands.
"""

import logging
import signal
import sys
from typing import Any, List, Optional, Tuple

import click
from botocore.exceptions import BotoCoreError

from cloudformation import (
    ProvisionError,
    ProvisioningFailed,
    StackParam,
    StackProvisioner,
    StackService,
    build_payload,
    validate_request,
)
from cloudformation.models import ServiceFailure, StackFound
from config import StackConfig, load_stack_config


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )
    # boto noise
    logging.getLogger("botocore").setLevel(logging.WARNING)


def _parse_params(ctx: Any, param: Any, value: Tuple[str, ...]) -> List[StackParam]:
    try:
        return [StackParam.parse(item) for item in value]
    except ValueError as e:
        raise click.BadParameter(str(e))


def _status_color(status: str) -> str:
    if "COMPLETE" in status and "ROLLBACK" not in status:
        return "green"
    if "FAILED" in status or "ROLLBACK" in status:
        return "red"
    return "yellow"


def _build_config(
    config_file: Optional[str],
    stack_name: Optional[str],
    template_path: Optional[str],
    params: List[StackParam],
    capabilities: Optional[str],
    update_on_conflict: Optional[bool],
    region: Optional[str],
    profile: Optional[str],
) -> StackConfig:
    """Merge a stack definition file with command line overrides."""
    config = load_stack_config(config_file) if config_file else StackConfig()

    if stack_name:
        config.name = stack_name
    if template_path:
        config.template_path = template_path
    if capabilities is not None:
        config.capabilities = capabilities
    if update_on_conflict is not None:
        config.update_on_conflict = update_on_conflict
    if region:
        config.region = region
    if profile:
        config.profile = profile

    for stack_param in params:
        config.add_param(stack_param.key, stack_param.value)

    return config


@click.group()
@click.version_option(package_name="stack-runner")
def main() -> None:
    """CloudFormation stack provisioning commands."""
    pass


@main.command("run-stack")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False), help="Stack definition YAML file")
@click.option("--stack-name", "-s", help="CloudFormation stack name")
@click.option("--template-path", "-t", help="Template file path or URL")
@click.option("--param", "-p", "params", multiple=True, callback=_parse_params, help="Stack parameter as KEY=VALUE (repeatable)")
@click.option("--capabilities", help="Comma-separated capabilities, e.g. CAPABILITY_IAM")
@click.option("--update-on-conflict/--no-update-on-conflict", default=None, help="Create the stack when it is not found")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
@click.option("--poll-interval", type=float, help="Seconds between status checks")
@click.option("--timeout", type=float, help="Seconds to wait for the stack to settle")
@click.option("--no-timeout", is_flag=True, help="Wait for the stack without a deadline")
@click.option("--max-attempts", type=click.IntRange(min=1), help="Maximum number of status checks")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run_stack(
    config_file,
    stack_name,
    template_path,
    params,
    capabilities,
    update_on_conflict,
    region,
    profile,
    poll_interval,
    timeout,
    no_timeout,
    max_attempts,
    verbose,
) -> None:
    """Create or update a CloudFormation stack and wait for it."""
    _configure_logging(verbose)

    try:
        config = _build_config(
            config_file,
            stack_name,
            template_path,
            params,
            capabilities,
            update_on_conflict,
            region,
            profile,
        )
    except (OSError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if poll_interval is not None:
        config.poll_interval = poll_interval
    if timeout is not None:
        config.timeout = timeout
    if no_timeout:
        config.timeout = None
    if max_attempts is not None:
        config.max_attempts = max_attempts

    request = config.to_request()
    try:
        validate_request(request)
    except ProvisionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        service = StackService(region=config.region, profile=config.profile)
    except BotoCoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    provisioner = StackProvisioner(
        service,
        poll_interval=config.poll_interval,
        max_attempts=config.max_attempts,
        timeout=config.timeout,
    )

    def _cancel(signum, frame) -> None:
        click.echo("\nCancelling, waiting for the current status check...", err=True)
        provisioner.cancel()

    previous = {
        sig: signal.signal(sig, _cancel) for sig in (signal.SIGINT, signal.SIGTERM)
    }

    click.echo(f"🚀 Running stack {request.name} in {config.region}")
    try:
        result = provisioner.run(request)
    except ProvisioningFailed as e:
        click.echo(f"❌ {e}", err=True)
        if e.failed_resources:
            click.echo("\nFailed resources:", err=True)
            for resource in e.failed_resources:
                click.echo(f"  - {resource['logical_id']}: {resource['reason']}", err=True)
        sys.exit(1)
    except ProvisionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    click.echo(
        f"✅ Stack {result.stack_name}: "
        f"{click.style(result.status, fg=_status_color(result.status))} "
        f"({result.action.value})"
    )
    if result.outputs:
        click.echo("\nOutputs:")
        for key, value in result.outputs.items():
            click.echo(f"  {key}: {value}")


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def status(stack_name, region, profile) -> None:
    """Show CloudFormation stack status."""
    try:
        service = StackService(region=region, profile=profile)
    except BotoCoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    result = service.describe_stack(stack_name)

    if isinstance(result, ServiceFailure):
        click.echo(f"Error: {result.code}: {result.message}", err=True)
        sys.exit(1)
    if not isinstance(result, StackFound):
        click.echo(f"Stack {stack_name} does not exist")
        sys.exit(1)

    click.echo(f"Stack: {stack_name}")
    click.echo(f"Status: {click.style(result.status, fg=_status_color(result.status))}")

    outputs = result.outputs
    if outputs:
        click.echo("\nOutputs:")
        for key, value in outputs.items():
            click.echo(f"  {key}: {value}")


@main.command()
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False), help="Stack definition YAML file")
@click.option("--stack-name", "-s", help="CloudFormation stack name")
@click.option("--template-path", "-t", help="Template file path or URL")
def validate(config_file, stack_name, template_path) -> None:
    """Check a stack definition locally without calling AWS."""
    try:
        config = _build_config(
            config_file, stack_name, template_path, [], None, None, None, None
        )
        request = config.to_request()
        validate_request(request)
        payload = build_payload(request)
    except (OSError, ValueError, ProvisionError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Stack {request.name} is valid")
    click.echo(f"  Parameters: {len(payload['Parameters'])}")
    if "Capabilities" in payload:
        click.echo(f"  Capabilities: {', '.join(payload['Capabilities'])}")


if __name__ == "__main__":
    main()
