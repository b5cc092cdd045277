"""
Create-or-update a CloudFormation stack and wait for it to settle.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .exceptions import (
    MissingStackName,
    MissingTemplatePath,
    NoUpdatesToPerform,
    ProvisioningCancelled,
    ProvisioningFailed,
    ProvisioningTimedOut,
    StackExistsConflict,
    StackServiceError,
    TemplateNotReadable,
)
from .models import (
    ProvisionAction,
    ProvisionResult,
    ServiceFailure,
    StackFound,
    StackNotFound,
    StackRequest,
    StackState,
    classify_status,
)
from .service import StackService

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0


def validate_request(request: StackRequest) -> None:
    """Reject requests that cannot be sent to CloudFormation."""
    if not request.template_path:
        raise MissingTemplatePath()

    if not request.name:
        raise MissingStackName()


def read_template(template_path: str) -> str:
    """Read a local template file."""
    try:
        return Path(template_path).read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateNotReadable(template_path, str(e)) from e


def build_payload(request: StackRequest) -> Dict[str, Any]:
    """Build the create/update keyword arguments for a request."""
    payload: Dict[str, Any] = {"StackName": request.name}

    if request.is_template_url:
        payload["TemplateURL"] = request.template_path
    else:
        payload["TemplateBody"] = read_template(request.template_path)

    payload["Parameters"] = request.params_list()

    capabilities = request.capabilities_list()
    if capabilities is not None:
        payload["Capabilities"] = capabilities

    return payload


class StackProvisioner:
    """Provision one stack against an injected stack service."""

    def __init__(
        self,
        service: StackService,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the provisioner.

        Args:
            service: CloudFormation access used for every remote call
            poll_interval: Seconds to wait between status checks
            max_attempts: Maximum number of status checks (unbounded if None)
            timeout: Seconds to keep polling before giving up (unbounded if None)
            cancel_event: Event that interrupts polling when set
        """
        self.service = service
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Ask a running poll loop to stop at its next wait."""
        self.cancel_event.set()

    def validate(self, request: StackRequest) -> None:
        validate_request(request)

    def build_payload(self, request: StackRequest) -> Dict[str, Any]:
        return build_payload(request)

    def run(self, request: StackRequest) -> ProvisionResult:
        """
        Provision the stack described by ``request``.

        Returns:
            ProvisionResult for a stack that reached a successful status

        Raises:
            ProvisionError: On invalid configuration, conflict, service
                failure, terminal stack failure, timeout or cancellation
        """
        self.validate(request)

        payload = self.build_payload(request)
        action = self._dispatch(request, payload)

        stack, attempts = self.poll_until_ready(request.name)
        logger.info(f"Stack {request.name} finished with status {stack.status}")

        return ProvisionResult(
            stack_name=request.name,
            action=action,
            status=stack.status,
            attempts=attempts,
            outputs=stack.outputs,
        )

    def _dispatch(
        self, request: StackRequest, payload: Dict[str, Any]
    ) -> ProvisionAction:
        described = self.service.describe_stack(request.name)

        if isinstance(described, StackFound):
            logger.info(f"Stack {request.name} found ({described.status}), updating")
            try:
                self.service.update_stack(payload)
            except NoUpdatesToPerform:
                logger.info(f"Stack {request.name} is already up to date")
                return ProvisionAction.NONE
            return ProvisionAction.UPDATE

        if isinstance(described, StackNotFound):
            if not request.update_on_conflict:
                raise StackExistsConflict(request.name)
            logger.info(f"Stack {request.name} not found, creating")
            self.service.create_stack(payload)
            return ProvisionAction.CREATE

        if isinstance(described, ServiceFailure):
            raise StackServiceError("DescribeStacks", described.code, described.message)

        raise TypeError(f"Unexpected describe result: {described!r}")

    def current_stack(self, stack_name: str) -> StackFound:
        """Describe the stack, reading any failed status check as an empty status."""
        described = self.service.describe_stack(stack_name)
        if isinstance(described, StackFound):
            return described

        # Eventual consistency: the stack may briefly be invisible after a write
        logger.debug(f"Status check for {stack_name} failed: {described}")
        return StackFound(stack={})

    def wait_until_ready(self, stack_name: str) -> Tuple[str, int]:
        """
        Poll until the stack reaches a terminal status.

        Returns:
            Tuple of (final status, number of status checks)
        """
        stack, attempts = self.poll_until_ready(stack_name)
        return stack.status, attempts

    def poll_until_ready(self, stack_name: str) -> Tuple[StackFound, int]:
        """
        Poll until the stack reaches a terminal status.

        Returns:
            Tuple of (final stack description, number of status checks)
        """
        deadline = None
        if self.timeout is not None:
            deadline = time.monotonic() + self.timeout

        attempts = 0
        while True:
            if self.cancel_event.is_set():
                raise ProvisioningCancelled(stack_name)

            attempts += 1
            stack = self.current_stack(stack_name)
            status = stack.status
            state = classify_status(status)

            if state == StackState.SUCCEEDED:
                return stack, attempts

            if state == StackState.FAILED:
                failed_resources = self.service.get_failed_events(stack_name)
                logger.error(f"Stack {stack_name} failed with status {status}")
                for resource in failed_resources:
                    logger.error(f"  - {resource['logical_id']}: {resource['reason']}")
                raise ProvisioningFailed(stack_name, status, failed_resources)

            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise ProvisioningTimedOut(stack_name, attempts)

            if deadline is not None and time.monotonic() >= deadline:
                raise ProvisioningTimedOut(stack_name, attempts)

            if self.cancel_event.wait(self.poll_interval):
                raise ProvisioningCancelled(stack_name)

            logger.info("Waiting for stack provisioning...")
