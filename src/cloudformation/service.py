"""
CloudFormation control-plane access used by the stack provisioner.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import NoUpdatesToPerform, StackServiceError
from .models import DescribeResult, ServiceFailure, StackFound, StackNotFound

logger = logging.getLogger(__name__)

FAILED_RESOURCE_STATUSES = [
    "CREATE_FAILED",
    "UPDATE_FAILED",
    "DELETE_FAILED",
]


def _error_details(error: ClientError) -> Dict[str, str]:
    details = error.response.get("Error", {})
    return {
        "code": str(details.get("Code", "Unknown")),
        "message": str(details.get("Message", error)),
    }


class StackService:
    """Thin wrapper around the boto3 CloudFormation client."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        client: Any = None,
    ):
        """
        Initialize the stack service.

        Args:
            region: AWS region
            profile: AWS profile to use
            client: Pre-built CloudFormation client (skips session creation)
        """
        self.region = region or "us-east-1"
        self.profile = profile

        if client is not None:
            self.cloudformation = client
            return

        session_args = {"region_name": self.region}
        if profile:
            session_args["profile_name"] = profile

        session = boto3.Session(**session_args)
        self.cloudformation = session.client("cloudformation")

    def describe_stack(self, stack_name: str) -> DescribeResult:
        """Describe a stack without raising on provider errors."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
        except ClientError as e:
            details = _error_details(e)
            if "does not exist" in details["message"]:
                return StackNotFound(message=details["message"])
            return ServiceFailure(code=details["code"], message=details["message"])
        except BotoCoreError as e:
            # Connection, timeout and credential failures
            return ServiceFailure(code=type(e).__name__, message=str(e))

        stacks = response.get("Stacks", [])
        if not stacks:
            return StackFound(stack={})
        return StackFound(stack=stacks[0])

    def create_stack(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a create request."""
        logger.info(f"Creating stack {payload.get('StackName')}")
        try:
            return dict(self.cloudformation.create_stack(**payload))
        except ClientError as e:
            details = _error_details(e)
            raise StackServiceError(
                "CreateStack", details["code"], details["message"]
            ) from e
        except BotoCoreError as e:
            raise StackServiceError("CreateStack", type(e).__name__, str(e)) from e

    def update_stack(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Submit an update request."""
        logger.info(f"Updating stack {payload.get('StackName')}")
        try:
            return dict(self.cloudformation.update_stack(**payload))
        except ClientError as e:
            details = _error_details(e)
            if "No updates are to be performed" in details["message"]:
                raise NoUpdatesToPerform(
                    "UpdateStack", details["code"], details["message"]
                ) from e
            raise StackServiceError(
                "UpdateStack", details["code"], details["message"]
            ) from e
        except BotoCoreError as e:
            raise StackServiceError("UpdateStack", type(e).__name__, str(e)) from e

    def get_stack_outputs(self, stack_name: str) -> Dict[str, str]:
        """Get outputs from a CloudFormation stack."""
        result = self.describe_stack(stack_name)
        if not isinstance(result, StackFound):
            return {}
        return result.outputs

    def get_failed_events(self, stack_name: str) -> List[Dict[str, Any]]:
        """Collect resource events that explain a failed stack."""
        failed: List[Dict[str, Any]] = []

        try:
            response = self.cloudformation.describe_stack_events(StackName=stack_name)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Could not read events for stack {stack_name}: {e}")
            return failed

        for event in response.get("StackEvents", []):
            if event.get("ResourceStatus") in FAILED_RESOURCE_STATUSES:
                failed.append(
                    {
                        "logical_id": event.get("LogicalResourceId"),
                        "resource_type": event.get("ResourceType"),
                        "status": event.get("ResourceStatus"),
                        "reason": event.get(
                            "ResourceStatusReason", "No reason provided"
                        ),
                        "timestamp": str(event.get("Timestamp")),
                    }
                )

        return failed
