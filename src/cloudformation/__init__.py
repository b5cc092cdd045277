"""
CloudFormation stack provisioning.
"""

from .exceptions import (
    ConfigError,
    MissingStackName,
    MissingTemplatePath,
    NoUpdatesToPerform,
    ProvisionError,
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
    StackParam,
    StackRequest,
    StackState,
    classify_status,
)
from .provisioner import StackProvisioner, build_payload, validate_request
from .service import StackService

__all__ = [
    "ConfigError",
    "MissingStackName",
    "MissingTemplatePath",
    "NoUpdatesToPerform",
    "ProvisionAction",
    "ProvisionError",
    "ProvisionResult",
    "ProvisioningCancelled",
    "ProvisioningFailed",
    "ProvisioningTimedOut",
    "StackExistsConflict",
    "StackParam",
    "StackProvisioner",
    "StackRequest",
    "StackService",
    "StackServiceError",
    "StackState",
    "TemplateNotReadable",
    "build_payload",
    "classify_status",
    "validate_request",
]
