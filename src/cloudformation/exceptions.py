"""
Errors raised while provisioning a CloudFormation stack.
"""

from typing import Any, Dict, List, Optional


class ProvisionError(Exception):
    """Base class for all stack provisioning errors."""


class ConfigError(ProvisionError):
    """The stack request is incomplete or unusable."""


class MissingTemplatePath(ConfigError):
    """No template source was configured."""

    def __init__(self) -> None:
        super().__init__("You must set the template-path attribute.")


class MissingStackName(ConfigError):
    """No stack name was configured."""

    def __init__(self) -> None:
        super().__init__("You must set the name attribute.")


class TemplateNotReadable(ConfigError):
    """The template file could not be read."""

    def __init__(self, template_path: str, reason: str):
        self.template_path = template_path
        super().__init__(f"Cannot read template {template_path}: {reason}")


class StackExistsConflict(ProvisionError):
    """The conflict policy forbids overwriting the stack."""

    def __init__(self, stack_name: str):
        self.stack_name = stack_name
        super().__init__(f"Stack {stack_name} already exists!")


class ProvisioningFailed(ProvisionError):
    """The stack reached a terminal failure status."""

    def __init__(
        self,
        stack_name: str,
        status: str,
        failed_resources: Optional[List[Dict[str, Any]]] = None,
    ):
        self.stack_name = stack_name
        self.status = status
        self.failed_resources = failed_resources or []
        super().__init__(f"Failed to run stack {stack_name} ({status}) !")


class ProvisioningTimedOut(ProvisionError):
    """The stack did not settle within the polling budget."""

    def __init__(self, stack_name: str, attempts: int):
        self.stack_name = stack_name
        self.attempts = attempts
        super().__init__(
            f"Timed out waiting for stack {stack_name} after {attempts} status checks"
        )


class ProvisioningCancelled(ProvisionError):
    """Polling was interrupted by the caller."""

    def __init__(self, stack_name: str):
        self.stack_name = stack_name
        super().__init__(f"Provisioning of stack {stack_name} was cancelled")


class StackServiceError(ProvisionError):
    """A CloudFormation API call failed."""

    def __init__(self, operation: str, code: str, message: str):
        self.operation = operation
        self.code = code
        self.message = message
        super().__init__(f"{operation} failed ({code}): {message}")


class NoUpdatesToPerform(StackServiceError):
    """The submitted template and parameters match the deployed stack."""
