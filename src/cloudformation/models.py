"""
Data carriers for stack provisioning.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

TEMPLATE_URL_PREFIXES = ("https://", "http://", "s3://")

SUCCESS_STATUSES = frozenset(
    [
        "CREATE_COMPLETE",
        "UPDATE_COMPLETE",
        "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS",
    ]
)

IN_PROGRESS_STATUSES = frozenset(
    [
        "",
        "UPDATE_IN_PROGRESS",
        "CREATE_IN_PROGRESS",
    ]
)


class StackState(Enum):
    """Classification of a CloudFormation stack status."""

    SUCCEEDED = "succeeded"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"


class ProvisionAction(Enum):
    """Which write the provisioner dispatched."""

    CREATE = "create"
    UPDATE = "update"
    NONE = "none"


def classify_status(status: Optional[str]) -> StackState:
    """Map a raw stack status onto success, in-progress or failure."""
    status = status or ""
    if status in SUCCESS_STATUSES:
        return StackState.SUCCEEDED
    if status in IN_PROGRESS_STATUSES:
        return StackState.IN_PROGRESS
    return StackState.FAILED


@dataclass(frozen=True)
class StackParam:
    """A single template parameter."""

    key: str
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.key is None:
            raise ValueError("Stack parameter key must not be null")

    def to_dict(self) -> Dict[str, Any]:
        """Return the CloudFormation representation."""
        return {"ParameterKey": self.key, "ParameterValue": self.value}

    @classmethod
    def parse(cls, text: str) -> "StackParam":
        """Build a parameter from a ``KEY=VALUE`` string."""
        if "=" not in text:
            raise ValueError(f"Invalid parameter '{text}', expected KEY=VALUE")
        key, value = text.split("=", 1)
        return cls(key=key, value=value)


@dataclass(frozen=True)
class StackRequest:
    """Everything needed to create or update one stack."""

    name: str
    template_path: str
    params: Tuple[StackParam, ...] = ()
    capabilities: Optional[str] = None
    update_on_conflict: bool = False

    @property
    def is_template_url(self) -> bool:
        """True when the template lives behind a URL rather than on disk."""
        return bool(self.template_path) and self.template_path.startswith(
            TEMPLATE_URL_PREFIXES
        )

    def params_list(self) -> List[Dict[str, Any]]:
        """Flatten parameters in declaration order, duplicates included."""
        return [param.to_dict() for param in self.params]

    def capabilities_list(self) -> Optional[List[str]]:
        """Split the capability string on commas, or None when unset."""
        if not self.capabilities:
            return None
        return self.capabilities.split(",")


@dataclass
class StackFound:
    """The stack exists; ``status`` is its current StackStatus."""

    stack: Dict[str, Any]

    @property
    def status(self) -> str:
        return str(self.stack.get("StackStatus", ""))

    @property
    def outputs(self) -> Dict[str, str]:
        return {
            output["OutputKey"]: output["OutputValue"]
            for output in self.stack.get("Outputs", [])
        }


@dataclass
class StackNotFound:
    """CloudFormation reported that the stack does not exist."""

    message: str = ""


@dataclass
class ServiceFailure:
    """Any other error raised by the describe call."""

    code: str
    message: str


DescribeResult = Union[StackFound, StackNotFound, ServiceFailure]


@dataclass
class ProvisionResult:
    """Outcome of a successful provisioning run."""

    stack_name: str
    action: ProvisionAction
    status: str
    attempts: int
    outputs: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return classify_status(self.status) == StackState.SUCCEEDED
