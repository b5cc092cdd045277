"""
Configuration management for stack runner.

Stack definitions are YAML files describing one CloudFormation stack each.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field

from cloudformation.models import StackParam, StackRequest

CONFIG_DIR_ENV = "STACK_RUNNER_CONFIG_DIR"


def _default_region() -> str:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"


def _param_value(value: Any) -> Optional[str]:
    # CloudFormation compares parameter values as strings
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_params(raw: Any) -> List[Dict[str, Optional[str]]]:
    """Normalize parameters from a mapping or list into ordered key/value entries.

    Accepts ``{Key: Value}``, ``[{"key": k, "value": v}]`` or ``["Key=Value"]``.
    """
    if not raw:
        return []

    if isinstance(raw, dict):
        items = list(raw.items())
    elif isinstance(raw, list):
        items = []
        for entry in raw:
            if isinstance(entry, str):
                param = StackParam.parse(entry)
                items.append((param.key, param.value))
            elif isinstance(entry, dict) and "key" in entry:
                items.append((entry["key"], entry.get("value")))
            else:
                raise ValueError(f"Invalid parameter entry: {entry!r}")
    else:
        raise ValueError(f"Parameters must be a mapping or a list, got {type(raw).__name__}")

    return [
        {"key": str(key), "value": _param_value(value)}
        for key, value in items
    ]


@dataclass
class StackConfig:
    """Configuration for a single stack run."""

    # Stack identification
    name: str = ""
    template_path: str = ""

    # Provisioning behaviour
    update_on_conflict: bool = False
    capabilities: Optional[str] = None
    params: List[Dict[str, Optional[str]]] = field(default_factory=list)

    # AWS settings
    region: str = field(default_factory=_default_region)
    profile: Optional[str] = None

    # Polling
    poll_interval: float = 3.0
    timeout: Optional[float] = 3600.0
    max_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        self.params = normalize_params(self.params)
        if isinstance(self.capabilities, list):
            self.capabilities = ",".join(self.capabilities)

    def add_param(self, key: str, value: Optional[str]) -> None:
        """Append a parameter; existing entries with the same key are kept."""
        self.params.append({"key": key, "value": value})

    def to_request(self) -> StackRequest:
        """Build the immutable request handed to the provisioner."""
        return StackRequest(
            name=self.name,
            template_path=self.template_path,
            params=tuple(StackParam(p["key"], p["value"]) for p in self.params),
            capabilities=self.capabilities,
            update_on_conflict=self.update_on_conflict,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            k: v for k, v in self.__dict__.items()
            if not k.startswith('_')
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StackConfig":
        """Create config from dictionary."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown stack configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)


def load_stack_config(path: Union[str, Path]) -> StackConfig:
    """Load a single stack definition file."""
    path = Path(path)
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Stack definition {path} must be a mapping")

    data.setdefault("name", path.stem)
    return StackConfig.from_dict(data)


class ConfigManager:
    """Manages stack definitions stored in a directory."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize config manager."""
        self.config_dir = Path(config_dir) if config_dir else self._find_config_dir()
        self._cache: Dict[str, StackConfig] = {}
        self._load_configs()

    def _find_config_dir(self) -> Path:
        """Find the configuration directory."""
        env_dir = os.environ.get(CONFIG_DIR_ENV)
        if env_dir:
            return Path(env_dir)

        # Look for a stacks directory in the current directory or a parent
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            candidate = parent / "stacks"
            if candidate.is_dir():
                return candidate

        return current / "stacks"

    def _load_configs(self) -> None:
        """Load all stack definitions."""
        if not self.config_dir.is_dir():
            return

        for config_file in sorted(self.config_dir.iterdir()):
            if config_file.suffix not in (".yaml", ".yml"):
                continue
            config = load_stack_config(config_file)
            self._cache[config.name] = config

    def get_stack_config(self, stack_name: str) -> StackConfig:
        """Get configuration for a specific stack."""
        if stack_name not in self._cache:
            raise ValueError(f"Unknown stack: {stack_name}")

        return self._cache[stack_name]

    def save_stack_config(self, config: StackConfig) -> Path:
        """Save stack configuration to file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config_file = self.config_dir / f"{config.name}.yaml"
        with open(config_file, 'w') as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
        self._cache[config.name] = config
        return config_file

    def list_stacks(self) -> List[str]:
        """List all configured stacks."""
        return list(self._cache.keys())


# Singleton instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Get or create the config manager instance."""
    global _config_manager
    if _config_manager is None or config_dir is not None:
        _config_manager = ConfigManager(config_dir)
    return _config_manager


def get_stack_config(stack_name: str, config_dir: Optional[Union[str, Path]] = None) -> StackConfig:
    """Get configuration for a specific stack."""
    manager = get_config_manager(config_dir)
    return manager.get_stack_config(stack_name)
