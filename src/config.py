"""Harness configuration.

Configuration is loaded from an optional YAML file, resolved in order:
1. --config flag
2. $PROVIDER_LIFECYCLE_CONFIG environment variable
3. lifecycle.yaml in the provisioner working directory

Every key is optional; CLI flags override file values. Example:

    provisioner: tofu
    model: main
    deploy_version: 0.22.0
    upgrade_ref: v1.0.0-beta2
    wait_timeout: 20m
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_ENV_VAR = 'PROVIDER_LIFECYCLE_CONFIG'
DEFAULT_CONFIG_NAME = 'lifecycle.yaml'

REGISTRY_HOSTS = {
    'terraform': 'registry.terraform.io',
    'tofu': 'registry.opentofu.org',
}

# Versions and git refs are templated into generated HCL and passed to git
_SAFE_REF = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._+/-]*$')


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class HarnessConfig:
    """Settings for one lifecycle run."""
    working_dir: Path = field(default_factory=Path.cwd)
    provisioner: str = 'terraform'  # or 'tofu'
    juju_binary: str = 'juju'
    model: str = 'main'

    provider_namespace: str = 'juju'
    provider_name: str = 'juju'
    provider_repo: str = 'https://github.com/juju/terraform-provider-juju.git'

    # Version pinned in versions.tf for the initial deploy (None = leave as is)
    deploy_version: Optional[str] = None
    # Git ref built from source for the upgrade scenario
    upgrade_ref: Optional[str] = None
    versions_file: str = 'versions.tf'

    # Passed to `juju wait-for --timeout`; None uses the platform default
    wait_timeout: Optional[str] = None

    max_retries: int = 0
    time_between_retries: float = 5.0

    build_prerequisites: list = field(default_factory=lambda: ['git', 'go', 'make', 'yq'])
    build_steps: list = field(default_factory=lambda: [
        ['make', 'install-dependencies'],
        ['make', 'go-install'],
    ])

    def __post_init__(self):
        if isinstance(self.working_dir, str):
            self.working_dir = Path(self.working_dir)
        if self.provisioner not in ('terraform', 'tofu'):
            raise ConfigError(f"Unsupported provisioner '{self.provisioner}' (expected terraform or tofu)")
        for key in ('deploy_version', 'upgrade_ref'):
            value = getattr(self, key)
            if value is None:
                continue
            # YAML reads 1.10 as the float 1.1
            if not isinstance(value, str):
                raise ConfigError(f"{key} must be a string, got {value!r}; quote it in the config file")
            validate_ref(value, key)
        for key in ('provider_namespace', 'provider_name'):
            validate_ref(getattr(self, key), key)

    @property
    def provider_source(self) -> str:
        """Registry source address, e.g. juju/juju."""
        return f'{self.provider_namespace}/{self.provider_name}'

    @property
    def versions_path(self) -> Path:
        return self.working_dir / self.versions_file

    def plugin_cache_dir(self) -> Path:
        """Per-user plugin directory for the provider."""
        return (Path.home() / '.terraform.d' / 'plugins' / REGISTRY_HOSTS[self.provisioner]
                / self.provider_namespace / self.provider_name)


def validate_ref(value: str, label: str = 'ref') -> str:
    """Reject version/ref strings outside a safe character set."""
    if not _SAFE_REF.match(value):
        raise ConfigError(f"Invalid {label} '{value}': only letters, digits and ._+/- are allowed")
    return value


def find_config_file(explicit: Optional[Path], working_dir: Path) -> Optional[Path]:
    """Locate the config file, or None when there is none."""
    if explicit:
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    if env_path := os.environ.get(CONFIG_ENV_VAR):
        path = Path(env_path)
        if path.exists():
            return path
        raise ConfigError(f"{CONFIG_ENV_VAR}={env_path} does not exist")

    default = working_dir / DEFAULT_CONFIG_NAME
    if default.exists():
        return default
    return None


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def load_config(
    working_dir: Optional[Path] = None,
    config_file: Optional[Path] = None,
    overrides: Optional[dict] = None
) -> HarnessConfig:
    """Build a HarnessConfig from file values plus overrides.

    Overrides with a value of None are ignored.
    """
    working_dir = Path(working_dir) if working_dir else Path.cwd()
    values: dict = {}

    path = find_config_file(config_file, working_dir)
    if path:
        values.update(_parse_yaml(path))

    known = {f.name for f in fields(HarnessConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    values.update({k: v for k, v in (overrides or {}).items() if v is not None})
    values.setdefault('working_dir', working_dir)
    return HarnessConfig(**values)
