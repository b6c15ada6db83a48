"""Configuration file and local state actions."""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from common import ActionResult
from config import HarnessConfig

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = '.bak.original'

# Note: version is substituted unescaped; config.validate_ref guards it
VERSIONS_TEMPLATE = """\
terraform {{
  required_providers {{
    {name} = {{
      source = "{source}"
      version = "{version}"
    }}
  }}
}}
"""

# Provisioner state kept in the working directory between runs
LOCK_FILE = '.terraform.lock.hcl'
DATA_DIR = '.terraform'
STATE_FILE = 'terraform.tfstate'


def write_versions_file(path: Path, name: str, source: str, version: str) -> None:
    """Pin the provider to version."""
    path.write_text(VERSIONS_TEMPLATE.format(name=name, source=source, version=version), encoding='utf-8')


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree. Returns True if something was removed."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


@dataclass
class PinProviderVersionAction:
    """Back up versions.tf and pin the provider to the deploy version."""
    name: str

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Write versions.tf for config.deploy_version."""
        start = time.time()

        if not config.deploy_version:
            return ActionResult(
                success=False,
                message="No deploy_version configured",
                duration=time.time() - start
            )

        versions = config.versions_path
        backup = versions.with_name(versions.name + BACKUP_SUFFIX)
        if backup.exists():
            # Left by an interrupted run; it may be the only copy of the original
            return ActionResult(
                success=False,
                message=f"{backup.name} already exists; restore or remove it before running",
                duration=time.time() - start
            )

        if versions.exists():
            shutil.copy2(versions, backup)
            context['versions_backup'] = str(backup)
            logger.info(f"[{self.name}] Backed up {versions.name} to {backup.name}")
        else:
            # Nothing to restore: the generated file is removed on cleanup
            context['versions_created'] = str(versions)

        write_versions_file(versions, config.provider_name, config.provider_source, config.deploy_version)
        logger.info(f"[{self.name}] Pinned {config.provider_source} to {config.deploy_version}")

        return ActionResult(
            success=True,
            message=f"Pinned {config.provider_source} {config.deploy_version}",
            duration=time.time() - start,
            context_updates={'deploy_version': config.deploy_version}
        )


@dataclass
class RestoreVersionsAction:
    """Restore versions.tf as it was before the pin phase."""
    name: str

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Copy the backup back, or drop a file we created."""
        start = time.time()

        if backup := context.get('versions_backup'):
            backup_path = Path(backup)
            shutil.copy2(backup_path, config.versions_path)
            backup_path.unlink()
            message = f"Restored {config.versions_file}"
        elif created := context.get('versions_created'):
            remove_path(Path(created))
            message = f"Removed generated {config.versions_file}"
        else:
            message = "Nothing to restore"

        logger.info(f"[{self.name}] {message}")
        return ActionResult(success=True, message=message, duration=time.time() - start)


@dataclass
class RemoveLocalStateAction:
    """Remove provisioner state and caches left by a run.

    paths are relative to the working directory; plugin_cache adds the
    per-user provider plugin directory and context_keys names context
    entries holding paths (e.g. build_dir).
    """
    name: str
    paths: list = field(default_factory=lambda: [STATE_FILE])
    plugin_cache: bool = False
    context_keys: list = field(default_factory=list)

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Remove every listed path that exists."""
        start = time.time()

        targets = [config.working_dir / p for p in self.paths]
        if self.plugin_cache:
            targets.append(config.plugin_cache_dir())
        targets.extend(Path(context[key]) for key in self.context_keys if context.get(key))

        removed = []
        errors = []
        for target in targets:
            try:
                if remove_path(target):
                    removed.append(str(target))
                    logger.info(f"[{self.name}] Removed {target}")
            except OSError as e:
                errors.append(f"{target}: {e}")

        if errors:
            return ActionResult(
                success=False,
                message=f"Could not remove: {'; '.join(errors)}",
                duration=time.time() - start
            )
        return ActionResult(
            success=True,
            message=f"Removed {len(removed)} path(s)",
            duration=time.time() - start
        )
