"""Build the provider from source and generate a dev_overrides CLI config.

The freshly built binary replaces the registry-published provider only for
its own source address; every other provider installs normally.
"""

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common import ActionResult, CommandError, run_checked
from config import ConfigError, HarnessConfig, validate_ref

logger = logging.getLogger(__name__)

OVERRIDE_FILENAME = 'provider-override.tfrc'

OVERRIDE_TEMPLATE = """\
# Generated by provider-lifecycle: {source} built from {target_ref} (baseline {baseline_version})
provider_installation {{
  dev_overrides {{
    "{source}" = "{binary_dir}"
  }}

  # All other providers install from their registries as usual
  direct {{}}
}}
"""


class BuildError(Exception):
    """Base class for provider build failures."""


class MissingPrerequisite(BuildError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Did not find prerequisite executable: {name}")


class CloneFailed(BuildError):
    """git clone of the provider repository failed."""


class BuildStepFailed(BuildError):
    def __init__(self, step: list[str], error: Exception):
        self.step = step
        super().__init__(f"Build step '{' '.join(step)}' failed: {error}")


@dataclass(frozen=True)
class UpgradeArtifact:
    """Locations produced by a provider build."""
    build_dir: Path
    binary_dir: Path
    override_file: Path


def check_prerequisites(names: list[str]) -> None:
    """Raise MissingPrerequisite for the first executable not on PATH."""
    for name in names:
        if shutil.which(name) is None:
            raise MissingPrerequisite(name)
        logger.debug(f"Found prerequisite: {name}")


def resolve_go_bin_dir() -> Path:
    """Where `go install` puts binaries: GOBIN, else GOPATH/bin."""
    gobin = run_checked(['go', 'env', 'GOBIN'], timeout=60).strip()
    if gobin:
        return Path(gobin)
    gopath = run_checked(['go', 'env', 'GOPATH'], timeout=60).strip()
    return Path(gopath.split(':')[0]) / 'bin'


def write_override_file(
    path: Path,
    source: str,
    binary_dir: Path,
    target_ref: str,
    baseline_version: str
) -> Path:
    """Write the CLI config; fails if path already exists."""
    content = OVERRIDE_TEMPLATE.format(
        source=source,
        binary_dir=binary_dir,
        target_ref=target_ref,
        baseline_version=baseline_version,
    )
    with open(path, 'x', encoding='utf-8') as f:
        f.write(content)
    return path


def build_provider(
    baseline_version: str,
    target_ref: str,
    build_dir: Path,
    repo_url: str,
    source: str,
    prerequisites: list[str],
    build_steps: list[list[str]],
    step_timeout: Optional[int] = 1800
) -> UpgradeArtifact:
    """Clone and build the provider at target_ref. Fail-fast, no rollback."""
    for label, value in (('baseline version', baseline_version), ('target ref', target_ref)):
        try:
            validate_ref(value, label)
        except ConfigError as e:
            raise BuildError(str(e)) from e

    check_prerequisites(prerequisites)

    clone_name = repo_url.rstrip('/').rsplit('/', 1)[-1].removesuffix('.git')
    logger.info(f"Performing shallow clone of {repo_url} at {target_ref}")
    try:
        run_checked(['git', 'clone', '--depth', '1', '--branch', target_ref, repo_url, clone_name],
                    cwd=build_dir, timeout=step_timeout, capture=False)
    except CommandError as e:
        raise CloneFailed(f"Error cloning {repo_url} at {target_ref}: {e}") from e

    source_dir = build_dir / clone_name
    for template in build_steps:
        step = [arg.format(baseline_version=baseline_version, target_ref=target_ref) for arg in template]
        logger.info(f"Running build step: {' '.join(step)}")
        try:
            run_checked(step, cwd=source_dir, timeout=step_timeout, capture=False)
        except CommandError as e:
            raise BuildStepFailed(step, e) from e

    try:
        binary_dir = resolve_go_bin_dir()
    except CommandError as e:
        raise BuildStepFailed(['go', 'env'], e) from e

    override_file = write_override_file(
        build_dir / OVERRIDE_FILENAME, source, binary_dir, target_ref, baseline_version
    )
    logger.info(f"Wrote provider override {override_file} -> {binary_dir}")
    return UpgradeArtifact(build_dir=build_dir, binary_dir=binary_dir, override_file=override_file)


@dataclass
class BuildProviderAction:
    """Build the upgrade target of the provider into a temp directory."""
    name: str

    def run(self, config: HarnessConfig, context: dict) -> ActionResult:
        """Build provider and publish override_file to context."""
        start = time.time()

        if not config.upgrade_ref:
            return ActionResult(
                success=False,
                message="No upgrade_ref configured",
                duration=time.time() - start
            )
        baseline = context.get('deploy_version') or config.deploy_version or 'unpinned'

        build_dir = Path(tempfile.mkdtemp(prefix='provider-build-'))
        # Cleanup reads build_dir from context even if the build fails
        context['build_dir'] = str(build_dir)
        logger.info(f"[{self.name}] Building {config.provider_source} {config.upgrade_ref} in {build_dir}")

        try:
            artifact = build_provider(
                baseline_version=baseline,
                target_ref=config.upgrade_ref,
                build_dir=build_dir,
                repo_url=config.provider_repo,
                source=config.provider_source,
                prerequisites=config.build_prerequisites,
                build_steps=config.build_steps,
            )
        except (BuildError, OSError) as e:
            return ActionResult(
                success=False,
                message=f"Unable to build provider {config.upgrade_ref}: {e}",
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"Built {config.provider_source} {config.upgrade_ref} into {artifact.binary_dir}",
            duration=time.time() - start,
            context_updates={
                'build_dir': str(artifact.build_dir),
                'override_file': str(artifact.override_file),
            }
        )
