"""Builder for compiling libpacker projects.

This module contains the Builder class that drives a build: it cleans the
output directory, copies the package essentials and builds every enabled
target through the build engine, each from its own derived configuration.
"""

from __future__ import annotations

import asyncio
import pathlib
import shutil
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from libpacker.build.config import PackageMetadata, ProjectConfig
from libpacker.build.engine import BuildEngine
from libpacker.build.essentials import EssentialsCopier
from libpacker.build.externals import extract_bundle_externals
from libpacker.build.plugins import assemble_pipeline
from libpacker.build.targets import BuildTarget, TargetKind, enabled_targets
from libpacker.build.utils import deep_merge, render_banner
from libpacker.utils.exceptions import BuildEngineError, BuildError


@dataclass(frozen=True)
class BuildOutcome:
    """Result of one attempted target.

    Attributes:
        target: Target identifier
        label: Human readable target label
        success: Whether the artifact was built
        artifact_path: Resolved artifact path
        error: Failure detail when the build failed
    """

    target: TargetKind
    label: str
    success: bool
    artifact_path: pathlib.Path
    error: Optional[BuildEngineError] = None


@dataclass
class BuildReport:
    """Aggregate of the outcomes of a bundling run, in attempt order."""

    outcomes: List[BuildOutcome] = field(default_factory=list)
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        return all(outcome.success for outcome in self.outcomes)

    @property
    def failed_outcomes(self) -> List[BuildOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def artifacts(self) -> List[pathlib.Path]:
        return [outcome.artifact_path for outcome in self.outcomes if outcome.success]

    def raise_for_failure(self) -> None:
        """Raise a BuildError naming every failed target."""
        failed = self.failed_outcomes
        if failed:
            labels = ", ".join(outcome.label for outcome in failed)
            raise BuildError(
                f"Build failed for {labels}",
                errors=[str(outcome.error) for outcome in failed],
            ) from failed[0].error


def get_base_config(
        config: ProjectConfig, package: PackageMetadata, project_dir: pathlib.Path,
        banner: Optional[str] = None,
) -> Dict[str, Any]:
    """Configuration shared by every target before its overrides."""
    if banner is None and config.license.banner:
        banner = render_banner(package)
    return {
        "input": str(project_dir / config.source / config.entry),
        "output": {
            "banner": banner or "",
            "sourcemap": config.compiler.source_map,
        },
        "external": [],
        "plugins": [],
    }


def target_overrides(
        target: BuildTarget,
        config: ProjectConfig,
        package: PackageMetadata,
        project_dir: pathlib.Path,
        externals: Sequence[str],
) -> Dict[str, Any]:
    """Target specific part of a target configuration."""
    output: Dict[str, Any] = {
        "file": str(target.artifact_path(project_dir, config, package)),
        "format": target.module_format(config).value,
    }
    if target.bundle:
        output.update(
            {
                "amd": config.bundle.amd.model_dump(),
                "globals": dict(config.bundle.globals),
                "name": config.bundle.namespace,
            }
        )
    return {
        "external": list(externals),
        "output": output,
        "plugins": list(assemble_pipeline(target, config, package)),
    }


def derive_target_config(base_config: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge target overrides over a private copy of the base configuration."""
    return deep_merge(base_config, overrides)


class Builder:
    """Builder for compiling a library project into its artifacts.

    Attributes:
        config: Project configuration
        package: Project package metadata
        project_dir: Project root directory
        engine: Build engine invoked once per target
    """

    def __init__(
            self,
            config: ProjectConfig,
            package: PackageMetadata,
            engine: BuildEngine,
            project_dir: Optional[pathlib.Path] = None,
            logger: Optional[Any] = None,
    ) -> None:
        """Initialize the Builder.

        Args:
            config: Project configuration
            package: Project package metadata
            engine: Build engine
            project_dir: Project root directory, defaults to the working directory
            logger: Optional structured logger
        """
        self.config = config
        self.package = package
        self.engine = engine
        self.project_dir = pathlib.Path(project_dir) if project_dir else pathlib.Path.cwd()
        self._logger = logger or structlog.get_logger("builder")

    @property
    def dist_dir(self) -> pathlib.Path:
        return self.project_dir / self.config.dist

    def clean(self) -> None:
        """Remove the output directory."""
        if self.dist_dir.exists():
            self._logger.info("Cleaning output directory", dist=str(self.dist_dir))
            shutil.rmtree(self.dist_dir)

    async def copy_essentials(self) -> List[pathlib.Path]:
        """Copy the package essentials into the output directory.

        Raises:
            CopyError: If any copy fails
        """
        copier = EssentialsCopier(self.config, self.package, self.project_dir, logger=self._logger)
        return await copier.copy()

    def derive(
            self, target: BuildTarget, base_config: Mapping[str, Any], externals: Sequence[str]
    ) -> Dict[str, Any]:
        overrides = target_overrides(target, self.config, self.package, self.project_dir, externals)
        return derive_target_config(base_config, overrides)

    async def bundle(self) -> BuildReport:
        """Build every enabled target.

        Targets run in build order unless concurrent builds are enabled. By
        default the first failure ends the run; targets built before it keep
        their artifacts. With ``continue_on_error`` every target is attempted.

        Returns:
            Report of the attempted targets.
        """
        report = BuildReport()
        externals = extract_bundle_externals(self.config.bundle)
        base_config = get_base_config(self.config, self.package, self.project_dir)
        targets = enabled_targets(self.config)

        if self.config.compiler.concurrent_build:
            outcomes = await asyncio.gather(
                *(self._build_target(target, base_config, externals) for target in targets)
            )
            report.outcomes.extend(outcomes)
        else:
            for target in targets:
                outcome = await self._build_target(target, base_config, externals)
                report.outcomes.append(outcome)
                if not outcome.success and not self.config.compiler.continue_on_error:
                    report.aborted = target is not targets[-1]
                    break

        for outcome in report.failed_outcomes:
            self._logger.error("[build:bundle] failure", target=outcome.label, error=str(outcome.error))
        return report

    async def _build_target(
            self, target: BuildTarget, base_config: Mapping[str, Any], externals: Sequence[str]
    ) -> BuildOutcome:
        artifact_path = target.artifact_path(self.project_dir, self.config, self.package)
        self._logger.info("Target build started", target=target.label)
        try:
            target_config = self.derive(target, base_config, externals)
            artifact_path = pathlib.Path(await self.engine.invoke(target_config, target.label))
        except BuildEngineError as e:
            return BuildOutcome(target.kind, target.label, False, artifact_path, e)
        except Exception as e:
            error = BuildEngineError(f"Build failed: {e}", target=target.label)
            error.__cause__ = e
            return BuildOutcome(target.kind, target.label, False, artifact_path, error)

        self._logger.info("Target build completed", target=target.label, artifact=str(artifact_path))
        return BuildOutcome(target.kind, target.label, True, artifact_path)

    async def build(self) -> BuildReport:
        """Run a full build: clean, then essentials and bundling together.

        Returns:
            Report of the bundling run.

        Raises:
            CopyError: If copying the essentials fails
        """
        self._logger.info(
            "Starting build", package=self.package.name, version=self.package.version
        )
        self.clean()

        copy_result, report = await asyncio.gather(
            self.copy_essentials(), self.bundle(), return_exceptions=True
        )
        if isinstance(report, BaseException):
            raise report
        if isinstance(copy_result, BaseException):
            raise copy_result

        if report.succeeded:
            self._logger.info("Build completed", artifacts=len(report.artifacts))
        return report
