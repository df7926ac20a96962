"""Build target descriptors.

The set of targets is fixed. Each descriptor knows when it is enabled, where
its artifact goes and which plugin stages its pipeline is made of.
"""

from __future__ import annotations

import enum
import pathlib
from dataclasses import dataclass
from typing import Callable, Tuple

from libpacker.build.config import BundleFormat, PackageMetadata, ProjectConfig


class TargetKind(str, enum.Enum):
    """Artifact formats produced by a build."""

    FLAT = "flat"
    FLAT_MINIFIED = "flat-minified"
    ES5_FLATTENED = "es5-flattened"
    ESNEXT_FLATTENED = "esnext-flattened"


@dataclass(frozen=True)
class BuildTarget:
    """Static description of a build target.

    Attributes:
        kind: Target identifier
        label: Human readable label used in log output
        directory: Artifact directory within the output directory
        suffix: Artifact file name suffix
        transform: Name passed to the script transform stage
        bundle: Whether this is a flat bundle (module resolution, bundle format)
        minify: Whether the artifact is minified
        emit_typings: Whether the transform stage emits type declarations
        predicate: Enablement predicate over the project configuration
    """

    kind: TargetKind
    label: str
    directory: str
    suffix: str
    transform: str
    bundle: bool
    minify: bool
    emit_typings: bool
    predicate: Callable[[ProjectConfig], bool]

    def is_enabled(self, config: ProjectConfig) -> bool:
        """Check whether the target is built for the given configuration."""
        return self.predicate(config)

    def artifact_name(self, package: PackageMetadata) -> str:
        """Artifact path relative to the output directory."""
        return f"{self.directory}/{package.name}{self.suffix}"

    def artifact_path(
            self, project_dir: pathlib.Path, config: ProjectConfig, package: PackageMetadata
    ) -> pathlib.Path:
        """Resolved artifact path."""
        return project_dir / config.dist / self.artifact_name(package)

    def module_format(self, config: ProjectConfig) -> BundleFormat:
        """Module format of the artifact."""
        return config.bundle.format if self.bundle else BundleFormat.ES


FLAT = BuildTarget(
    kind=TargetKind.FLAT,
    label="FLAT",
    directory="bundle",
    suffix=".js",
    transform="bundle",
    bundle=True,
    minify=False,
    emit_typings=True,
    predicate=lambda config: True,
)

FLAT_MINIFIED = BuildTarget(
    kind=TargetKind.FLAT_MINIFIED,
    label="FLAT MIN",
    directory="bundle",
    suffix=".min.js",
    transform="bundle",
    bundle=True,
    minify=True,
    emit_typings=False,
    predicate=lambda config: config.compiler.build.bundle_min,
)

ES5_FLATTENED = BuildTarget(
    kind=TargetKind.ES5_FLATTENED,
    label="ES5",
    directory="fesm5",
    suffix=".js",
    transform="es5",
    bundle=False,
    minify=False,
    emit_typings=False,
    predicate=lambda config: config.compiler.build.es5,
)

ESNEXT_FLATTENED = BuildTarget(
    kind=TargetKind.ESNEXT_FLATTENED,
    label="ESNEXT",
    directory="fesmnext",
    suffix=".js",
    transform="esnext",
    bundle=False,
    minify=False,
    emit_typings=False,
    predicate=lambda config: config.compiler.build.esnext,
)

# Build order.
TARGETS: Tuple[BuildTarget, ...] = (FLAT, FLAT_MINIFIED, ES5_FLATTENED, ESNEXT_FLATTENED)


def get_target(kind: TargetKind) -> BuildTarget:
    """Look up the descriptor of a target kind."""
    kind = TargetKind(kind)
    for target in TARGETS:
        if target.kind is kind:
            return target
    raise KeyError(kind)


def enabled_targets(config: ProjectConfig) -> Tuple[BuildTarget, ...]:
    """Targets attempted for a configuration, in build order."""
    return tuple(target for target in TARGETS if target.is_enabled(config))
