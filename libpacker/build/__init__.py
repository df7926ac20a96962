"""Build system for libpacker.

This package compiles a library project into its distributable artifacts:
a flat bundle, a minified flat bundle and two flattened ES module builds.

Modules:
    builder: Builder class driving clean, essentials and target builds
    config: Project configuration and package metadata models
    dependency_map: Output package dependency mapping
    engine: Build engine protocol and command adapter
    essentials: Output package descriptor and auxiliary files
    externals: Externals shared by every target
    plugins: Plugin pipeline assembly
    targets: Build target descriptors
    utils: Utility functions for the build process
"""

from __future__ import annotations

from libpacker.build.builder import Builder, BuildOutcome, BuildReport
from libpacker.build.config import DependencyMapMode, PackageMetadata, ProjectConfig
from libpacker.build.engine import BuildEngine, CommandBuildEngine
from libpacker.build.targets import TARGETS, BuildTarget, TargetKind

__all__ = [
    "Builder",
    "BuildEngine",
    "BuildOutcome",
    "BuildReport",
    "BuildTarget",
    "CommandBuildEngine",
    "DependencyMapMode",
    "PackageMetadata",
    "ProjectConfig",
    "TARGETS",
    "TargetKind",
]
