"""Plugin pipeline assembly for build targets.

A pipeline is an ordered tuple of plugin stage descriptors handed to the
build engine. Stage order is fixed per target kind:

1. style bundling (unless styles are disabled)
2. pre-bundle stages: import path replacement and import ignoring
3. module resolution (flat bundles only)
4. script transform
5. minification (minified targets only)
6. post-bundle stages: cleanup and size report
"""

from __future__ import annotations

import enum
import fnmatch
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from libpacker.build.config import (
    BuildMode,
    PackageMetadata,
    ProjectConfig,
    ReplacePattern,
    ScriptPreprocessor,
)
from libpacker.build.targets import BuildTarget

# Comments kept by the minifier.
PRESERVE_COMMENTS = r"@preserve|@license"

# Module source substituted for ignored imports.
NOOP_MODULE = "export default {};"

SCRIPT_EXTENSIONS = (".js", ".jsx", ".mjs", ".json")
TYPESCRIPT_EXTENSIONS = (".ts", ".tsx")


class StageCategory(str, enum.Enum):
    """Stage categories, in pipeline order."""

    STYLE = "style"
    PRE_BUNDLE = "pre-bundle"
    RESOLVE = "resolve"
    TRANSFORM = "transform"
    MINIFY = "minify"
    POST_BUNDLE = "post-bundle"


class StyleMode(str, enum.Enum):
    """What the style stage does with imported stylesheets."""

    EXTRACT = "extract"  # Write a separate stylesheet file
    INLINE = "inline"  # Inject styles into the document head at runtime
    SUPPRESSED = "suppressed"  # Strip styles from the script output


@dataclass(frozen=True)
class PluginStage:
    """A named stage of a target's plugin pipeline."""

    name: str
    category: StageCategory
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "category": self.category.value, "options": self.options}


Pipeline = Tuple[PluginStage, ...]


def replace_import(specifier: str, patterns: Iterable[ReplacePattern]) -> str:
    """Apply every matching replace pattern to an import specifier, in order."""
    for pattern in patterns:
        if pattern.matches(specifier):
            specifier = pattern.apply(specifier)
    return specifier


def is_ignored_import(specifier: str, ignore: Iterable[str]) -> bool:
    """Check whether an import specifier is replaced by the no-op module."""
    return any(specifier == path or fnmatch.fnmatchcase(specifier, path) for path in ignore)


def style_stage(
        target: BuildTarget, config: ProjectConfig, package: PackageMetadata
) -> Optional[PluginStage]:
    """Build the style stage of a target, or None when styles are disabled."""
    style = config.compiler.style
    if style is False:
        return None

    if not target.bundle:
        mode = StyleMode.SUPPRESSED
    elif style.inline:
        mode = StyleMode.INLINE
    else:
        mode = StyleMode.EXTRACT

    suffix = ".min.css" if target.minify else ".css"
    options: Dict[str, Any] = {
        "mode": mode.value,
        "preprocessor": style.preprocessor.value,
        "minify": target.minify,
        "file": f"{style.out_dir}/{package.name}{suffix}" if mode is StyleMode.EXTRACT else None,
        "asset_paths": list(config.asset_paths),
        "image": style.image.model_dump() if style.image is not False else False,
    }
    return PluginStage("styles", StageCategory.STYLE, options)


def pre_bundle_stages(config: ProjectConfig) -> List[PluginStage]:
    return [
        PluginStage(
            "replace-imports",
            StageCategory.PRE_BUNDLE,
            {"patterns": [pattern.model_dump() for pattern in config.replace_patterns]},
        ),
        PluginStage(
            "ignore-imports",
            StageCategory.PRE_BUNDLE,
            {"paths": list(config.ignore), "module": NOOP_MODULE},
        ),
    ]


def resolve_stages(config: ProjectConfig) -> List[PluginStage]:
    """Module resolution stages for self contained flat bundles."""
    browser = config.compiler.build_mode == BuildMode.BROWSER
    extensions = list(SCRIPT_EXTENSIONS)
    if config.compiler.script.preprocessor == ScriptPreprocessor.TYPESCRIPT:
        extensions.extend(TYPESCRIPT_EXTENSIONS)
    return [
        PluginStage(
            "node-resolve",
            StageCategory.RESOLVE,
            {"browser": browser, "prefer_builtins": not browser, "extensions": extensions},
        ),
        PluginStage("commonjs", StageCategory.RESOLVE, {"include": "node_modules/**"}),
    ]


def transform_stage(target: BuildTarget, config: ProjectConfig) -> PluginStage:
    """Script transform stage, parametrized by target and preprocessor."""
    preprocessor = config.compiler.script.preprocessor
    name = "typescript" if preprocessor == ScriptPreprocessor.TYPESCRIPT else "babel"
    return PluginStage(
        name,
        StageCategory.TRANSFORM,
        {
            "target": target.transform,
            "minify": target.minify,
            "emit_typings": target.emit_typings,
            "source_map": config.compiler.source_map,
            "preprocessor": preprocessor.value,
            "config": config.to_dict(),
        },
    )


def minify_stage() -> PluginStage:
    return PluginStage("uglify", StageCategory.MINIFY, {"output": {"comments": PRESERVE_COMMENTS}})


def post_bundle_stages() -> List[PluginStage]:
    return [
        PluginStage("cleanup", StageCategory.POST_BUNDLE, {"comments": "license", "max_empty_lines": 1}),
        PluginStage("filesize", StageCategory.POST_BUNDLE, {}),
    ]


def assemble_pipeline(
        target: BuildTarget, config: ProjectConfig, package: PackageMetadata
) -> Pipeline:
    """Assemble the ordered plugin pipeline of a target.

    The result depends only on its arguments, so identical inputs always
    produce the same stages in the same order.

    Args:
        target: Target being built
        config: Project configuration
        package: Project package metadata

    Returns:
        Tuple of plugin stages in pipeline order.
    """
    stages: List[PluginStage] = []

    style = style_stage(target, config, package)
    if style is not None:
        stages.append(style)

    stages.extend(pre_bundle_stages(config))

    if target.bundle:
        stages.extend(resolve_stages(config))

    stages.append(transform_stage(target, config))

    if target.minify:
        stages.append(minify_stage())

    stages.extend(post_bundle_stages())
    return tuple(stages)
