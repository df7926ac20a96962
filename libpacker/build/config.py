"""Build configuration for libpacker projects.

This module contains the configuration models describing how a library
project is compiled into its distributable artifacts, and the package
metadata model read from the project's ``package.json``.

All models are frozen: a configuration loaded for a build invocation cannot
be mutated while targets are being built. Keys may be written either in the
camelCase form used by ``.packerrc`` files or in snake_case.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class DependencyMapMode(str, enum.Enum):
    """Rules for mapping project dependencies into the output package."""

    CROSS_MAP_PEER_DEPENDENCY = "cross-map-peer-dependency"  # dependencies -> peerDependencies
    CROSS_MAP_DEPENDENCY = "cross-map-dependency"  # peerDependencies -> dependencies
    MAP_DEPENDENCY = "map-dependency"
    MAP_PEER_DEPENDENCY = "map-peer-dependency"
    ALL = "all"


class ScriptPreprocessor(str, enum.Enum):
    """Script preprocessors understood by the transform stage."""

    TYPESCRIPT = "typescript"
    NONE = "none"


class StylePreprocessor(str, enum.Enum):
    """Style preprocessors understood by the style stage."""

    SCSS = "scss"
    SASS = "sass"
    LESS = "less"
    STYLUS = "stylus"
    NONE = "none"


class BundleFormat(str, enum.Enum):
    """Module formats for the flat bundle targets."""

    UMD = "umd"
    AMD = "amd"
    IIFE = "iife"
    SYSTEM = "system"
    CJS = "cjs"
    ESM = "esm"
    ES = "es"  # Flattened ES module output, used by the FESM targets


class BuildMode(str, enum.Enum):
    """Kind of library being compiled."""

    BROWSER = "browser"  # Browser/NodeJS compliant module
    NODE = "node"  # NodeJS only module
    NODE_CLI = "node-cli"  # NodeJS command line tool


class _Model(BaseModel):
    """Shared pydantic configuration for all build models."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ImageConfig(_Model):
    """Image inlining settings for scripts and stylesheets."""

    inline_limit: int = 1000000
    out_dir: str = "images"


class TargetFlags(_Model):
    """Enablement flags for the optional build targets.

    The flat bundle has no flag: it is always built. ``es5_min`` and
    ``esnext_min`` are accepted for rc file compatibility; no minified
    flattened targets exist.
    """

    bundle_min: bool = True
    es5: bool = False
    es5_min: bool = False
    esnext: bool = True
    esnext_min: bool = True


class ScriptConfig(_Model):
    """Script compile settings."""

    preprocessor: ScriptPreprocessor = ScriptPreprocessor.NONE
    image: Union[ImageConfig, Literal[False]] = Field(default_factory=ImageConfig)


class StyleConfig(_Model):
    """Style compile settings."""

    inline: bool = False
    out_dir: str = "styles"
    preprocessor: StylePreprocessor = StylePreprocessor.NONE
    image: Union[ImageConfig, Literal[False]] = Field(default_factory=ImageConfig)


class CompilerConfig(_Model):
    """Compiler settings.

    Attributes:
        dependency_map_mode: How dependencies are written to the output package
        source_map: Emit source maps; ``"inline"`` appends them to the artifact
        build: Enablement flags for the optional targets
        build_mode: Kind of library (browser, node or node CLI)
        script: Script preprocessing settings
        style: Style settings, or ``False`` when styles are not supported
        concurrent_build: Build the enabled targets concurrently
        continue_on_error: Keep building remaining targets after a failure
    """

    dependency_map_mode: DependencyMapMode = DependencyMapMode.CROSS_MAP_PEER_DEPENDENCY
    source_map: Union[bool, Literal["inline"]] = True
    build: TargetFlags = Field(default_factory=TargetFlags)
    build_mode: BuildMode = BuildMode.BROWSER
    script: ScriptConfig = Field(default_factory=ScriptConfig)
    style: Union[StyleConfig, Literal[False]] = Field(default_factory=StyleConfig)
    concurrent_build: bool = False
    continue_on_error: bool = False

    @field_validator("style", mode="before")
    @classmethod
    def validate_style(cls, v: Any) -> Any:
        """Treat ``style: true`` as the default style configuration."""
        if v is True:
            return {}
        return v


class ReplacePattern(_Model):
    """Import path replacement rule.

    ``test`` is matched against the whole import specifier, or searched in it
    as a regular expression when ``regex`` is set.
    """

    test: str
    replace: str
    regex: bool = False

    @model_validator(mode="after")
    def validate_test(self) -> ReplacePattern:
        """Reject empty tests and invalid expressions."""
        if not self.test:
            raise ValueError("Replace pattern test must not be empty")
        if self.regex:
            try:
                re.compile(self.test)
            except re.error as e:
                raise ValueError(f"Invalid replace pattern expression {self.test!r}: {e}") from e
        return self

    def matches(self, specifier: str) -> bool:
        """Check whether an import specifier matches this rule."""
        if self.regex:
            return re.search(self.test, specifier) is not None
        return specifier == self.test

    def apply(self, specifier: str) -> str:
        """Return the specifier with this rule applied."""
        if self.regex:
            return re.sub(self.test, self.replace, specifier)
        if specifier == self.test:
            return self.replace
        return specifier


class AmdConfig(_Model):
    """AMD flat bundle settings."""

    define: str = ""
    id: str = ""


class BundleConfig(_Model):
    """Flat bundle settings.

    Attributes:
        externals: Module names excluded from the bundle
        globals: Mapping of external module name to runtime global name
        map_externals: Treat every globals key as an external too
        format: Module format of the flat bundles
        namespace: Global namespace of browser compliant bundles
        amd: AMD define/id settings
    """

    externals: Tuple[str, ...] = ()
    globals: Dict[str, str] = Field(default_factory=dict)
    map_externals: bool = True
    format: BundleFormat = BundleFormat.UMD
    namespace: str = "com.lib"
    amd: AmdConfig = Field(default_factory=AmdConfig)


class WatchConfig(_Model):
    """Watch mode serve settings, kept for rc file compatibility."""

    demo_dir: str = "demo/watch"
    helper_dir: str = "demo/helper"
    serve_dir: Tuple[str, ...] = ()
    open: bool = True
    port: int = 4000


class LicenseConfig(_Model):
    """License banner settings."""

    banner: bool = True


class EngineConfig(_Model):
    """External build engine invocation settings."""

    command: Tuple[str, ...] = ("npx", "rollup", "--config")
    timeout: Optional[float] = None

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Require at least an executable."""
        if not v:
            raise ValueError("Build engine command must not be empty")
        return v


class ConsoleLogConfig(_Model):
    enabled: bool = True
    level: str = "INFO"


class FileLogConfig(_Model):
    enabled: bool = False
    path: str = "logs/libpacker.log"


class LoggingConfig(_Model):
    """Logging settings."""

    level: str = "INFO"
    format: Literal["text", "json"] = "text"
    console: ConsoleLogConfig = Field(default_factory=ConsoleLogConfig)
    file: FileLogConfig = Field(default_factory=FileLogConfig)


class ProjectConfig(_Model):
    """Configuration of a library project build.

    Attributes:
        entry: Entry source file, relative to the source directory
        source: Source directory
        dist: Build artifact output directory
        tmp: Temporary working directory
        compiler: Compiler settings
        asset_paths: Directories holding assets referenced by stylesheets
        copy_files: Project-relative globs copied verbatim into ``dist``
        ignore: Import paths replaced by a no-op module
        replace_patterns: Import path replacement rules
        bundle: Flat bundle settings
        license: License banner settings
        engine: External build engine settings
        logging: Logging settings
        test_framework: Unit test framework name, unused by the build
        watch: Watch mode settings, or ``False``; unused by the build
    """

    entry: str = "index.js"
    source: str = "src"
    dist: str = "dist"
    tmp: str = ".tmp"
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    asset_paths: Tuple[str, ...] = ()
    copy_files: Tuple[str, ...] = Field(default=("README.md", "LICENSE"), alias="copy")
    ignore: Tuple[str, ...] = ()
    replace_patterns: Tuple[ReplacePattern, ...] = ()
    bundle: BundleConfig = Field(default_factory=BundleConfig)
    license: LicenseConfig = Field(default_factory=LicenseConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    test_framework: Optional[str] = None
    watch: Union[WatchConfig, Literal[False]] = Field(default_factory=WatchConfig)

    @property
    def cli_project(self) -> bool:
        """Whether the project is a node command line tool."""
        return self.compiler.build_mode == BuildMode.NODE_CLI

    @property
    def style_enabled(self) -> bool:
        """Whether stylesheet support is enabled."""
        return self.compiler.style is not False

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> ProjectConfig:
        """Create a ProjectConfig from a dictionary.

        Args:
            config_dict: Dictionary containing configuration values.

        Returns:
            ProjectConfig instance.
        """
        return cls.model_validate(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the ProjectConfig to a JSON compatible dictionary."""
        return self.model_dump(mode="json", by_alias=True)


class PackageMetadata(BaseModel):
    """Project package descriptor (``package.json``).

    Unknown keys are kept so the descriptor round-trips; only the fields
    below take part in the build.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[Tuple[str, ...]] = None
    author: Optional[Union[str, Dict[str, Any]]] = None
    repository: Optional[Union[str, Dict[str, Any]]] = None
    license: Optional[str] = None
    bugs: Optional[Union[str, Dict[str, Any]]] = None
    homepage: Optional[str] = None
    dependencies: Optional[Dict[str, str]] = None
    peer_dependencies: Optional[Dict[str, str]] = None
    bin: Optional[Union[str, Dict[str, str]]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Package name is used to derive artifact file names."""
        if not v or not v.strip():
            raise ValueError("Package name must not be empty")
        return v
