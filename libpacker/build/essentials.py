"""Output package essentials.

Writes the output ``package.json``, copies the auxiliary files listed in the
project configuration and, for command line projects, renders the
executable entry stub.
"""

from __future__ import annotations

import asyncio
import json
import os
import pathlib
import stat
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
import structlog

from libpacker.build.config import PackageMetadata, ProjectConfig, ScriptPreprocessor
from libpacker.build.dependency_map import map_dependencies
from libpacker.build.targets import ES5_FLATTENED, ESNEXT_FLATTENED, FLAT
from libpacker.build.utils import collect_resources, render_template
from libpacker.utils.exceptions import CopyError

# Fields copied verbatim from the project package descriptor.
PACKAGE_FIELDS = (
    "name",
    "version",
    "description",
    "keywords",
    "author",
    "repository",
    "license",
    "bugs",
    "homepage",
)

# rwxr-xr-x
BIN_MODE = stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH

BIN_TEMPLATE_NAME = "bin.js.tmpl"
DEFAULT_BIN_TEMPLATE = pathlib.Path(__file__).parent / "templates" / BIN_TEMPLATE_NAME


def build_package_descriptor(config: ProjectConfig, package: PackageMetadata) -> Dict[str, Any]:
    """Build the output package descriptor.

    Args:
        config: Project configuration
        package: Project package metadata

    Returns:
        Descriptor dictionary, keys in output order.
    """
    descriptor: Dict[str, Any] = {}
    for name in PACKAGE_FIELDS:
        value = getattr(package, name)
        if value is not None:
            descriptor[name] = list(value) if isinstance(value, tuple) else value

    if config.cli_project:
        descriptor["bin"] = package.bin or {package.name: bin_stub_name(package)}

    descriptor["main"] = FLAT.artifact_name(package)

    if config.compiler.script.preprocessor == ScriptPreprocessor.TYPESCRIPT:
        descriptor["typings"] = "index.d.ts"

    if ES5_FLATTENED.is_enabled(config):
        descriptor["module"] = ES5_FLATTENED.artifact_name(package)
        descriptor["fesm5"] = ES5_FLATTENED.artifact_name(package)

    if ESNEXT_FLATTENED.is_enabled(config):
        descriptor["esnext"] = ESNEXT_FLATTENED.artifact_name(package)
        descriptor["fesmnext"] = ESNEXT_FLATTENED.artifact_name(package)

    descriptor.update(
        map_dependencies(
            package.dependencies,
            package.peer_dependencies,
            config.compiler.dependency_map_mode,
        )
    )
    return descriptor


def bin_stub_name(package: PackageMetadata) -> str:
    return f"bin/{package.name}.js"


class EssentialsCopier:
    """Copies the package essentials into the output directory.

    Every copy runs as an independent task; :meth:`copy` returns only once
    all of them have finished.
    """

    def __init__(
            self,
            config: ProjectConfig,
            package: PackageMetadata,
            project_dir: pathlib.Path,
            logger: Optional[Any] = None,
    ) -> None:
        self.config = config
        self.package = package
        self.project_dir = pathlib.Path(project_dir)
        self.dist_dir = self.project_dir / config.dist
        self._logger = logger or structlog.get_logger("essentials")

    async def copy(self) -> List[pathlib.Path]:
        """Write the package descriptor, auxiliary files and CLI stub.

        Returns:
            Written paths, in a stable order.

        Raises:
            CopyError: If any copy fails. Raised after every other copy
                has finished.
        """
        operations = [self.write_package_descriptor()]
        for source, relative in collect_resources(self.project_dir, list(self.config.copy_files)).items():
            operations.append(self.copy_file(source, self.dist_dir / relative))
        if self.config.cli_project:
            operations.append(self.write_bin_stub())

        results = await asyncio.gather(*operations, return_exceptions=True)

        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            for error in errors:
                self._logger.error("Copy failed", error=str(error))
            first = errors[0]
            if isinstance(first, CopyError):
                raise first
            raise CopyError(f"Copy failed: {first}") from first

        self._logger.info("Essentials copied", files=len(results), dist=str(self.dist_dir))
        return list(results)

    async def write_package_descriptor(self) -> pathlib.Path:
        target = self.dist_dir / "package.json"
        content = json.dumps(build_package_descriptor(self.config, self.package), indent=2) + "\n"
        await self._write_text(target, content)
        return target

    async def copy_file(self, source: pathlib.Path, target: pathlib.Path) -> pathlib.Path:
        """Copy one file verbatim, keeping its permission bits."""
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(source, "rb") as src:
                data = await src.read()
            async with aiofiles.open(target, "wb") as dst:
                await dst.write(data)
            source_stat = await aiofiles.os.stat(source)
            await asyncio.to_thread(os.chmod, target, stat.S_IMODE(source_stat.st_mode))
        except OSError as e:
            raise CopyError(f"Cannot copy {source}: {e}", path=str(source)) from e
        self._logger.debug("Copied file", source=str(source), target=str(target))
        return target

    async def write_bin_stub(self) -> pathlib.Path:
        """Render the CLI entry stub and make it executable."""
        template_path = self.project_dir / "templates" / BIN_TEMPLATE_NAME
        if not await aiofiles.os.path.isfile(template_path):
            template_path = DEFAULT_BIN_TEMPLATE

        try:
            async with aiofiles.open(template_path, "r", encoding="utf-8") as f:
                template = await f.read()
        except OSError as e:
            raise CopyError(f"Cannot read template {template_path}: {e}", path=str(template_path)) from e

        content = render_template(template, strict=False, package_name=self.package.name)
        target = self.dist_dir / bin_stub_name(self.package)
        await self._write_text(target, content)
        try:
            await asyncio.to_thread(os.chmod, target, BIN_MODE)
        except OSError as e:
            raise CopyError(f"Cannot set permissions on {target}: {e}", path=str(target)) from e
        return target

    async def _write_text(self, target: pathlib.Path, content: str) -> None:
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise CopyError(f"Cannot write {target}: {e}", path=str(target)) from e
