"""Build engine adapters.

The build engine turns one merged target configuration into one artifact.
libpacker treats it as a black box behind the :class:`BuildEngine` protocol;
:class:`CommandBuildEngine` runs an external bundler command for it.
"""

from __future__ import annotations

import asyncio
import enum
import json
import pathlib
import re
from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

import aiofiles
import aiofiles.os
import structlog

from libpacker.build.config import EngineConfig
from libpacker.build.plugins import PluginStage
from libpacker.utils.exceptions import BuildEngineError


@runtime_checkable
class BuildEngine(Protocol):
    """Protocol of the engine invoked once per build target."""

    async def invoke(self, config: Mapping[str, Any], label: str) -> pathlib.Path:
        """Build one artifact from a merged target configuration.

        Args:
            config: Merged target configuration
            label: Human readable target label

        Returns:
            Path of the written artifact.

        Raises:
            BuildEngineError: If the artifact cannot be built.
        """
        ...


def _json_default(value: Any) -> Any:
    if isinstance(value, PluginStage):
        return value.to_dict()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, pathlib.PurePath):
        return str(value)
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_target_config(config: Mapping[str, Any]) -> str:
    """Serialize a merged target configuration to JSON text."""
    return json.dumps(config, indent=2, default=_json_default) + "\n"


class CommandBuildEngine:
    """Build engine running an external bundler command.

    The merged configuration is written to ``<tmp_dir>/<label>.config.json``
    and its path appended to the command line.

    Attributes:
        command: Command line prefix of the bundler
        tmp_dir: Directory for the serialized target configurations
        timeout: Optional timeout per invocation, in seconds
    """

    def __init__(
            self,
            command: Sequence[str],
            tmp_dir: pathlib.Path,
            timeout: Optional[float] = None,
            cwd: Optional[pathlib.Path] = None,
            logger: Optional[Any] = None,
    ) -> None:
        self.command = list(command)
        self.tmp_dir = pathlib.Path(tmp_dir)
        self.timeout = timeout
        self.cwd = cwd
        self._logger = logger or structlog.get_logger("build_engine")

    @classmethod
    def from_config(
            cls, engine: EngineConfig, project_dir: pathlib.Path, tmp: str, logger: Optional[Any] = None
    ) -> CommandBuildEngine:
        """Create an engine from the project's engine settings."""
        return cls(
            engine.command,
            tmp_dir=project_dir / tmp,
            timeout=engine.timeout,
            cwd=project_dir,
            logger=logger,
        )

    def config_path(self, label: str) -> pathlib.Path:
        slug = re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")
        return self.tmp_dir / f"{slug}.config.json"

    async def invoke(self, config: Mapping[str, Any], label: str) -> pathlib.Path:
        """Run the bundler for one target.

        Raises:
            BuildEngineError: If the bundler cannot be started, fails, times
                out or does not write the expected artifact.
        """
        config_path = self.config_path(label)
        await aiofiles.os.makedirs(self.tmp_dir, exist_ok=True)
        async with aiofiles.open(config_path, "w", encoding="utf-8") as f:
            await f.write(serialize_target_config(config))

        cmd = self.command + [str(config_path)]
        self._logger.debug("Running build engine", target=label, command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except OSError as e:
            raise BuildEngineError(f"Cannot start build engine {cmd[0]!r}: {e}", target=label) from e

        try:
            return_code = await asyncio.wait_for(self._stream_output(process, label), self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise BuildEngineError(
                f"Build engine timed out after {self.timeout} seconds", target=label
            ) from e

        if return_code != 0:
            raise BuildEngineError(f"Build engine failed with return code {return_code}", target=label)

        artifact = pathlib.Path(config["output"]["file"])
        if not await aiofiles.os.path.exists(artifact):
            raise BuildEngineError(f"Build engine did not write {artifact}", target=label)
        return artifact

    async def _stream_output(self, process: asyncio.subprocess.Process, label: str) -> int:
        assert process.stdout is not None
        async for line in process.stdout:
            self._logger.debug(line.decode(errors="replace").rstrip(), target=label)
        return await process.wait()
