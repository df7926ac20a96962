from __future__ import annotations

import json
import logging
import os
import pathlib
from typing import Any, Dict, List, Optional, Union

import aiofiles
import yaml
from pydantic import BaseModel, ValidationError

from libpacker.build.config import PackageMetadata, ProjectConfig
from libpacker.core.base import PackerManager
from libpacker.utils.exceptions import ConfigurationError, ManagerInitializationError

CONFIG_FILE_NAMES = ('.packerrc.yaml', '.packerrc.yml', '.packerrc.json')
PACKAGE_FILE_NAME = 'package.json'


class ConfigManager(PackerManager):
    """Asynchronous configuration manager for a library project.

    This manager loads the project configuration and the package metadata
    once per build invocation and exposes them as frozen values.

    Attributes:
        _project_dir: Project root directory
        _config_path: Explicit configuration file, if any
        _env_prefix: Prefix for environment variable overrides
        _config: The validated project configuration
        _package: The validated package metadata
        _loaded_from: Configuration file the settings were read from
        _env_vars_applied: Applied environment variables
        _env_vars_skipped: Prefixed environment variables naming no setting
    """

    def __init__(
            self,
            project_dir: Optional[Union[str, pathlib.Path]] = None,
            config_path: Optional[Union[str, pathlib.Path]] = None,
            env_prefix: str = 'LIBPACKER_',
            logger: Optional[logging.Logger] = None
    ) -> None:
        """Initialize the configuration manager.

        Args:
            project_dir: Project root directory, defaults to the working directory
            config_path: Path to the configuration file
            env_prefix: Prefix for environment variables
            logger: Logger, defaults to the module logger
        """
        super().__init__(name='config_manager')
        self._project_dir = pathlib.Path(project_dir) if project_dir else pathlib.Path.cwd()
        self._config_path = pathlib.Path(config_path) if config_path else None
        self._env_prefix = env_prefix
        self._config: Optional[ProjectConfig] = None
        self._package: Optional[PackageMetadata] = None
        self._loaded_from: Optional[pathlib.Path] = None
        self._env_vars_applied: List[str] = []
        self._env_vars_skipped: List[str] = []
        self._logger = logger if logger else logging.getLogger(__name__)

    async def initialize(self) -> None:
        """Initialize the configuration manager asynchronously.

        Loads the configuration file, applies environment overrides and
        reads the package metadata.

        Raises:
            ManagerInitializationError: If initialization fails
        """
        try:
            file_config = await self._load_from_file()
            config = self._validate(ProjectConfig, file_config)
            self._config = self._apply_env_vars(config)
            self._package = await self._load_package()

            self._initialized = True
            self._healthy = True
        except Exception as e:
            raise ManagerInitializationError(
                f'Failed to initialize ConfigManager: {str(e)}',
                manager_name=self.name
            ) from e

    @property
    def project_dir(self) -> pathlib.Path:
        return self._project_dir

    @property
    def config(self) -> ProjectConfig:
        """The project configuration.

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if self._config is None:
            raise ConfigurationError('Cannot access configuration before initialization')
        return self._config

    @property
    def package(self) -> PackageMetadata:
        """The project package metadata.

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if self._package is None:
            raise ConfigurationError(
                'Cannot access package metadata before initialization',
                config_key=PACKAGE_FILE_NAME
            )
        return self._package

    def _find_config_file(self) -> Optional[pathlib.Path]:
        if self._config_path is not None:
            path = self._config_path if self._config_path.is_absolute() else self._project_dir / self._config_path
            if not path.is_file():
                raise ConfigurationError(f'Config file not found: {path}', config_key='config_path')
            return path

        for name in CONFIG_FILE_NAMES:
            path = self._project_dir / name
            if path.is_file():
                return path
        return None

    async def _load_from_file(self) -> Dict[str, Any]:
        """Load configuration from a file asynchronously.

        Returns:
            The raw configuration, empty when no configuration file exists

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        path = self._find_config_file()
        if path is None:
            return {}

        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                content = await f.read()

            if path.suffix.lower() in ('.yaml', '.yml'):
                file_config = yaml.safe_load(content)
            elif path.suffix.lower() == '.json':
                file_config = json.loads(content)
            else:
                raise ConfigurationError(
                    f'Unsupported config file format: {path.suffix}',
                    config_key='config_path'
                )
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f'Error parsing config file {path}: {str(e)}',
                config_key='config_path'
            ) from e

        if file_config is None:
            file_config = {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(
                f'Config file {path} must contain a mapping',
                config_key='config_path'
            )

        self._loaded_from = path
        return file_config

    async def _load_package(self) -> PackageMetadata:
        path = self._project_dir / PACKAGE_FILE_NAME
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                data = json.loads(await f.read())
        except FileNotFoundError as e:
            raise ConfigurationError(
                f'Package descriptor not found: {path}',
                config_key=PACKAGE_FILE_NAME
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f'Error parsing package descriptor {path}: {str(e)}',
                config_key=PACKAGE_FILE_NAME
            ) from e

        return self._validate(PackageMetadata, data, config_key=PACKAGE_FILE_NAME)

    def _apply_env_vars(self, config: ProjectConfig) -> ProjectConfig:
        """Apply environment variables to the configuration.

        ``LIBPACKER_COMPILER__BUILD__ES5=true`` sets ``compiler.build.es5``;
        a double underscore separates nesting levels. Variables that do not
        name an existing setting are skipped.
        """
        data = config.model_dump()
        for env_name, env_value in sorted(os.environ.items()):
            if not env_name.startswith(self._env_prefix):
                continue

            config_path = env_name[len(self._env_prefix):].lower().split('__')
            if not self._has_path(data, config_path):
                self._logger.debug('Skipping environment variable %s: no such setting', env_name)
                self._env_vars_skipped.append(env_name)
                continue

            self._set_nested_value(data, config_path, self._parse_env_value(env_value))
            self._env_vars_applied.append(env_name)

        if not self._env_vars_applied:
            return config
        return self._validate(ProjectConfig, data)

    @staticmethod
    def _has_path(config: Dict[str, Any], path: List[str]) -> bool:
        node: Any = config
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return False
            node = node[key]
        return True

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable values into appropriate types.

        Args:
            value: The string value from the environment

        Returns:
            The parsed value (list, dict, bool, int, float, or string)
        """
        if value[:1] in ('[', '{'):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if value.isdigit() or (value.startswith('-') and value[1:].isdigit()):
                return int(value)
            return float(value)
        except ValueError:
            return value

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a nested value in the configuration dictionary.

        Args:
            config: The configuration dictionary
            path: List of keys forming the path to the value
            value: The value to set
        """
        if not path:
            return

        if len(path) == 1:
            config[path[0]] = value
            return

        key = path[0]
        if key not in config or not isinstance(config[key], dict):
            config[key] = {}

        self._set_nested_value(config[key], path[1:], value)

    @staticmethod
    def _validate(model: type, data: Dict[str, Any], config_key: Optional[str] = None) -> Any:
        """Validate raw data against a configuration model.

        Raises:
            ConfigurationError: If the data is invalid
        """
        assert issubclass(model, BaseModel)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            errors = e.errors()
            error_details = ', '.join((
                f"{'.'.join((str(loc) for loc in error['loc']))}: {error['msg']}"
                for error in errors
            ))
            raise ConfigurationError(
                f'Invalid configuration: {error_details}',
                config_key=config_key,
                validation_errors=[
                    {'loc': list(error['loc']), 'msg': error['msg']} for error in errors
                ]
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            default: Default value if the key doesn't exist

        Returns:
            The configuration value or default

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot access configuration before initialization',
                config_key=key
            )

        result: Any = self.config.model_dump()
        try:
            for part in key.split('.'):
                result = result[part]
            return result
        except (KeyError, TypeError):
            return default

    async def shutdown(self) -> None:
        """Shut down the configuration manager."""
        self._initialized = False
        self._healthy = False

    def status(self) -> Dict[str, Any]:
        """Get the status of the configuration manager.

        Returns:
            Dictionary with status information
        """
        status = super().status()
        status.update({
            'project_dir': str(self._project_dir),
            'config_file': str(self._loaded_from) if self._loaded_from else None,
            'env_vars_applied': len(self._env_vars_applied),
            'env_vars_skipped': len(self._env_vars_skipped),
        })
        return status
