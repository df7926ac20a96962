"""Unit tests for the Configuration Manager."""

import json

import pytest
import yaml

from libpacker.build.config import BuildMode, DependencyMapMode
from libpacker.core.base import BaseManager
from libpacker.core.config_manager import ConfigManager
from libpacker.utils.exceptions import ConfigurationError, ManagerInitializationError


def write_yaml(path, data):
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.mark.asyncio
async def test_defaults_without_config_file(project_dir):
    """A project without a configuration file builds with the defaults."""
    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert isinstance(manager, BaseManager)
    assert manager.initialized
    assert manager.healthy
    assert manager.config.dist == "dist"
    assert manager.package.name == "sample-lib"
    assert manager.status()["config_file"] is None
    await manager.shutdown()
    assert not manager.initialized


@pytest.mark.asyncio
async def test_yaml_config(project_dir):
    write_yaml(project_dir / ".packerrc.yaml", {
        "dist": "out",
        "compiler": {"buildMode": "node-cli", "dependencyMapMode": "all"},
    })
    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert manager.config.dist == "out"
    assert manager.config.compiler.build_mode is BuildMode.NODE_CLI
    assert manager.config.compiler.dependency_map_mode is DependencyMapMode.ALL
    assert manager.status()["config_file"] == str(project_dir / ".packerrc.yaml")


@pytest.mark.asyncio
async def test_json_config(project_dir):
    (project_dir / ".packerrc.json").write_text(json.dumps({"entry": "main.ts"}), encoding="utf-8")
    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()
    assert manager.config.entry == "main.ts"


@pytest.mark.asyncio
async def test_explicit_config_path(project_dir):
    write_yaml(project_dir / "build.yml", {"tmp": ".cache"})
    manager = ConfigManager(project_dir=project_dir, config_path="build.yml")
    await manager.initialize()
    assert manager.config.tmp == ".cache"


@pytest.mark.asyncio
async def test_explicit_config_path_missing(project_dir):
    manager = ConfigManager(project_dir=project_dir, config_path="nope.yaml")

    with pytest.raises(ManagerInitializationError) as excinfo:
        await manager.initialize()

    assert isinstance(excinfo.value.__cause__, ConfigurationError)


@pytest.mark.asyncio
async def test_env_overrides(project_dir, monkeypatch):
    """Environment variables override nested settings."""
    write_yaml(project_dir / ".packerrc.yaml", {"compiler": {"build": {"es5": False}}})
    monkeypatch.setenv("LIBPACKER_COMPILER__BUILD__ES5", "true")
    monkeypatch.setenv("LIBPACKER_BUNDLE__EXTERNALS", '["a", "b"]')
    monkeypatch.setenv("LIBPACKER_DIST", "build")

    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert manager.config.compiler.build.es5 is True
    assert manager.config.bundle.externals == ("a", "b")
    assert manager.config.dist == "build"
    assert manager.status()["env_vars_applied"] == 3


@pytest.mark.asyncio
async def test_base_rc_file(project_dir):
    """A configuration carrying every key of the rc template loads."""
    base_rc = {
        "entry": "index.js",
        "source": "src",
        "dist": "dist",
        "tmp": ".tmp",
        "compiler": {
            "dependencyMapMode": "cross-map-peer-dependency",
            "sourceMap": True,
            "build": {"bundleMin": True, "es5": False, "es5Min": False, "esnext": True, "esnextMin": True},
            "buildMode": "browser",
            "script": {"preprocessor": "none", "image": {"inlineLimit": 1000000, "outDir": "images"}},
            "style": {
                "inline": False,
                "outDir": "styles",
                "preprocessor": "none",
                "image": {"inlineLimit": 1000000, "outDir": "images"},
            },
            "concurrentBuild": True,
        },
        "assetPaths": ["src/assets"],
        "copy": ["README.md", "LICENSE", "assets/**/{.*,*}"],
        "ignore": [],
        "replacePatterns": [{"test": "./config/base-config", "replace": "./config/replace-config"}],
        "bundle": {
            "externals": ["regenerator-runtime/**", "@babel/runtime/**"],
            "globals": {"react": "React", "react-dom": "ReactDOM"},
            "mapExternals": True,
            "format": "umd",
            "namespace": "com.lib",
            "amd": {"define": "", "id": "my-lib"},
        },
        "testFramework": "jasmine",
        "watch": {
            "demoDir": "demo/watch",
            "helperDir": "demo/helper",
            "serveDir": ["node_modules/react/umd", "node_modules/react-dom/umd"],
            "open": True,
            "port": 4000,
        },
        "license": {"banner": True},
    }
    (project_dir / ".packerrc.json").write_text(json.dumps(base_rc), encoding="utf-8")

    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert manager.config.test_framework == "jasmine"
    assert manager.config.bundle.amd.id == "my-lib"
    assert manager.config.compiler.concurrent_build is True


@pytest.mark.asyncio
async def test_unrelated_env_vars_skipped(project_dir, monkeypatch):
    """Prefixed variables that name no setting do not break loading."""
    monkeypatch.setenv("LIBPACKER_HOME", "/opt/libpacker")
    monkeypatch.setenv("LIBPACKER_COMPILER__NOPE", "1")
    monkeypatch.setenv("LIBPACKER_DIST__DEEPER", "x")
    monkeypatch.setenv("LIBPACKER_COMPILER__BUILD__ES5", "true")

    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert manager.config.compiler.build.es5 is True
    assert manager.config.dist == "dist"
    assert manager.status()["env_vars_applied"] == 1
    assert manager.status()["env_vars_skipped"] == 3


@pytest.mark.asyncio
async def test_invalid_config(project_dir):
    write_yaml(project_dir / ".packerrc.yaml", {"compiler": {"dependencyMapMode": "nope"}})
    manager = ConfigManager(project_dir=project_dir)

    with pytest.raises(ManagerInitializationError) as excinfo:
        await manager.initialize()

    cause = excinfo.value.__cause__
    assert isinstance(cause, ConfigurationError)
    assert cause.details["validation_errors"][0]["loc"] == ["compiler", "dependencyMapMode"]


@pytest.mark.asyncio
async def test_malformed_yaml(project_dir):
    (project_dir / ".packerrc.yaml").write_text("compiler: [unclosed", encoding="utf-8")
    manager = ConfigManager(project_dir=project_dir)

    with pytest.raises(ManagerInitializationError):
        await manager.initialize()


@pytest.mark.asyncio
async def test_non_mapping_config(project_dir):
    (project_dir / ".packerrc.yaml").write_text("- a\n- b\n", encoding="utf-8")
    manager = ConfigManager(project_dir=project_dir)

    with pytest.raises(ManagerInitializationError):
        await manager.initialize()


@pytest.mark.asyncio
async def test_missing_package_json(tmp_path):
    manager = ConfigManager(project_dir=tmp_path)

    with pytest.raises(ManagerInitializationError) as excinfo:
        await manager.initialize()

    assert excinfo.value.__cause__.config_key == "package.json"


@pytest.mark.asyncio
async def test_get(project_dir):
    manager = ConfigManager(project_dir=project_dir)
    await manager.initialize()

    assert manager.get("compiler.build.esnext") is True
    assert manager.get("compiler.missing", "default") == "default"


def test_access_before_initialization(project_dir):
    manager = ConfigManager(project_dir=project_dir)

    with pytest.raises(ConfigurationError):
        manager.config
    with pytest.raises(ConfigurationError):
        manager.get("dist")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("true", True),
        ("off", False),
        ("42", 42),
        ("-3", -3),
        ("1.5", 1.5),
        ("text", "text"),
        ('{"a": 1}', {"a": 1}),
        ("[broken", "[broken"),
    ],
)
def test_parse_env_value(value, expected):
    assert ConfigManager._parse_env_value(value) == expected
