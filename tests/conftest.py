"""Pytest configuration and fixtures for libpacker tests."""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, List, Mapping, Optional, Set

import pytest

from libpacker.build.config import PackageMetadata, ProjectConfig
from libpacker.utils.exceptions import BuildEngineError

PACKAGE_JSON: Dict[str, Any] = {
    "name": "sample-lib",
    "version": "1.2.3",
    "description": "Sample library",
    "keywords": ["sample", "lib"],
    "author": {"name": "Jane Doe", "email": "jane@example.com"},
    "license": "MIT",
    "homepage": "https://example.com/sample-lib",
    "scripts": {"test": "jest"},
    "dependencies": {"lodash": "^4.17.0"},
    "peerDependencies": {"react": "^18.0.0"},
    "devDependencies": {"rollup": "^4.0.0"},
}


class FakeEngine:
    """Build engine recording its invocations and writing stub artifacts."""

    def __init__(self, fail_on: Optional[Set[str]] = None, write: bool = True) -> None:
        self.fail_on = set(fail_on or ())
        self.write = write
        self.labels: List[str] = []
        self.configs: List[Dict[str, Any]] = []

    async def invoke(self, config: Mapping[str, Any], label: str) -> pathlib.Path:
        self.labels.append(label)
        self.configs.append(dict(config))
        if label in self.fail_on:
            raise BuildEngineError("Simulated failure", target=label)

        artifact = pathlib.Path(config["output"]["file"])
        if self.write:
            artifact.parent.mkdir(parents=True, exist_ok=True)
            artifact.write_text(f"// {label}\n", encoding="utf-8")
        return artifact


@pytest.fixture
def project_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create a minimal library project."""
    (tmp_path / "package.json").write_text(json.dumps(PACKAGE_JSON, indent=2), encoding="utf-8")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.js").write_text("export default 42;\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("# sample-lib\n", encoding="utf-8")
    (tmp_path / "LICENSE").write_text("MIT License\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def package() -> PackageMetadata:
    """Package metadata of the sample project."""
    return PackageMetadata.model_validate(PACKAGE_JSON)


@pytest.fixture
def config() -> ProjectConfig:
    """Default project configuration."""
    return ProjectConfig()


@pytest.fixture
def engine_factory():
    """Factory for fake build engines."""
    return FakeEngine


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()
