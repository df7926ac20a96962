"""Setup script for libpacker.

This script installs libpacker and its dependencies.
"""

from __future__ import annotations

import pathlib

import setuptools

here = pathlib.Path(__file__).parent

# Read the long description from README.md
long_description = (here / "README.md").read_text(encoding="utf-8")

# Read version from __version__.py
version = {}
exec((here / "libpacker" / "__version__.py").read_text(encoding="utf-8"), version)

# Dependencies
install_requires = [
    "pydantic>=2.0.0",
    "pyyaml>=6.0",
    "structlog>=22.1.0",
    "python-json-logger>=2.0.4",
    "aiofiles>=23.1.0",
]

# Development dependencies
dev_requires = [
    "pytest>=7.0.0",
    "pytest-asyncio>=0.21.0",
    "pytest-cov>=4.0.0",
    "black>=23.1.0",
    "isort>=5.12.0",
    "mypy>=1.0.0",
    "types-pyyaml",
    "types-aiofiles",
]

setuptools.setup(
    name="libpacker",
    version=version.get("__version__", "0.1.0"),
    author="libpacker contributors",
    description="Configuration-driven multi-target build orchestrator for JavaScript libraries",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["libpacker", "libpacker.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
    install_requires=install_requires,
    extras_require={
        "dev": dev_requires,
        "test": ["pytest>=7.0.0", "pytest-asyncio>=0.21.0"],
    },
    entry_points={
        "console_scripts": [
            "libpacker=libpacker.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "libpacker": ["build/templates/*.tmpl"],
    },
)
