"""libpacker - multi-target build orchestrator for JavaScript libraries."""

from libpacker.__version__ import __version__
