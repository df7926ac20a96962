"""Extraction of the module names kept out of every bundle."""

from __future__ import annotations

from typing import Tuple

from libpacker.build.config import BundleConfig


def extract_bundle_externals(bundle: BundleConfig) -> Tuple[str, ...]:
    """Compute the externals shared by all targets of a build.

    The configured externals come first, followed by the globals keys when
    ``map_externals`` is set. Duplicates are dropped keeping the first
    occurrence, so identical configurations always yield the same order.

    Args:
        bundle: Bundle configuration

    Returns:
        Immutable, de-duplicated tuple of external module names.
    """
    names = list(bundle.externals)
    if bundle.map_externals:
        names.extend(bundle.globals.keys())
    return tuple(dict.fromkeys(names))
