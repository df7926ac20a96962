"""Mapping of project dependencies into the output package descriptor."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from libpacker.build.config import DependencyMapMode

DependencyFields = Dict[str, Dict[str, str]]


def map_dependencies(
        dependencies: Optional[Mapping[str, str]],
        peer_dependencies: Optional[Mapping[str, str]],
        mode: DependencyMapMode,
) -> DependencyFields:
    """Resolve the dependency fields of the output package descriptor.

    Fields a mode leaves unset are absent from the result, never empty. A
    source field that is itself missing is not written either.

    Args:
        dependencies: ``dependencies`` of the project package
        peer_dependencies: ``peerDependencies`` of the project package
        mode: Active dependency map mode

    Returns:
        Mapping with at most the ``dependencies`` and ``peerDependencies`` keys.

    Raises:
        ValueError: If the mode is not a known dependency map mode.
    """
    mode = DependencyMapMode(mode)

    if mode is DependencyMapMode.CROSS_MAP_PEER_DEPENDENCY:
        fields = {"peerDependencies": dependencies}
    elif mode is DependencyMapMode.CROSS_MAP_DEPENDENCY:
        fields = {"dependencies": peer_dependencies}
    elif mode is DependencyMapMode.MAP_DEPENDENCY:
        fields = {"dependencies": dependencies}
    elif mode is DependencyMapMode.MAP_PEER_DEPENDENCY:
        fields = {"peerDependencies": peer_dependencies}
    else:
        fields = {"peerDependencies": peer_dependencies, "dependencies": dependencies}

    return {key: dict(value) for key, value in fields.items() if value is not None}
