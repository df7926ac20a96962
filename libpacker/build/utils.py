"""Utility functions for the libpacker build system.

This module contains helpers used by the build system: configuration deep
merging, copy glob matching, resource collection and template rendering.
"""

from __future__ import annotations

import copy
import datetime
import os
import pathlib
import re
import string
from typing import Any, Dict, List, Mapping, Optional, Union

from libpacker.build.config import PackageMetadata
from libpacker.utils.exceptions import TemplateError

GLOB_MAGIC = re.compile(r"[*?\[{]")

BANNER_TEMPLATE = """/**
 * $name - $description
 * @version v$version
 * @link $homepage
 * @author $author
 * @license $license
 *
 * Copyright (c) $year $author
 */"""


def get_application_version() -> str:
    """Get the version of libpacker.

    Returns:
        Version string of the application.
    """
    from libpacker.__version__ import __version__

    return __version__


def deep_merge(base: Mapping[str, Any], *overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge overrides into a copy of a base mapping.

    Mappings are merged recursively; any other value, lists included,
    replaces the base value. Neither the base nor the overrides are modified.

    Args:
        base: Base mapping
        *overrides: Mappings applied in order over the base

    Returns:
        New merged dictionary.
    """
    merged = copy.deepcopy(dict(base))
    for override in overrides:
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, Mapping) and isinstance(value, Mapping):
                merged[key] = deep_merge(current, value)
            else:
                merged[key] = copy.deepcopy(value)
    return merged


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternations of a glob pattern.

    Args:
        pattern: Glob pattern

    Returns:
        List of patterns without brace alternations, in expansion order.
    """
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]

    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(pattern[:match.start()] + option + pattern[match.end():]))
    return expanded


def fnmatch_to_regex(pattern: str) -> str:
    """Convert a fnmatch/glob pattern to a regex pattern.

    ``**/`` matches any number of directories, ``*`` and ``?`` never cross a
    path separator.

    Args:
        pattern: Fnmatch/glob pattern

    Returns:
        Regex pattern string
    """
    regex = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            regex.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            regex.append(".*")
            i += 2
        elif pattern[i] == "*":
            regex.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            regex.append("[^/]")
            i += 1
        else:
            regex.append(re.escape(pattern[i]))
            i += 1
    return "^" + "".join(regex) + "$"


def glob_base(pattern: str) -> str:
    """Get the non-magic leading directory of a glob pattern.

    Matched files keep their path relative to this base when copied.
    """
    parts = pattern.split("/")
    if not GLOB_MAGIC.search(pattern):
        return "/".join(parts[:-1])

    base = []
    for part in parts:
        if GLOB_MAGIC.search(part):
            break
        base.append(part)
    return "/".join(base)


def collect_resources(
        base_dir: Union[str, pathlib.Path], patterns: List[str]
) -> Dict[pathlib.Path, pathlib.Path]:
    """Collect the files matched by a list of copy globs.

    Patterns without a match are skipped. Results are ordered by pattern,
    then by path, so repeated runs copy the same files in the same order.

    Args:
        base_dir: Project directory the patterns are relative to
        patterns: Glob patterns supporting ``**`` and ``{a,b}``

    Returns:
        Dictionary mapping source files to their path relative to the
        output directory
    """
    base_dir = pathlib.Path(base_dir)
    resources: Dict[pathlib.Path, pathlib.Path] = {}

    for pattern in patterns:
        if pattern.startswith("./"):
            pattern = pattern[2:]
        for expanded in expand_braces(pattern):
            root = glob_base(expanded)
            root_path = base_dir / root

            if not GLOB_MAGIC.search(expanded):
                file_path = base_dir / expanded
                if file_path.is_file():
                    resources.setdefault(file_path, pathlib.Path(file_path.name))
                continue

            if not root_path.is_dir():
                continue

            regex = re.compile(fnmatch_to_regex(expanded))
            matches = []
            for dirpath, _dirnames, filenames in os.walk(root_path):
                for file in filenames:
                    file_path = pathlib.Path(dirpath) / file
                    rel_path = file_path.relative_to(base_dir).as_posix()
                    if regex.match(rel_path):
                        matches.append(file_path)

            for file_path in sorted(matches):
                resources.setdefault(file_path, file_path.relative_to(root_path))

    return resources


def render_template(template: str, *, strict: bool = True, **values: Any) -> str:
    """Render a ``string.Template`` text.

    Args:
        template: Template text
        strict: Fail on unknown or malformed placeholders. When false, any
            ``$`` text other than the given values is left as written, so
            JavaScript template literals such as ``${x}`` survive.
        **values: Placeholder values

    Raises:
        TemplateError: If a strict template references an unknown variable.
    """
    if not strict:
        return string.Template(template).safe_substitute(values)
    try:
        return string.Template(template).substitute(values)
    except (KeyError, ValueError) as e:
        raise TemplateError(f"Cannot render template: {e}") from e


def format_person(person: Any) -> str:
    """Format a package.json person field (string or object)."""
    if not person:
        return ""
    if isinstance(person, str):
        return person
    name = person.get("name", "")
    email = person.get("email")
    return f"{name} <{email}>" if email else name


def render_banner(package: PackageMetadata, year: Optional[int] = None) -> str:
    """Render the license banner prepended to every artifact.

    The year is the only time-dependent part of the banner.
    """
    return render_template(
        BANNER_TEMPLATE,
        name=package.name,
        description=package.description or "",
        version=package.version or "0.0.0",
        homepage=package.homepage or "",
        author=format_person(package.author),
        license=package.license or "UNLICENSED",
        year=year if year is not None else datetime.date.today().year,
    )
