"""Include/exclude filtering for extracted files and dependency names."""

import re
from collections.abc import Iterable

import semantic_version
from pathspec import GitIgnoreSpec, PathSpec

from .errors import ExtractorConfigurationError
from .models import DependencyConfiguration
from .paths import convert_to_slashes

# Ignore rules used when walking a folder without a publish list
TREE_WALK_IGNORE_PATTERNS = [
    # The top-level node_modules folder is always excluded
    "/node_modules",
    "**/.git",
    "**/.svn",
    "**/.hg",
    "**/.DS_Store",
]


def matches_with_star(pattern_with_star: str, value: str) -> bool:
    """Match ``value`` against a pattern where ``*`` is the only wildcard."""
    regex = "^" + ".*".join(re.escape(part) for part in pattern_with_star.split("*")) + "$"
    return re.match(regex, value) is not None


def _anchor_pattern(pattern: str) -> str:
    # Patterns are relative to the package folder, like minimatch, not floating like gitignore
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    body = convert_to_slashes(body)
    if body.startswith("./"):
        body = body[2:]
    if not body.startswith("/"):
        body = "/" + body
    return ("!" if negated else "") + body


def compile_patterns(patterns: Iterable[str] | None) -> PathSpec | None:
    """Compile glob patterns into a PathSpec, or None if there are none."""
    lines = [_anchor_pattern(p) for p in patterns or [] if p]
    if not lines:
        return None
    return PathSpec.from_lines("gitwildmatch", lines)


class PathFilter:
    """Include/exclude glob filter for paths relative to a package folder.

    A path is excluded when include patterns exist and none of them match,
    or when any exclude pattern matches. Exclusion wins when both match.
    """

    def __init__(
        self,
        patterns_to_include: Iterable[str] | None = None,
        patterns_to_exclude: Iterable[str] | None = None,
    ):
        self.include_spec = compile_patterns(patterns_to_include)
        self.exclude_spec = compile_patterns(patterns_to_exclude)

    @property
    def is_empty(self) -> bool:
        return self.include_spec is None and self.exclude_spec is None

    def is_excluded(self, relative_path: str) -> bool:
        if self.is_empty:
            return False
        relative_path = convert_to_slashes(relative_path)
        is_included = self.include_spec is None or self.include_spec.match_file(relative_path)
        if not is_included:
            return True
        return self.exclude_spec is not None and self.exclude_spec.match_file(relative_path)

    def is_folder_excluded(self, relative_path: str) -> bool:
        """Return True when a whole folder is pruned by an exclude pattern.

        Include patterns are not applied to folders, since a folder that does
        not match may still contain files that do (e.g. "src/subdir/**").
        """
        if self.exclude_spec is None:
            return False
        relative_path = convert_to_slashes(relative_path).rstrip("/")
        return self.exclude_spec.match_file(relative_path) or self.exclude_spec.match_file(
            relative_path + "/"
        )


class CombinedPathFilter:
    """Excludes a path if any of its member filters excludes it."""

    def __init__(self, filters: list[PathFilter]):
        self.filters = [f for f in filters if not f.is_empty]

    def is_excluded(self, relative_path: str) -> bool:
        return any(f.is_excluded(relative_path) for f in self.filters)

    def is_folder_excluded(self, relative_path: str) -> bool:
        return any(f.is_folder_excluded(relative_path) for f in self.filters)


def parse_version_range(version_range: str) -> semantic_version.NpmSpec:
    """Parse an npm semver range such as ``^1.2.0`` or ``>=2 <3``."""
    try:
        return semantic_version.NpmSpec(version_range)
    except ValueError as e:
        raise ExtractorConfigurationError(
            f'Invalid version range "{version_range}": {e}'
        ) from e


def satisfies(version: str | None, version_range: str) -> bool:
    """Check whether ``version`` satisfies the npm range ``version_range``."""
    if not version:
        return False
    spec = parse_version_range(version_range)
    try:
        parsed = semantic_version.Version(version)
    except ValueError:
        return False
    return spec.match(parsed)


def matching_dependency_configurations(
    configurations: list[DependencyConfiguration], version: str | None
) -> list[DependencyConfiguration]:
    """Return the configurations whose range matches the installed version."""
    return [c for c in configurations if satisfies(version, c.dependency_version_range)]


def tree_walk_ignore_spec() -> GitIgnoreSpec:
    return GitIgnoreSpec.from_lines(TREE_WALK_IGNORE_PATTERNS)
