"""Compute the list of files npm would publish for a package folder."""

import logging
import os

from pathspec import GitIgnoreSpec, PathSpec

from .paths import convert_to_slashes
from .resolve_node import load_package_json

logger = logging.getLogger(__name__)

# Rules npm always applies, relative to the package root
DEFAULT_IGNORE_RULES = [
    ".npmignore",
    ".gitignore",
    "**/.git",
    "**/.svn",
    "**/.hg",
    "**/CVS",
    "/.lock-wscript",
    "/.wafpickle-*",
    "/build/config.gypi",
    "npm-debug.log",
    "**/.npmrc",
    ".*.swp",
    ".DS_Store",
    "._*",
    "*.orig",
    "/package-lock.json",
    "/yarn.lock",
    "/pnpm-lock.yaml",
    "/archived-packages/",
]

IGNORE_FILENAMES = (".npmignore", ".gitignore")


class PackListWalker:
    """Walks a package folder and returns the files npm would pack.

    ``node_modules`` is never descended, so bundled dependencies are left
    out; those are collected separately as their own package folders.
    """

    def __init__(self, package_root: str):
        self.package_root = os.path.abspath(package_root)
        self.package_json = load_package_json(self.package_root)
        self._default_spec = GitIgnoreSpec.from_lines(DEFAULT_IGNORE_RULES)
        self._files_spec = self._compile_files_field(self.package_json.get("files"))
        self._entry_points = self._collect_entry_points()

    @staticmethod
    def _compile_files_field(files: list[str] | None) -> PathSpec | None:
        if not isinstance(files, list):
            return None
        lines = []
        for entry in files:
            negated = entry.startswith("!")
            body = convert_to_slashes(entry[1:] if negated else entry)
            if body.startswith("./"):
                body = body[2:]
            body = body.strip("/")
            if not body:
                continue
            prefix = "!" if negated else ""
            # A folder entry includes everything underneath it
            lines.append(f"{prefix}/{body}")
            lines.append(f"{prefix}/{body}/**")
        return GitIgnoreSpec.from_lines(lines)

    def _always_included(self, relative_path: str) -> bool:
        if "/" not in relative_path:
            lowered = relative_path.lower()
            if lowered == "package.json":
                return True
            if lowered.startswith(("readme", "license", "licence", "copying")):
                return True
        return relative_path in self._entry_points

    def _collect_entry_points(self) -> set[str]:
        entry_points: set[str] = set()
        main = self.package_json.get("main")
        if isinstance(main, str):
            entry_points.add(_normalize_relative(main))
        bin_field = self.package_json.get("bin")
        if isinstance(bin_field, str):
            entry_points.add(_normalize_relative(bin_field))
        elif isinstance(bin_field, dict):
            entry_points.update(_normalize_relative(v) for v in bin_field.values() if isinstance(v, str))
        return entry_points

    def _load_ignore_spec(self, folder: str, relative_folder: str) -> GitIgnoreSpec | None:
        # With a "files" list, the root ignore file does not apply
        if relative_folder == "" and self._files_spec is not None:
            return None
        for filename in IGNORE_FILENAMES:
            ignore_file = os.path.join(folder, filename)
            if os.path.isfile(ignore_file):
                with open(ignore_file, encoding="utf-8") as f:
                    return GitIgnoreSpec.from_lines(f.read().splitlines())
        return None

    def walk(self) -> list[str]:
        """Return the publishable files as sorted forward-slash relative paths."""
        result: list[str] = []
        # Each entry: folder path, its relative path, and the ignore specs in scope
        pending: list[tuple[str, str, list[tuple[str, GitIgnoreSpec]]]] = [
            (self.package_root, "", [])
        ]
        while pending:
            folder, relative_folder, inherited = pending.pop()
            specs = list(inherited)
            own_spec = self._load_ignore_spec(folder, relative_folder)
            if own_spec is not None:
                specs.append((relative_folder, own_spec))

            with os.scandir(folder) as entries:
                children = sorted(entries, key=lambda e: e.name)
            for entry in children:
                relative_path = f"{relative_folder}/{entry.name}" if relative_folder else entry.name
                if entry.is_dir():
                    if entry.name == "node_modules":
                        continue
                    if self._is_ignored(relative_path + "/", specs):
                        continue
                    pending.append((entry.path, relative_path, specs))
                elif entry.is_file():
                    if self._always_included(relative_path):
                        result.append(relative_path)
                    elif not self._is_ignored(relative_path, specs) and self._in_files_list(
                        relative_path
                    ):
                        result.append(relative_path)

        logger.debug("Publish list for %s has %d files", self.package_root, len(result))
        return sorted(result)

    def _in_files_list(self, relative_path: str) -> bool:
        if self._files_spec is None:
            return True
        return self._files_spec.match_file(relative_path)

    def _is_ignored(self, relative_path: str, specs: list[tuple[str, GitIgnoreSpec]]) -> bool:
        if self._default_spec.match_file(relative_path):
            return True
        for base, spec in specs:
            local_path = relative_path[len(base) + 1 :] if base else relative_path
            if spec.match_file(local_path):
                return True
        return False


def _normalize_relative(path: str) -> str:
    normalized = os.path.normpath(convert_to_slashes(path))
    return convert_to_slashes(normalized)


def get_package_included_files(package_root: str) -> list[str]:
    """Get the files that would be included in a package published from ``package_root``.

    Args:
        package_root: Folder containing package.json

    Returns:
        Relative, forward-slash paths of every file to publish
    """
    return PackListWalker(package_root).walk()
