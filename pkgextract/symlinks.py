"""Symbolic link analysis for folders being extracted."""

import logging
import os
import stat
import threading
from collections.abc import Callable

from .errors import SymlinkBoundaryError
from .models import LinkInfo, PathNode
from .paths import is_under_or_equal

logger = logging.getLogger(__name__)


class SymlinkAnalyzer:
    """Classifies paths and records every link followed along the way.

    Each path prefix is stat'ed at most once per analyzer. Links that are
    followed are remembered as ``LinkInfo`` records so that they can be
    recreated later inside the extraction target.
    """

    def __init__(self, required_source_parent_path: str | None = None):
        """Initialize the analyzer.

        Args:
            required_source_parent_path: If provided, every followed link must
                resolve to a path under this folder.
        """
        self._required_source_parent_path = (
            os.path.abspath(required_source_parent_path)
            if required_source_parent_path
            else None
        )
        self._nodes_by_path: dict[str, PathNode] = {}
        self._link_infos_by_path: dict[str, LinkInfo] = {}
        self._lock = threading.RLock()

    def analyze_path(
        self,
        input_path: str,
        preserve_links: bool = False,
        should_ignore_external_link: Callable[[str], bool] | None = None,
    ) -> PathNode | None:
        """Classify ``input_path``, following links unless asked not to.

        Args:
            input_path: Path to analyze; made absolute first
            preserve_links: Return the link node itself instead of its target
            should_ignore_external_link: Called with the link path when a link
                leaves the required source folder; returning True skips it

        Returns:
            The node for the path, or None if an external link was ignored
        """
        with self._lock:
            return self._analyze(input_path, preserve_links, should_ignore_external_link)

    def _analyze(
        self,
        input_path: str,
        preserve_links: bool,
        should_ignore_external_link: Callable[[str], bool] | None,
    ) -> PathNode | None:
        path_segments = os.path.abspath(input_path).split(os.sep)
        index = 0

        while True:
            current_path = os.sep.join(path_segments[: index + 1])
            if current_path == "":
                # A POSIX path like "/folder/file" splits into ["", "folder", "file"]
                index += 1
                continue
            if current_path.endswith(":"):
                current_path += os.sep

            current_node = self._nodes_by_path.get(current_path)
            if current_node is None:
                current_node = self._classify(current_path)
                self._nodes_by_path[current_path] = current_node

            if not preserve_links:
                while current_node.kind == "link":
                    link_target = current_node.link_target
                    if self._required_source_parent_path and not is_under_or_equal(
                        link_target, self._required_source_parent_path
                    ):
                        if should_ignore_external_link and should_ignore_external_link(
                            current_path
                        ):
                            logger.debug("Ignoring external link %s -> %s", current_path, link_target)
                            return None
                        raise SymlinkBoundaryError(
                            self._required_source_parent_path, current_node.node_path, link_target
                        )

                    target_node = self._analyze(link_target, True, None)

                    if current_node.node_path not in self._link_infos_by_path:
                        # The immediate target may itself be a link, so look at the final target
                        target_is_folder = os.path.isdir(target_node.node_path)
                        self._link_infos_by_path[current_node.node_path] = LinkInfo(
                            kind="folderLink" if target_is_folder else "fileLink",
                            link_path=current_node.node_path,
                            target_path=target_node.node_path,
                        )

                    target_segments = target_node.node_path.split(os.sep)
                    path_segments = target_segments + path_segments[index + 1 :]
                    index = len(target_segments) - 1
                    current_node = target_node

            if index >= len(path_segments) - 1:
                return current_node
            index += 1

    def _classify(self, current_path: str) -> PathNode:
        link_stats = os.lstat(current_path)
        if stat.S_ISLNK(link_stats.st_mode):
            raw_target = os.readlink(current_path)
            parent_folder = os.path.dirname(current_path)
            return PathNode(
                kind="link",
                node_path=current_path,
                link_stats=link_stats,
                link_target=os.path.abspath(os.path.join(parent_folder, raw_target)),
            )
        if stat.S_ISDIR(link_stats.st_mode):
            return PathNode(kind="folder", node_path=current_path, link_stats=link_stats)
        if stat.S_ISREG(link_stats.st_mode):
            return PathNode(kind="file", node_path=current_path, link_stats=link_stats)
        raise OSError(f"Unknown object type: {current_path}")

    def get_real_path(self, input_path: str) -> str:
        """Return the fully resolved path, recording links as a side effect.

        Missing paths are returned unchanged so that callers probing for
        candidate locations can test for existence themselves.
        """
        try:
            node = self.analyze_path(input_path)
        except (FileNotFoundError, NotADirectoryError):
            return input_path
        return node.node_path

    def report_symlinks(self) -> list[LinkInfo]:
        """Return every link recorded so far, sorted by link path."""
        with self._lock:
            return sorted(self._link_infos_by_path.values(), key=lambda info: info.link_path)
