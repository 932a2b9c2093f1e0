"""Copy one collected package folder into the extraction target."""

import asyncio
import logging
import os

from .filters import (
    CombinedPathFilter,
    PathFilter,
    matching_dependency_configurations,
    tree_walk_ignore_spec,
)
from .models import MAX_CONCURRENCY, ExtractorOptions, PathNode
from .packlist import get_package_included_files
from .paths import convert_to_slashes, remap_source_path_for_target_folder
from .state import ExtractorState
from .work_queue import drain_queue, for_each_limited

logger = logging.getLogger(__name__)


def build_folder_filter(
    real_folder_path: str, state: ExtractorState
) -> PathFilter | CombinedPathFilter:
    """Return the include/exclude filter that applies inside a package folder.

    Local projects use their own patterns. Third-party packages use every
    dependency configuration for their name whose version range matches.
    """
    project_configuration = state.project_configurations_by_path.get(real_folder_path)
    if project_configuration is not None:
        return PathFilter(
            project_configuration.patterns_to_include,
            project_configuration.patterns_to_exclude,
        )

    package_json = state.package_json_by_path.get(real_folder_path)
    if not package_json:
        return PathFilter()
    configurations = state.dependency_configurations_by_name.get(package_json.get("name"))
    if not configurations:
        return PathFilter()
    matched = matching_dependency_configurations(configurations, package_json.get("version"))
    return CombinedPathFilter(
        [PathFilter(c.patterns_to_include, c.patterns_to_exclude) for c in matched]
    )


class FolderCopier:
    """Copies the files of package folders through the asset handler.

    ``source_root_folder`` defaults to the extraction source root; the
    overlay folder is copied with its own folder as the source root so that
    its contents land directly in the target root.
    """

    def __init__(
        self,
        options: ExtractorOptions,
        state: ExtractorState,
        source_root_folder: str | None = None,
        max_concurrency: int = MAX_CONCURRENCY,
    ):
        self.options = options
        self.state = state
        self.source_root_folder = os.path.abspath(source_root_folder or options.source_root_folder)
        self.target_root_folder = os.path.abspath(options.target_root_folder)
        self.max_concurrency = max_concurrency

    async def extract_folder(self, source_folder_path: str) -> None:
        """Copy the files of ``source_folder_path`` that belong in the extraction."""
        real_folder_path = os.path.realpath(source_folder_path)
        is_local_project = real_folder_path in self.state.project_configurations_by_path
        path_filter = build_folder_filter(real_folder_path, self.state)
        target_folder_path = remap_source_path_for_target_folder(
            self.source_root_folder, self.target_root_folder, source_folder_path
        )

        if is_local_project and not self.options.include_npm_ignore_files:
            await self._copy_publish_list(source_folder_path, target_folder_path, path_filter)
        else:
            await self._copy_tree(source_folder_path, target_folder_path, path_filter)

    async def _copy_publish_list(
        self,
        source_folder_path: str,
        target_folder_path: str,
        path_filter: PathFilter | CombinedPathFilter,
    ) -> None:
        npm_pack_files = await asyncio.to_thread(get_package_included_files, source_folder_path)

        seen: set[str] = set()
        files_to_copy: list[tuple[str, str]] = []
        for npm_pack_file in npm_pack_files:
            source_file_path = os.path.normpath(os.path.join(source_folder_path, npm_pack_file))
            # "dist//index.js" and "dist/index.js" are the same file
            if source_file_path in seen:
                continue
            seen.add(source_file_path)
            relative_path = convert_to_slashes(os.path.relpath(source_file_path, source_folder_path))
            if path_filter.is_excluded(relative_path):
                continue
            files_to_copy.append((source_file_path, relative_path))

        async def copy_file(item: tuple[str, str]) -> None:
            source_file_path, relative_path = item
            node = await asyncio.to_thread(self.state.symlink_analyzer.analyze_path, source_file_path)
            if node is None or node.kind != "file":
                return
            if node.node_path != source_file_path:
                # Reached through a link, which is recreated instead of copied through
                return
            await self.state.asset_handler.include_asset(
                os.path.join(target_folder_path, relative_path),
                source_file_path=source_file_path,
                source_file_stats=node.link_stats,
            )

        await for_each_limited(files_to_copy, copy_file, self.max_concurrency)

    async def _copy_tree(
        self,
        source_folder_path: str,
        target_folder_path: str,
        path_filter: PathFilter | CombinedPathFilter,
    ) -> None:
        ignore_spec = tree_walk_ignore_spec()

        async def visit(source_path: str) -> list[str]:
            relative_path = convert_to_slashes(os.path.relpath(source_path, source_folder_path))
            if relative_path == ".":
                relative_path = ""
            if relative_path and ignore_spec.match_file(relative_path):
                return []

            node = await asyncio.to_thread(self._analyze_entry, source_path, relative_path, path_filter)
            if node is None or node.kind == "link":
                return []
            if node.kind == "file":
                if relative_path and path_filter.is_excluded(relative_path):
                    return []
                await self.state.asset_handler.include_asset(
                    os.path.join(target_folder_path, relative_path),
                    source_file_path=source_path,
                    source_file_stats=node.link_stats,
                )
                return []
            if relative_path and path_filter.is_folder_excluded(relative_path):
                return []
            children = await asyncio.to_thread(os.listdir, source_path)
            return [os.path.join(source_path, child) for child in sorted(children)]

        await drain_queue([source_folder_path], visit, self.max_concurrency)

    def _analyze_entry(
        self,
        source_path: str,
        relative_path: str,
        path_filter: PathFilter | CombinedPathFilter,
    ) -> PathNode | None:
        """Classify one tree-walk entry without descending through links.

        A link is recorded (and its boundary checked) but returned as a link
        node, so the walk neither copies nor descends through it; its target
        is copied under its own path. Excluded links are skipped entirely.
        """
        symlink_analyzer = self.state.symlink_analyzer
        if not relative_path:
            return symlink_analyzer.analyze_path(source_path)

        node = symlink_analyzer.analyze_path(source_path, preserve_links=True)
        if node.kind != "link":
            return node

        if os.path.isdir(source_path):
            is_excluded = path_filter.is_folder_excluded(relative_path)
        else:
            is_excluded = path_filter.is_excluded(relative_path)
        if is_excluded:
            logger.debug("Skipping excluded link %s", source_path)
            return None

        # Following the link records it; a link leaving the source root raises
        symlink_analyzer.analyze_path(source_path)
        return node
