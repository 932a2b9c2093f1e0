"""Breadth-first crawl of node_modules dependencies."""

import asyncio
import logging
import os
from dataclasses import dataclass, field

from .errors import PackageResolutionError
from .filters import matches_with_star
from .models import (
    MAX_CONCURRENCY,
    ExtractorOptions,
    PackageJson,
    ProjectConfiguration,
    Subspace,
)
from .paths import is_under
from .resolve_node import get_dependency_names, load_package_json, resolve_package
from .state import ExtractorState
from .work_queue import drain_queue

logger = logging.getLogger(__name__)


@dataclass
class FolderAnalysis:
    """What was learned from one package folder's manifest."""

    package_json: PackageJson
    dependency_folders: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def apply_dependency_filters(
    all_dependency_names: set[str],
    additional_dependencies_to_include: list[str] | None = None,
    dependencies_to_exclude: list[str] | None = None,
) -> set[str]:
    """Remove excluded names (``*`` patterns) and add extra names, in place.

    Args:
        all_dependency_names: Names collected from the manifest
        additional_dependencies_to_include: Exact names to add
        dependencies_to_exclude: Patterns of names to remove

    Returns:
        The same set, after filtering
    """
    extra_included: list[str] = []
    extra_excluded: list[str] = []

    for pattern_with_star in dependencies_to_exclude or []:
        for dependency in list(all_dependency_names):
            if matches_with_star(pattern_with_star, dependency):
                all_dependency_names.discard(dependency)
                extra_excluded.append(dependency)

    for dependency in additional_dependencies_to_include or []:
        if dependency not in all_dependency_names:
            all_dependency_names.add(dependency)
            extra_included.append(dependency)

    if extra_included:
        logger.info("Extra dependencies included by settings: %s", ", ".join(sorted(extra_included)))
    if extra_excluded:
        logger.info("Extra dependencies excluded by settings: %s", ", ".join(sorted(extra_excluded)))

    return all_dependency_names


class DependencyCrawler:
    """Collects every folder a project needs into ``state.folders_to_copy``.

    The queue is drained by a fixed pool of workers. A folder is marked as
    visited when it is dequeued, so a folder that was queued twice is only
    processed once.
    """

    def __init__(
        self,
        options: ExtractorOptions,
        state: ExtractorState,
        max_concurrency: int = MAX_CONCURRENCY,
    ):
        self.options = options
        self.state = state
        self.max_concurrency = max_concurrency

    async def collect(self, package_json_folder: str) -> None:
        """Crawl dependencies starting at ``package_json_folder``.

        Raises:
            PackageResolutionError: A required dependency is missing
        """
        await drain_queue([package_json_folder], self._process_folder, self.max_concurrency)

    async def _process_folder(self, folder_path: str) -> list[str]:
        real_folder_path = os.path.realpath(folder_path)
        if real_folder_path in self.state.folders_to_copy:
            # Already seen through another path
            return []
        self.state.folders_to_copy.add(real_folder_path)

        analysis = await asyncio.to_thread(self._analyze_folder, folder_path, real_folder_path)
        self.state.package_json_by_path[real_folder_path] = analysis.package_json
        for warning in analysis.warnings:
            self._warn(warning)
        return analysis.dependency_folders

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.options.on_warning is not None:
            self.options.on_warning(message)

    def _find_subspace(self, folder_path: str) -> Subspace | None:
        for subspace in self.options.subspaces or []:
            if subspace.pnpm_install_folder and is_under(folder_path, subspace.pnpm_install_folder):
                return subspace
        return None

    def _analyze_folder(self, folder_path: str, real_folder_path: str) -> FolderAnalysis:
        original_package_json = load_package_json(real_folder_path)
        subspace = self._find_subspace(folder_path)
        package_json = original_package_json
        if subspace is not None and subspace.transform_package_json is not None:
            package_json = subspace.transform_package_json(original_package_json)

        analysis = FolderAnalysis(package_json=package_json)

        dependency_names: set[str] = set(get_dependency_names(package_json, "dependencies"))
        # A missing peer or optional dependency is not an error
        soft_dependency_names: set[str] = set()
        for field_name in ("peerDependencies", "optionalDependencies"):
            names = get_dependency_names(package_json, field_name)
            dependency_names.update(names)
            soft_dependency_names.update(names)

        project_configuration: ProjectConfiguration | None = (
            self.state.project_configurations_by_path.get(real_folder_path)
        )
        if project_configuration is not None:
            if self.options.include_dev_dependencies:
                dependency_names.update(get_dependency_names(package_json, "devDependencies"))
            apply_dependency_filters(
                dependency_names,
                project_configuration.additional_dependencies_to_include,
                project_configuration.dependencies_to_exclude,
            )

        get_real_path = self.state.symlink_analyzer.get_real_path
        for dependency_name in sorted(dependency_names):
            try:
                analysis.dependency_folders.append(
                    resolve_package(dependency_name, real_folder_path, get_real_path)
                )
            except PackageResolutionError:
                if dependency_name in soft_dependency_names:
                    logger.debug("Ignoring missing optional dependency %s", dependency_name)
                    continue
                raise

        # Resolving the package from the virtual store folder records the links into the store.
        # Packages that were not hoisted cannot be resolved from there.
        install_folder = subspace.pnpm_install_folder if subspace is not None else None
        if install_folder and is_under(folder_path, install_folder):
            pnpm_dot_folder_path = os.path.join(install_folder, "node_modules", ".pnpm")
            try:
                analysis.dependency_folders.append(
                    resolve_package(package_json.get("name", ""), pnpm_dot_folder_path, get_real_path)
                )
            except PackageResolutionError:
                analysis.warnings.append(
                    f"Ignoring missing PNPM virtual store link for {folder_path}"
                )

        return analysis
