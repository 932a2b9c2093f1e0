"""Extraction of a project and its dependencies into a standalone folder."""

import asyncio
import dataclasses
import json
import logging
import os
import shutil

from .assets import ARCHIVE_EXTENSION, AssetHandler
from .copier import FolderCopier
from .crawler import DependencyCrawler
from .errors import ExtractorConfigurationError, TargetFolderNotEmptyError
from .filters import parse_version_range
from .models import (
    EXTRACTOR_METADATA_FILENAME,
    MAX_CONCURRENCY,
    DependencyConfiguration,
    ExtractorMetadata,
    ExtractorOptions,
    LinkInfo,
    ProjectConfiguration,
    ProjectInfo,
    Subspace,
)
from .packlist import get_package_included_files
from .paths import (
    convert_to_slashes,
    remap_path_for_extractor_metadata,
    remap_source_path_for_target_folder,
)
from .scripts.create_links import make_bin_links_for_project
from .state import ExtractorState
from .symlinks import SymlinkAnalyzer
from .work_queue import for_each_limited

logger = logging.getLogger(__name__)

CREATE_LINKS_SCRIPT_FILENAME = "create_links.py"
SCRIPTS_FOLDER_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "scripts")
TARGET_ROOT_SCRIPT_RELATIVE_PATH_TEMPLATE_STRING = "{TARGET_ROOT_SCRIPT_RELATIVE_PATH}"

LINK_CREATION_MODES = ("default", "script", "none")


class PackageExtractor:
    """Extracts a project and everything it depends on into a target folder.

    Callers should always extract into an empty, disposable folder: copying
    is not transactional, and a failed run leaves the target half written.
    """

    @staticmethod
    def get_package_included_files(package_root_path: str) -> list[str]:
        """Get the files that would be published from ``package_root_path``."""
        return get_package_included_files(package_root_path)

    def extract_sync(self, options: ExtractorOptions) -> None:
        asyncio.run(self.extract(options))

    async def extract(self, options: ExtractorOptions) -> None:
        """Extract a package using the provided options.

        Args:
            options: Extraction options

        Raises:
            ExtractorConfigurationError: Options are invalid or a project is unknown
            TargetFolderNotEmptyError: Target has content and overwrite is off
            PackageResolutionError: A required dependency is missing
            SymlinkBoundaryError: A link leaves the source root folder
        """
        options = self._normalize_options(options)
        self._validate_options(options)
        included_projects = self._get_included_projects(options)

        logger.info("Extracting to target folder: %s", options.target_root_folder)
        logger.info("Main project for extraction: %s", options.main_project_name)

        self._prepare_target_folder(options)

        # A fresh analyzer and asset handler for every run
        symlink_analyzer = SymlinkAnalyzer(required_source_parent_path=options.source_root_folder)
        state = ExtractorState(
            symlink_analyzer=symlink_analyzer,
            asset_handler=AssetHandler(options, symlink_analyzer),
            project_configurations_by_name={
                p.project_name: p for p in options.project_configurations
            },
            project_configurations_by_path={
                os.path.realpath(p.project_folder): p for p in options.project_configurations
            },
            dependency_configurations_by_name=self._group_dependency_configurations(
                options.dependency_configurations
            ),
        )

        await self._perform_extraction(options, state, included_projects)

        async def on_after_extract_symlinks() -> None:
            # Bin links need the node_modules links to exist already
            if options.link_creation == "default":
                await self._make_bin_links(options, state)
            elif options.link_creation == "script":
                await self._write_create_links_script(options, state)

            logger.info("Creating %s", EXTRACTOR_METADATA_FILENAME)
            await self._write_extractor_metadata(options, state)

        await state.asset_handler.finalize(on_after_extract_symlinks)

    @staticmethod
    def _normalize_options(options: ExtractorOptions) -> ExtractorOptions:
        if options.subspaces:
            if options.pnpm_install_folder is not None:
                raise ExtractorConfigurationError(
                    "pnpm_install_folder cannot be combined with subspaces"
                )
            if options.transform_package_json is not None:
                raise ExtractorConfigurationError(
                    "transform_package_json cannot be combined with subspaces"
                )
            subspaces = options.subspaces
        else:
            subspaces = [
                Subspace(
                    subspace_name="default",
                    pnpm_install_folder=options.pnpm_install_folder,
                    transform_package_json=options.transform_package_json,
                )
            ]

        return dataclasses.replace(
            options,
            source_root_folder=os.path.abspath(options.source_root_folder),
            target_root_folder=os.path.abspath(options.target_root_folder),
            link_creation=options.link_creation or "default",
            pnpm_install_folder=None,
            transform_package_json=None,
            subspaces=[
                dataclasses.replace(
                    s,
                    pnpm_install_folder=os.path.abspath(s.pnpm_install_folder)
                    if s.pnpm_install_folder
                    else None,
                )
                for s in subspaces
            ],
        )

    @staticmethod
    def _validate_options(options: ExtractorOptions) -> None:
        # Runs before anything on disk is touched
        if options.link_creation not in LINK_CREATION_MODES:
            raise ExtractorConfigurationError(
                f'Unknown link creation mode "{options.link_creation}"'
            )
        if options.create_archive_file_path:
            if os.path.splitext(options.create_archive_file_path)[1] != ARCHIVE_EXTENSION:
                raise ExtractorConfigurationError(
                    "Only archives with the .zip file extension are currently supported."
                )
        if options.create_archive_only:
            if not options.create_archive_file_path:
                raise ExtractorConfigurationError(
                    "create_archive_only cannot be true if create_archive_file_path is not provided"
                )
            if options.link_creation not in ("script", "none"):
                raise ExtractorConfigurationError(
                    'create_archive_only is only supported when link_creation is "script" or "none"'
                )
        for dependency_configuration in options.dependency_configurations or []:
            parse_version_range(dependency_configuration.dependency_version_range)

    @staticmethod
    def _prepare_target_folder(options: ExtractorOptions) -> None:
        target_root_folder = options.target_root_folder
        os.makedirs(target_root_folder, exist_ok=True)
        existing_items = os.listdir(target_root_folder)
        if not existing_items:
            return
        if not options.overwrite_existing:
            raise TargetFolderNotEmptyError(target_root_folder)

        logger.info("Deleting target folder contents...")
        for name in existing_items:
            item_path = os.path.join(target_root_folder, name)
            if os.path.isdir(item_path) and not os.path.islink(item_path):
                shutil.rmtree(item_path)
            else:
                os.remove(item_path)

    @staticmethod
    def _group_dependency_configurations(
        dependency_configurations: list[DependencyConfiguration] | None,
    ) -> dict[str, list[DependencyConfiguration]]:
        grouped: dict[str, list[DependencyConfiguration]] = {}
        for dependency_configuration in dependency_configurations or []:
            grouped.setdefault(dependency_configuration.dependency_name, []).append(
                dependency_configuration
            )
        return grouped

    @staticmethod
    def _get_included_projects(options: ExtractorOptions) -> list[ProjectConfiguration]:
        projects_by_name = {p.project_name: p for p in options.project_configurations}
        main_project = projects_by_name.get(options.main_project_name)
        if main_project is None:
            raise ExtractorConfigurationError(
                f'Main project "{options.main_project_name}" was not found in the list of projects'
            )

        included: dict[str, ProjectConfiguration] = {main_project.project_name: main_project}
        pending = [main_project]
        while pending:
            project = pending.pop(0)
            for name in project.additional_projects_to_include or []:
                additional_project = projects_by_name.get(name)
                if additional_project is None:
                    raise ExtractorConfigurationError(
                        f'Project "{name}" was not found in the list of projects.'
                    )
                if name not in included:
                    included[name] = additional_project
                    pending.append(additional_project)
        return list(included.values())

    async def _perform_extraction(
        self,
        options: ExtractorOptions,
        state: ExtractorState,
        included_projects: list[ProjectConfiguration],
    ) -> None:
        crawler = DependencyCrawler(options, state)
        for project in included_projects:
            logger.info("Analyzing project: %s", project.project_name)
            await crawler.collect(project.project_folder)

        if not options.create_archive_only:
            logger.info('Copying folders to target folder "%s"', options.target_root_folder)
        copier = FolderCopier(options, state)
        await for_each_limited(sorted(state.folders_to_copy), copier.extract_folder, MAX_CONCURRENCY)

        if options.folder_to_copy:
            # Copied with its own folder as the source root, so it lands in the target root
            additional_folder_path = os.path.abspath(
                os.path.join(options.source_root_folder, options.folder_to_copy)
            )
            overlay_copier = FolderCopier(options, state, source_root_folder=additional_folder_path)
            await overlay_copier.extract_folder(additional_folder_path)

    @staticmethod
    def _extracted_project_folders(state: ExtractorState) -> list[tuple[str, ProjectConfiguration]]:
        return [
            (folder_path, project)
            for folder_path, project in state.project_configurations_by_path.items()
            if folder_path in state.folders_to_copy
        ]

    async def _make_bin_links(self, options: ExtractorOptions, state: ExtractorState) -> None:
        target_project_folders = [
            remap_source_path_for_target_folder(
                options.source_root_folder, options.target_root_folder, folder_path
            )
            for folder_path, _ in self._extracted_project_folders(state)
        ]
        bin_file_paths: list[str] = []

        async def link_project(project_folder: str) -> None:
            bin_file_paths.extend(await asyncio.to_thread(make_bin_links_for_project, project_folder))

        await for_each_limited(target_project_folders, link_project, MAX_CONCURRENCY)
        for bin_file_path in sorted(bin_file_paths):
            await state.asset_handler.include_asset(bin_file_path, ignore_if_existing=True)

    async def _write_create_links_script(
        self, options: ExtractorOptions, state: ExtractorState
    ) -> None:
        logger.info("Creating %s", CREATE_LINKS_SCRIPT_FILENAME)
        create_links_source_file_path = os.path.join(SCRIPTS_FOLDER_PATH, CREATE_LINKS_SCRIPT_FILENAME)
        create_links_target_file_path = os.path.abspath(
            os.path.join(
                options.target_root_folder,
                options.link_creation_script_path or CREATE_LINKS_SCRIPT_FILENAME,
            )
        )
        with open(create_links_source_file_path, encoding="utf-8") as f:
            content = f.read()
        relative_target_root = convert_to_slashes(
            os.path.relpath(
                options.target_root_folder, os.path.dirname(create_links_target_file_path)
            )
        )
        content = content.replace(
            TARGET_ROOT_SCRIPT_RELATIVE_PATH_TEMPLATE_STRING, relative_target_root, 1
        )
        await state.asset_handler.include_asset(
            create_links_target_file_path, source_file_content=content
        )

    async def _write_extractor_metadata(
        self, options: ExtractorOptions, state: ExtractorState
    ) -> None:
        if options.link_creation == "script" and options.link_creation_script_path:
            metadata_folder_path = os.path.dirname(
                os.path.abspath(
                    os.path.join(options.target_root_folder, options.link_creation_script_path)
                )
            )
        else:
            metadata_folder_path = options.target_root_folder
        metadata_file_path = os.path.join(metadata_folder_path, EXTRACTOR_METADATA_FILENAME)

        metadata = ExtractorMetadata(main_project_name=options.main_project_name)
        for folder_path, project in self._extracted_project_folders(state):
            metadata.projects.append(
                ProjectInfo(
                    project_name=project.project_name,
                    path=remap_path_for_extractor_metadata(options.source_root_folder, folder_path),
                )
            )

        for link in state.symlink_analyzer.report_symlinks():
            metadata.links.append(
                LinkInfo(
                    kind=link.kind,
                    link_path=remap_path_for_extractor_metadata(
                        options.source_root_folder, link.link_path
                    ),
                    target_path=remap_path_for_extractor_metadata(
                        options.source_root_folder, link.target_path
                    ),
                )
            )

        for asset_path in state.asset_handler.asset_paths:
            metadata.files.append(
                remap_path_for_extractor_metadata(options.target_root_folder, asset_path)
            )

        content = json.dumps(metadata.to_json(), separators=(",", ":"))
        await state.asset_handler.include_asset(metadata_file_path, source_file_content=content)
