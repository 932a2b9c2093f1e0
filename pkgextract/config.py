"""JSON configuration file for the extractor command line."""

import json
import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ExtractorConfigurationError
from .models import (
    DependencyConfiguration,
    ExtractorOptions,
    ProjectConfiguration,
    Subspace,
)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ProjectConfig(_ConfigModel):
    """A project entry; ``projectFolder`` is relative to the source root."""
    project_name: str = Field(alias="projectName")
    project_folder: str = Field(alias="projectFolder")
    patterns_to_include: Optional[list[str]] = Field(None, alias="patternsToInclude")
    patterns_to_exclude: Optional[list[str]] = Field(None, alias="patternsToExclude")
    additional_projects_to_include: Optional[list[str]] = Field(
        None, alias="additionalProjectsToInclude"
    )
    additional_dependencies_to_include: Optional[list[str]] = Field(
        None, alias="additionalDependenciesToInclude"
    )
    dependencies_to_exclude: Optional[list[str]] = Field(None, alias="dependenciesToExclude")


class DependencyConfig(_ConfigModel):
    dependency_name: str = Field(alias="dependencyName")
    dependency_version_range: str = Field(alias="dependencyVersionRange")
    patterns_to_include: Optional[list[str]] = Field(None, alias="patternsToInclude")
    patterns_to_exclude: Optional[list[str]] = Field(None, alias="patternsToExclude")


class SubspaceConfig(_ConfigModel):
    subspace_name: str = Field(alias="subspaceName")
    pnpm_install_folder: Optional[str] = Field(None, alias="pnpmInstallFolder")


class ExtractorConfig(_ConfigModel):
    """Top-level model of an extractor configuration file."""
    main_project_name: str = Field(alias="mainProjectName")
    source_root_folder: str = Field(".", alias="sourceRootFolder")
    target_root_folder: Optional[str] = Field(None, alias="targetRootFolder")
    projects: list[ProjectConfig]
    dependencies: list[DependencyConfig] = Field(default_factory=list)
    overwrite_existing: bool = Field(False, alias="overwriteExisting")
    create_archive_file_path: Optional[str] = Field(None, alias="createArchiveFilePath")
    create_archive_only: bool = Field(False, alias="createArchiveOnly")
    include_dev_dependencies: bool = Field(False, alias="includeDevDependencies")
    include_npm_ignore_files: bool = Field(False, alias="includeNpmIgnoreFiles")
    link_creation: Literal["default", "script", "none"] = Field("default", alias="linkCreation")
    link_creation_script_path: Optional[str] = Field(None, alias="linkCreationScriptPath")
    folder_to_copy: Optional[str] = Field(None, alias="folderToCopy")
    pnpm_install_folder: Optional[str] = Field(None, alias="pnpmInstallFolder")
    subspaces: Optional[list[SubspaceConfig]] = None

    def to_options(self, base_folder: str) -> ExtractorOptions:
        """Build extractor options, resolving relative folders.

        The source and target roots are relative to ``base_folder`` (usually
        the folder holding the configuration file); project folders, the
        overlay folder and install folders are relative to the source root.
        """
        if not self.target_root_folder:
            raise ExtractorConfigurationError("No target root folder was configured")

        source_root_folder = os.path.abspath(os.path.join(base_folder, self.source_root_folder))

        def from_source_root(path: Optional[str]) -> Optional[str]:
            if path is None:
                return None
            return os.path.abspath(os.path.join(source_root_folder, path))

        return ExtractorOptions(
            main_project_name=self.main_project_name,
            source_root_folder=source_root_folder,
            target_root_folder=os.path.abspath(os.path.join(base_folder, self.target_root_folder)),
            project_configurations=[
                ProjectConfiguration(
                    project_name=p.project_name,
                    project_folder=from_source_root(p.project_folder),
                    patterns_to_include=p.patterns_to_include,
                    patterns_to_exclude=p.patterns_to_exclude,
                    additional_projects_to_include=p.additional_projects_to_include,
                    additional_dependencies_to_include=p.additional_dependencies_to_include,
                    dependencies_to_exclude=p.dependencies_to_exclude,
                )
                for p in self.projects
            ],
            overwrite_existing=self.overwrite_existing,
            dependency_configurations=[
                DependencyConfiguration(
                    dependency_name=d.dependency_name,
                    dependency_version_range=d.dependency_version_range,
                    patterns_to_include=d.patterns_to_include,
                    patterns_to_exclude=d.patterns_to_exclude,
                )
                for d in self.dependencies
            ],
            create_archive_file_path=self.create_archive_file_path,
            create_archive_only=self.create_archive_only,
            include_dev_dependencies=self.include_dev_dependencies,
            include_npm_ignore_files=self.include_npm_ignore_files,
            link_creation=self.link_creation,
            link_creation_script_path=self.link_creation_script_path,
            folder_to_copy=self.folder_to_copy,
            pnpm_install_folder=from_source_root(self.pnpm_install_folder),
            subspaces=[
                Subspace(
                    subspace_name=s.subspace_name,
                    pnpm_install_folder=from_source_root(s.pnpm_install_folder),
                )
                for s in self.subspaces
            ]
            if self.subspaces
            else None,
        )


def load_config(config_file_path: str) -> ExtractorConfig:
    """Load and validate an extractor configuration file.

    Raises:
        ExtractorConfigurationError: The file is not valid JSON or does not
            match the configuration schema
    """
    with open(config_file_path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ExtractorConfigurationError(f"Invalid JSON in {config_file_path}: {e}") from e
    try:
        return ExtractorConfig.model_validate(data)
    except ValidationError as e:
        raise ExtractorConfigurationError(f"Invalid configuration in {config_file_path}:\n{e}") from e


def load_options(config_file_path: str) -> ExtractorOptions:
    """Load a configuration file and convert it to extractor options."""
    config = load_config(config_file_path)
    return config.to_options(os.path.dirname(os.path.abspath(config_file_path)))
