"""Core data models for the package extractor."""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

LinkCreationMode = Literal["default", "script", "none"]
PathNodeKind = Literal["file", "folder", "link"]
LinkKind = Literal["fileLink", "folderLink"]

EXTRACTOR_METADATA_FILENAME = "extractor-metadata.json"
MAX_CONCURRENCY = 10

PackageJson = dict[str, Any]
TransformPackageJson = Callable[[PackageJson], PackageJson]


@dataclass(frozen=True)
class ProjectConfiguration:
    """A locally-owned project that can be extracted."""

    project_name: str
    project_folder: str
    patterns_to_include: list[str] | None = None
    patterns_to_exclude: list[str] | None = None
    additional_projects_to_include: list[str] | None = None
    additional_dependencies_to_include: list[str] | None = None
    dependencies_to_exclude: list[str] | None = None


@dataclass(frozen=True)
class DependencyConfiguration:
    """Filtering overrides for a third-party dependency at a version range."""

    dependency_name: str
    dependency_version_range: str
    patterns_to_include: list[str] | None = None
    patterns_to_exclude: list[str] | None = None


@dataclass
class Subspace:
    """A group of projects sharing one package manager install folder."""

    subspace_name: str
    # Folder holding the "node_modules" folder that links into the virtual store
    pnpm_install_folder: str | None = None
    transform_package_json: TransformPackageJson | None = None


@dataclass
class ExtractorOptions:
    """Options for a single extraction run."""

    main_project_name: str
    source_root_folder: str
    target_root_folder: str
    project_configurations: list[ProjectConfiguration]
    overwrite_existing: bool = False
    dependency_configurations: list[DependencyConfiguration] = field(default_factory=list)
    create_archive_file_path: str | None = None
    create_archive_only: bool = False
    include_dev_dependencies: bool = False
    include_npm_ignore_files: bool = False
    link_creation: LinkCreationMode = "default"
    link_creation_script_path: str | None = None
    folder_to_copy: str | None = None
    transform_package_json: TransformPackageJson | None = None
    pnpm_install_folder: str | None = None
    subspaces: list[Subspace] | None = None
    on_warning: Callable[[str], None] | None = None


@dataclass
class PathNode:
    """The classification of one absolute path on disk."""

    kind: PathNodeKind
    node_path: str
    link_stats: os.stat_result
    # Absolute path the link points at, only set for links
    link_target: str | None = None


@dataclass(frozen=True)
class LinkInfo:
    """A symbolic link found while analyzing paths."""

    kind: LinkKind
    link_path: str
    target_path: str

    def to_json(self) -> dict:
        return {
            "kind": self.kind,
            "linkPath": self.link_path,
            "targetPath": self.target_path,
        }

    @classmethod
    def from_json(cls, data: dict) -> "LinkInfo":
        return cls(
            kind=data["kind"],
            link_path=data["linkPath"],
            target_path=data["targetPath"],
        )


@dataclass
class ProjectInfo:
    """An extracted project, with its path relative to the target root."""

    project_name: str
    path: str


@dataclass
class ExtractorMetadata:
    """Contents of the extractor-metadata.json file."""

    main_project_name: str
    projects: list[ProjectInfo] = field(default_factory=list)
    links: list[LinkInfo] = field(default_factory=list)
    files: list[str] = field(default_factory=list)

    def to_json(self) -> dict:
        return {
            "mainProjectName": self.main_project_name,
            "projects": [
                {"projectName": project.project_name, "path": project.path}
                for project in self.projects
            ],
            "links": [link.to_json() for link in self.links],
            "files": list(self.files),
        }

    @classmethod
    def from_json(cls, data: dict) -> "ExtractorMetadata":
        return cls(
            main_project_name=data["mainProjectName"],
            projects=[
                ProjectInfo(project_name=p["projectName"], path=p["path"])
                for p in data.get("projects", [])
            ],
            links=[LinkInfo.from_json(link) for link in data.get("links", [])],
            files=list(data.get("files", [])),
        )
