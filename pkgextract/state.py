"""Per-run mutable state shared by the extraction steps."""

from dataclasses import dataclass, field

from .assets import AssetHandler
from .models import DependencyConfiguration, PackageJson, ProjectConfiguration
from .symlinks import SymlinkAnalyzer


@dataclass
class ExtractorState:
    """Everything one extraction run accumulates; discarded when it ends."""

    symlink_analyzer: SymlinkAnalyzer
    asset_handler: AssetHandler
    folders_to_copy: set[str] = field(default_factory=set)
    package_json_by_path: dict[str, PackageJson] = field(default_factory=dict)
    project_configurations_by_name: dict[str, ProjectConfiguration] = field(default_factory=dict)
    project_configurations_by_path: dict[str, ProjectConfiguration] = field(default_factory=dict)
    dependency_configurations_by_name: dict[str, list[DependencyConfiguration]] = field(
        default_factory=dict
    )
