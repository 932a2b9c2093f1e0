"""Exception types raised by the extractor."""


class ExtractorError(Exception):
    """Base class for all extraction failures."""


class ExtractorConfigurationError(ExtractorError):
    """Raised when the extractor options are invalid or inconsistent."""


class PackageResolutionError(ExtractorError):
    """Raised when a dependency cannot be located from a base folder."""

    def __init__(self, package_name: str, base_folder: str):
        self.package_name = package_name
        self.base_folder = base_folder
        super().__init__(
            f'Cannot find package "{package_name}" from "{base_folder}".'
        )


class SymlinkBoundaryError(ExtractorError):
    """Raised when a link resolves outside of the permitted source folder."""

    def __init__(self, required_parent: str, link_path: str, target_path: str):
        self.required_parent = required_parent
        self.link_path = link_path
        self.target_path = target_path
        super().__init__(
            f'Symlink targets not under folder "{required_parent}": '
            f"{link_path} -> {target_path}"
        )


class TargetFolderNotEmptyError(ExtractorError):
    """Raised when the target folder has content and overwrite was not requested."""

    def __init__(self, target_folder: str):
        self.target_folder = target_folder
        super().__init__(
            f'The extraction target folder "{target_folder}" is not empty. '
            "Overwrite must be explicitly requested"
        )


class SourcePathError(ExtractorError):
    """Raised when a path cannot be remapped because it is outside its root."""
