"""Path helpers shared by the extractor and the link tooling."""

import os

from .errors import SourcePathError


def is_under_or_equal(child_path: str, parent_path: str) -> bool:
    """Return True when ``child_path`` is ``parent_path`` or inside it."""
    relative = os.path.relpath(os.path.abspath(child_path), os.path.abspath(parent_path))
    if relative == ".":
        return True
    return not (relative == ".." or relative.startswith(".." + os.sep) or os.path.isabs(relative))


def is_under(child_path: str, parent_path: str) -> bool:
    """Return True when ``child_path`` is strictly inside ``parent_path``."""
    relative = os.path.relpath(os.path.abspath(child_path), os.path.abspath(parent_path))
    if relative == ".":
        return False
    return not (relative == ".." or relative.startswith(".." + os.sep) or os.path.isabs(relative))


def convert_to_slashes(path: str) -> str:
    return path.replace("\\", "/")


def remap_source_path_for_target_folder(
    source_root_folder: str, target_root_folder: str, source_path: str
) -> str:
    """Map a path under the source root to the same place under the target root.

    Args:
        source_root_folder: Root the path currently lives under
        target_root_folder: Root to move the path to
        source_path: Absolute path to remap

    Returns:
        Absolute path under the target root
    """
    relative_path = os.path.relpath(source_path, source_root_folder)
    if relative_path.startswith(".."):
        raise SourcePathError(
            f'Source path "{source_path}" is not under "{source_root_folder}"'
        )
    return os.path.abspath(os.path.join(target_root_folder, relative_path))


def remap_path_for_extractor_metadata(root_folder: str, path: str) -> str:
    """Return ``path`` relative to ``root_folder`` with forward slashes."""
    relative_path = os.path.relpath(path, root_folder)
    if relative_path.startswith(".."):
        raise SourcePathError(f'Path "{path}" is not under "{root_folder}"')
    return convert_to_slashes(relative_path)
