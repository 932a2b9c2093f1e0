"""Node.js package manifest loading and node_modules resolution."""

import json
import os
from collections.abc import Callable, Iterator

from .errors import PackageResolutionError
from .models import PackageJson

PACKAGE_JSON_FILENAME = "package.json"


def load_package_json(folder_path: str) -> PackageJson:
    """Load the package.json file from ``folder_path``.

    Args:
        folder_path: Folder containing the manifest

    Returns:
        Parsed manifest
    """
    with open(os.path.join(folder_path, PACKAGE_JSON_FILENAME), encoding="utf-8") as f:
        return json.load(f)


def get_dependency_names(package_json: PackageJson, field_name: str) -> list[str]:
    """Return the names declared in a dependency map such as ``dependencies``."""
    dependencies = package_json.get(field_name) or {}
    return list(dependencies.keys())


def node_modules_paths(start_folder: str) -> Iterator[str]:
    """Yield the node_modules folders Node would search from ``start_folder``."""
    current = os.path.abspath(start_folder)
    while True:
        if os.path.basename(current) != "node_modules":
            yield os.path.join(current, "node_modules")
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def resolve_package(
    package_name: str,
    base_folder_path: str,
    get_real_path: Callable[[str], str] = os.path.realpath,
) -> str:
    """Find the folder of ``package_name`` as seen from ``base_folder_path``.

    Args:
        package_name: Name of the package, possibly scoped ("@scope/name")
        base_folder_path: Folder to start the node_modules lookup from
        get_real_path: Resolves symlinks; lets callers observe each link

    Returns:
        Real path of the folder containing the package's package.json
    """
    if not package_name:
        raise PackageResolutionError(package_name, base_folder_path)
    start_folder = get_real_path(os.path.abspath(base_folder_path))
    for node_modules_folder in node_modules_paths(start_folder):
        candidate = os.path.join(node_modules_folder, *package_name.split("/"), PACKAGE_JSON_FILENAME)
        if os.path.isfile(candidate):
            return os.path.dirname(get_real_path(candidate))

    raise PackageResolutionError(package_name, base_folder_path)
