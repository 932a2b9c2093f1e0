"""Create or remove the links of an extracted package tree.

This file is copied next to extractor-metadata.json when links are created
with the "script" strategy, so it must only depend on the standard library,
typer and rich. Both libraries must be installed wherever the extracted tree
is deployed and the script is run:

    python create_links.py create [--realize-files] [--link-bins]
    python create_links.py remove
"""

import json
import os
import shutil
import stat
import sys
from concurrent.futures import ThreadPoolExecutor

import typer
from rich.console import Console

# Replaced with the path from this script's folder to the target root when the script is written
TARGET_ROOT_SCRIPT_RELATIVE_PATH = "{TARGET_ROOT_SCRIPT_RELATIVE_PATH}"

# Kept in step with pkgextract.models, which this file must not import
EXTRACTOR_METADATA_FILENAME = "extractor-metadata.json"
MAX_CONCURRENCY = 10

console = Console(stderr=True)


def _create_windows_link(kind: str, link_path: str, target_path: str) -> None:
    link_folder = os.path.dirname(link_path)
    if kind == "fileLink":
        # Symbolic links to files need elevated permissions on Windows, hard links do not
        os.link(os.path.join(link_folder, target_path), link_path)
    else:
        import _winapi

        _winapi.CreateJunction(os.path.abspath(os.path.join(link_folder, target_path)), link_path)


def _create_posix_link(kind: str, link_path: str, target_path: str) -> None:
    os.symlink(target_path, link_path, target_is_directory=kind == "folderLink")


_create_platform_link = _create_windows_link if sys.platform == "win32" else _create_posix_link


def create_link(kind: str, link_path: str, target_path: str) -> None:
    """Create a link at ``link_path`` pointing at ``target_path``.

    Args:
        kind: "fileLink" or "folderLink"
        link_path: Absolute path of the link to create
        target_path: Absolute path the link should point at

    The link stores a path relative to its own folder so that the tree can be
    moved after extraction.
    """
    link_folder = os.path.dirname(link_path)
    os.makedirs(link_folder, exist_ok=True)
    if os.path.islink(link_path) or os.path.isfile(link_path):
        os.remove(link_path)
    relative_target_path = os.path.relpath(target_path, link_folder)
    _create_platform_link(kind, link_path, relative_target_path)


def remove_link(link_path: str) -> bool:
    """Remove the link at ``link_path``; returns False if nothing was there."""
    if not os.path.lexists(link_path):
        return False
    if os.path.isdir(link_path) and not os.path.islink(link_path):
        # Junctions report as folders; rmdir removes the junction, not the target
        os.rmdir(link_path)
    else:
        os.remove(link_path)
    return True


def realize_file(link_path: str) -> None:
    """Replace a file link with a copy of the file it ultimately points at."""
    if not os.path.islink(link_path):
        # Hard links are already real files
        return
    real_target_path = os.path.realpath(link_path)
    os.remove(link_path)
    shutil.copy2(real_target_path, link_path)


def _iter_dependency_folders(node_modules_folder: str):
    if not os.path.isdir(node_modules_folder):
        return
    for name in sorted(os.listdir(node_modules_folder)):
        if name.startswith("."):
            continue
        folder = os.path.join(node_modules_folder, name)
        if name.startswith("@"):
            if os.path.isdir(folder):
                for scoped_name in sorted(os.listdir(folder)):
                    yield os.path.join(folder, scoped_name)
        else:
            yield folder


def _bin_entries(package_json: dict) -> dict[str, str]:
    bin_field = package_json.get("bin")
    if isinstance(bin_field, str):
        name = package_json.get("name", "").split("/")[-1]
        return {name: bin_field} if name else {}
    if isinstance(bin_field, dict):
        return {k.split("/")[-1]: v for k, v in bin_field.items() if isinstance(v, str)}
    return {}


def make_bin_links_for_project(project_folder: str) -> list[str]:
    """Create node_modules/.bin entries for the direct dependencies of a project.

    Returns:
        Paths of the created bin entries
    """
    node_modules_folder = os.path.join(project_folder, "node_modules")
    bin_folder = os.path.join(node_modules_folder, ".bin")
    created: list[str] = []
    for dependency_folder in _iter_dependency_folders(node_modules_folder):
        package_json_path = os.path.join(dependency_folder, "package.json")
        if not os.path.isfile(package_json_path):
            continue
        with open(package_json_path, encoding="utf-8") as f:
            package_json = json.load(f)

        for bin_name, bin_path in _bin_entries(package_json).items():
            target_path = os.path.normpath(os.path.join(dependency_folder, bin_path))
            if not os.path.isfile(target_path):
                continue
            os.makedirs(bin_folder, exist_ok=True)
            if sys.platform == "win32":
                created.append(_write_cmd_shim(bin_folder, bin_name, target_path))
            else:
                link_path = os.path.join(bin_folder, bin_name)
                create_link("fileLink", link_path, target_path)
                mode = os.stat(target_path).st_mode
                os.chmod(target_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
                created.append(link_path)
    return created


def _write_cmd_shim(bin_folder: str, bin_name: str, target_path: str) -> str:
    shim_path = os.path.join(bin_folder, bin_name + ".cmd")
    relative_target = os.path.relpath(target_path, bin_folder)
    with open(shim_path, "w", encoding="utf-8") as f:
        f.write(f'@node "%~dp0\\{relative_target}" %*\r\n')
    return shim_path


def get_target_root() -> str:
    script_folder = os.path.dirname(os.path.abspath(__file__))
    return os.path.abspath(os.path.join(script_folder, TARGET_ROOT_SCRIPT_RELATIVE_PATH))


def load_metadata() -> dict:
    script_folder = os.path.dirname(os.path.abspath(__file__))
    with open(os.path.join(script_folder, EXTRACTOR_METADATA_FILENAME), encoding="utf-8") as f:
        return json.load(f)


app = typer.Typer(
    name="create-links",
    help="Create or remove the links of an extracted package tree",
    add_completion=False,
)


@app.command()
def create(
    realize_files: bool = typer.Option(
        False, "--realize-files", help="Replace file links with copies of their targets"
    ),
    link_bins: bool = typer.Option(
        False, "--link-bins", help="Create node_modules/.bin entries for each project"
    ),
) -> None:
    """Create the links listed in extractor-metadata.json."""
    target_root = get_target_root()
    metadata = load_metadata()
    links = metadata.get("links", [])

    console.print(f"Creating {len(links)} links in {target_root}")
    for link in links:
        link_path = os.path.join(target_root, link["linkPath"])
        target_path = os.path.join(target_root, link["targetPath"])
        create_link(link["kind"], link_path, target_path)

    if realize_files:
        file_links = [link for link in links if link["kind"] == "fileLink"]
        console.print(f"Realizing {len(file_links)} file links")
        for link in file_links:
            realize_file(os.path.join(target_root, link["linkPath"]))

    if link_bins:
        project_folders = [
            os.path.join(target_root, project["path"]) for project in metadata.get("projects", [])
        ]
        with ThreadPoolExecutor(max_workers=MAX_CONCURRENCY) as pool:
            created = sum(len(paths) for paths in pool.map(make_bin_links_for_project, project_folders))
        console.print(f"Created {created} bin links")


@app.command()
def remove() -> None:
    """Remove the links listed in extractor-metadata.json."""
    target_root = get_target_root()
    metadata = load_metadata()
    removed = 0
    # Deepest links first, so links nested under other links go away before their parents
    for link in sorted(metadata.get("links", []), key=lambda link: link["linkPath"], reverse=True):
        if remove_link(os.path.join(target_root, link["linkPath"])):
            removed += 1
    console.print(f"Removed {removed} links from {target_root}")


def main() -> None:
    try:
        app(standalone_mode=False)
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        sys.exit(1)


if __name__ == "__main__":
    main()
