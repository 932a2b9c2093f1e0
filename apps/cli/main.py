"""CLI application for pkgextract."""

import json
import logging
import os
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from pkgextract.config import load_config
from pkgextract.errors import ExtractorError
from pkgextract.extractor import PackageExtractor

console = Console()


def configure_logging(verbose: bool) -> None:
    """Send library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="pkgextract",
    help="pkgextract - Extract a project and its node_modules dependencies into a standalone folder",
    add_completion=False,
)


@app.command()
def extract(
    config_file: str = typer.Option(..., "--config", "-c", help="Path to the extractor JSON configuration file"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Target root folder (overrides the config file)"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Delete existing content of the target folder"),
    archive: Optional[str] = typer.Option(None, "--archive", help="Zip archive path, relative to the target folder"),
    archive_only: bool = typer.Option(False, "--archive-only", help="Only write the archive, not the target folder"),
    link_creation: Optional[str] = typer.Option(None, "--link-creation", help="Link strategy: default, script or none (script needs typer and rich wherever the tree is deployed)"),
    link_script: Optional[str] = typer.Option(None, "--link-script", help="Path of the link script, relative to the target folder"),
    include_dev_dependencies: bool = typer.Option(False, "--include-dev-dependencies", help="Also follow devDependencies of local projects"),
    include_npm_ignore_files: bool = typer.Option(False, "--include-npm-ignore-files", help="Copy local projects without applying publish rules"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Extract the main project of a configuration file and everything it needs."""
    configure_logging(verbose)

    try:
        config = load_config(config_file)

        overrides = {}
        if target:
            overrides["target_root_folder"] = os.path.abspath(target)
        if overwrite:
            overrides["overwrite_existing"] = True
        if archive:
            overrides["create_archive_file_path"] = archive
        if archive_only:
            overrides["create_archive_only"] = True
        if link_creation:
            if link_creation not in ("default", "script", "none"):
                console.print(f"Error: Unknown link creation mode: {link_creation}", style="red")
                raise typer.Exit(1)
            overrides["link_creation"] = link_creation
        if link_script:
            overrides["link_creation_script_path"] = link_script
        if include_dev_dependencies:
            overrides["include_dev_dependencies"] = True
        if include_npm_ignore_files:
            overrides["include_npm_ignore_files"] = True
        if overrides:
            config = config.model_copy(update=overrides)

        options = config.to_options(os.path.dirname(os.path.abspath(config_file)))
        PackageExtractor().extract_sync(options)
        console.print(f"Extracted {options.main_project_name} to {options.target_root_folder}", style="green")

    except typer.Exit:
        raise
    except (ExtractorError, OSError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


@app.command()
def files(
    folder: str = typer.Argument(help="Package folder containing package.json"),
    format_type: str = typer.Option("text", "--format", help="Output format: text or json"),
) -> None:
    """List the files that would be published from a package folder."""
    try:
        included_files = PackageExtractor.get_package_included_files(folder)
    except (ExtractorError, OSError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    if format_type == "json":
        console.print_json(json.dumps({"files": included_files}))
    else:
        for file_path in included_files:
            console.print(file_path, highlight=False)


if __name__ == "__main__":
    app()
