"""Funnel for every file written to the extraction target and archive."""

import asyncio
import logging
import os
import shutil
from collections.abc import Awaitable, Callable

from .archive import ArchiveManager
from .errors import ExtractorConfigurationError, ExtractorError
from .models import ExtractorOptions, LinkInfo
from .paths import is_under_or_equal, remap_source_path_for_target_folder
from .scripts.create_links import create_link
from .symlinks import SymlinkAnalyzer

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".zip"


def _copy_file_exclusive(source_file_path: str, target_file_path: str) -> None:
    os.makedirs(os.path.dirname(target_file_path), exist_ok=True)
    # "xb" fails if the target exists, so two sources can never write the same file
    with open(source_file_path, "rb") as src, open(target_file_path, "xb") as dst:
        shutil.copyfileobj(src, dst)
    shutil.copymode(source_file_path, target_file_path)


def _write_file(target_file_path: str, content: str | bytes) -> None:
    os.makedirs(os.path.dirname(target_file_path), exist_ok=True)
    data = content.encode("utf-8") if isinstance(content, str) else content
    with open(target_file_path, "wb") as f:
        f.write(data)


class AssetHandler:
    """Copies files into the target folder and/or the archive.

    Also owns the "default" link strategy: after all folders are copied,
    ``finalize`` recreates every recorded link inside the target folder.
    """

    def __init__(self, options: ExtractorOptions, symlink_analyzer: SymlinkAnalyzer):
        self._source_root_folder = os.path.abspath(options.source_root_folder)
        self._target_root_folder = os.path.abspath(options.target_root_folder)
        self._symlink_analyzer = symlink_analyzer
        self._link_creation_mode = options.link_creation or "default"
        self._archive_manager: ArchiveManager | None = None
        self._archive_file_path: str | None = None
        self._included_asset_paths: set[str] = set()
        self._is_finalized = False

        if options.create_archive_file_path:
            if os.path.splitext(options.create_archive_file_path)[1] != ARCHIVE_EXTENSION:
                raise ExtractorConfigurationError(
                    "Only archives with the .zip file extension are currently supported."
                )
            self._archive_file_path = os.path.abspath(
                os.path.join(self._target_root_folder, options.create_archive_file_path)
            )
            self._archive_manager = ArchiveManager()
        if options.create_archive_only and not self._archive_manager:
            raise ExtractorConfigurationError(
                "create_archive_only cannot be true if create_archive_file_path is not provided"
            )
        self._create_archive_only = options.create_archive_only

    @property
    def archive_file_path(self) -> str | None:
        return self._archive_file_path

    @property
    def asset_paths(self) -> list[str]:
        return sorted(self._included_asset_paths)

    async def include_asset(
        self,
        target_file_path: str,
        source_file_path: str | None = None,
        source_file_stats: os.stat_result | None = None,
        source_file_content: str | bytes | None = None,
        ignore_if_existing: bool = False,
    ) -> None:
        """Write one file to the target folder and add it to the archive.

        Args:
            target_file_path: Destination path under the target root
            source_file_path: File to copy; omit together with
                source_file_content to include a file already in the target
            source_file_stats: lstat result of the source, if already known
            source_file_content: Synthesized content to write instead
            ignore_if_existing: Silently skip paths that were already included
        """
        if self._is_finalized:
            raise ExtractorError("include_asset() cannot be called after finalize()")
        if source_file_path is not None and source_file_content is not None:
            raise ValueError("Either source_file_path or source_file_content must be provided, but not both")
        if source_file_path is None and source_file_content is None:
            if not is_under_or_equal(target_file_path, self._target_root_folder):
                raise ExtractorError("The existing asset path must be under the target root folder")
            source_file_path = target_file_path

        if target_file_path in self._included_asset_paths:
            if ignore_if_existing:
                return
            raise ExtractorError(f'The asset at path "{target_file_path}" has already been included')
        self._included_asset_paths.add(target_file_path)

        if not self._create_archive_only:
            # Copying a file onto itself is a no-op
            if source_file_path is not None and source_file_path != target_file_path:
                await asyncio.to_thread(_copy_file_exclusive, source_file_path, target_file_path)
            elif source_file_content is not None:
                await asyncio.to_thread(_write_file, target_file_path, source_file_content)

        if self._archive_manager:
            archive_path = os.path.relpath(target_file_path, self._target_root_folder)
            if source_file_path is not None:
                await self._archive_manager.add_to_archive(
                    archive_path, file_path=source_file_path, stats=source_file_stats
                )
            else:
                await self._archive_manager.add_to_archive(archive_path, file_data=source_file_content)

    async def finalize(
        self, on_after_extract_symlinks: Callable[[], Awaitable[None]] | None = None
    ) -> None:
        """Create links (default strategy), run the callback, then write the archive."""
        if self._is_finalized:
            raise ExtractorError("finalize() has already been called")

        if self._link_creation_mode == "default":
            logger.info("Creating symlinks")
            links_to_copy = self._symlink_analyzer.report_symlinks()
            # Parents before children, since a link may live inside a linked folder
            for link_info in links_to_copy:
                await self._extract_symlink(link_info)

        if on_after_extract_symlinks is not None:
            await on_after_extract_symlinks()

        if self._archive_manager and self._archive_file_path:
            logger.info('Creating archive at "%s"', self._archive_file_path)
            await self._archive_manager.create_archive(self._archive_file_path)

        self._is_finalized = True

    async def _extract_symlink(self, link_info: LinkInfo) -> None:
        link_path = remap_source_path_for_target_folder(
            self._source_root_folder, self._target_root_folder, link_info.link_path
        )
        target_path = remap_source_path_for_target_folder(
            self._source_root_folder, self._target_root_folder, link_info.target_path
        )
        await asyncio.to_thread(create_link, link_info.kind, link_path, target_path)
        # The link stores a relative target, so it can go into the archive as-is
        await self.include_asset(link_path, ignore_if_existing=True)
