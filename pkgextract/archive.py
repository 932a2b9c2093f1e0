"""In-memory zip archive accumulator."""

import asyncio
import os
import stat
import time
import zipfile
from dataclasses import dataclass

from .paths import convert_to_slashes

# Symlink entries are stored as files whose data is the link target
SYMLINK_MODE = stat.S_IFLNK | 0o644
DEFAULT_FILE_MODE = stat.S_IFREG | 0o644
UNIX_CREATE_SYSTEM = 3


@dataclass
class ArchiveEntry:
    archive_path: str
    data: bytes
    mode: int
    date_time: tuple[int, int, int, int, int, int]


class ArchiveManager:
    """Collects archive entries and writes them out as a zip file.

    Entries may be added from concurrent tasks; mutation is serialized with an
    asyncio lock.
    """

    def __init__(self):
        self._entries: dict[str, ArchiveEntry] = {}
        self._lock = asyncio.Lock()

    @property
    def entry_paths(self) -> list[str]:
        return list(self._entries)

    async def add_to_archive(
        self,
        archive_path: str,
        file_path: str | None = None,
        file_data: str | bytes | None = None,
        stats: os.stat_result | None = None,
    ) -> None:
        """Add a file from disk or synthesized content to the archive.

        Args:
            archive_path: Path of the entry inside the archive
            file_path: File (or symlink) to read the entry from
            file_data: Content to store when no file_path is given
            stats: Pre-fetched lstat result for file_path
        """
        if (file_path is None) == (file_data is None):
            raise ValueError("Either file_path or file_data must be provided, but not both")

        if file_path is not None:
            data, mode, mtime = await asyncio.to_thread(_read_file_entry, file_path, stats)
        else:
            data = file_data.encode("utf-8") if isinstance(file_data, str) else file_data
            mode = DEFAULT_FILE_MODE
            mtime = time.time()

        entry = ArchiveEntry(
            archive_path=convert_to_slashes(archive_path),
            data=data,
            mode=mode,
            date_time=_zip_date_time(mtime),
        )
        async with self._lock:
            self._entries[entry.archive_path] = entry

    async def create_archive(self, archive_file_path: str) -> None:
        """Write every collected entry to ``archive_file_path``."""
        async with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.archive_path)
        await asyncio.to_thread(_write_zip, archive_file_path, entries)


def _read_file_entry(
    file_path: str, stats: os.stat_result | None
) -> tuple[bytes, int, float]:
    if stats is None:
        stats = os.lstat(file_path)
    if stat.S_ISLNK(stats.st_mode):
        return os.readlink(file_path).encode("utf-8"), SYMLINK_MODE, stats.st_mtime
    with open(file_path, "rb") as f:
        return f.read(), stats.st_mode, stats.st_mtime


def _zip_date_time(mtime: float) -> tuple[int, int, int, int, int, int]:
    # Zip timestamps cannot represent dates before 1980
    date_time = time.localtime(max(mtime, 315532800))[:6]
    return max(date_time, (1980, 1, 1, 0, 0, 0))


def _write_zip(archive_file_path: str, entries: list[ArchiveEntry]) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(archive_file_path)), exist_ok=True)
    with zipfile.ZipFile(archive_file_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for entry in entries:
            info = zipfile.ZipInfo(entry.archive_path, date_time=entry.date_time)
            info.create_system = UNIX_CREATE_SYSTEM
            info.external_attr = (entry.mode & 0xFFFF) << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, entry.data)
