"""Download a CI log archive and collect the text of matching entries."""

from __future__ import annotations

import logging
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from typing import IO, BinaryIO, Iterator, Optional

import httpx

from errors import DependencyError

logger = logging.getLogger("screenshots.archive")

DOWNLOAD_CHUNK_BYTES = 64 * 1024


@dataclass
class ArchiveEntry:
    name: str
    stream: IO[bytes]


def iter_archive_entries(archive: BinaryIO) -> Iterator[ArchiveEntry]:
    """
    Lazily yield the file entries of a zip archive.

    Directory entries are skipped. Each entry's stream is only valid until
    the iterator advances.
    """

    try:
        with zipfile.ZipFile(archive) as bundle:
            for info in bundle.infolist():
                if info.is_dir():
                    continue
                with bundle.open(info) as stream:
                    yield ArchiveEntry(name=info.filename, stream=stream)
    except zipfile.BadZipFile as exc:
        raise DependencyError(f"Log archive is not a valid zip file: {exc}") from exc


def collect_matching_text(archive: BinaryIO, target_name: str) -> str:
    """Concatenate the decoded text of every entry whose path contains ``target_name``."""

    parts: list[str] = []
    visited = 0
    for entry in iter_archive_entries(archive):
        visited += 1
        if target_name not in entry.name:
            continue
        try:
            raw = entry.stream.read()
        except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
            raise DependencyError(f"Log archive entry {entry.name} is corrupt: {exc}") from exc
        parts.append(raw.decode("utf-8", errors="replace"))
        logger.debug("Collected log entry %s", entry.name)

    logger.info(
        "Scanned %s archive entries, %s matched %r",
        visited,
        len(parts),
        target_name,
    )
    return "".join(parts)


class ArchiveLogFetcher:
    """Streams a remote log archive to a temporary file and extracts its text."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def download(self, url: str, destination: BinaryIO) -> int:
        written = 0
        try:
            with self._client.stream("GET", url) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(DOWNLOAD_CHUNK_BYTES):
                    destination.write(chunk)
                    written += len(chunk)
        except httpx.HTTPError as exc:
            raise DependencyError(f"Unable to download log archive: {exc}") from exc
        destination.seek(0)
        return written

    def fetch_log_text(self, url: str, target_name: str) -> str:
        """Return the concatenated text of entries matching ``target_name``; empty if none."""

        with tempfile.TemporaryFile(prefix="screenshot-logs-") as archive:
            size = self.download(url, archive)
            logger.info("Downloaded log archive (%s bytes)", size)
            return collect_matching_text(archive, target_name)
