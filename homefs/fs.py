"""
Safe filesystem operations for homefs
"""

import os
import stat
import logging
from pathlib import Path, PurePosixPath
from typing import AsyncGenerator, Iterable, Optional, Union
from urllib.parse import unquote_to_bytes

import aiofiles
import aiofiles.os

from .models import (
    DirectoryListing, ListingEntry, OpenedFile, ResolvedTarget, SanitizeErrorKind, TargetKind,
    DEFAULT_MIME_TYPE, DIRECTORY_SIZE, DIRECTORY_TYPE, ROOT_MARKER,
)
from .utils import format_file_size, format_timestamp, get_mime_type, is_readable_name

logger = logging.getLogger(__name__)

# Whether "\" separates path components on this platform
BACKSLASH_IS_SEPARATOR = os.sep == "\\" or os.altsep == "\\"

BAD_END_CHARS = (":", ">", "<")

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class FileSystemError(Exception):
    """Generic filesystem error"""
    pass


class SanitizationError(FileSystemError):
    """Raised when a URL path segment is unsafe or undecodable"""

    def __init__(self, kind: SanitizeErrorKind, char: Optional[str] = None):
        self.kind = kind
        self.char = char
        if char is None:
            super().__init__(f"{kind.value}")
        else:
            super().__init__(f"{kind.value}: {char!r}")


class ReadError(FileSystemError):
    """Raised when a directory cannot be opened or enumerated"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to read directory: {reason}")


def decode_segment(segment: Union[str, bytes]) -> str:
    """Percent-decode one URL path segment as UTF-8"""
    try:
        return unquote_to_bytes(segment).decode("utf-8")
    except UnicodeDecodeError:
        raise SanitizationError(SanitizeErrorKind.DECODE)


def sanitize_segments(segments: Iterable[Union[str, bytes]]) -> PurePosixPath:
    """
    Turn raw URL path segments into a traversal-safe relative path

    Args:
        segments: Raw, still percent-encoded, path segments in request order

    Returns:
        Relative path that stays below whatever root it is joined to

    Raises:
        SanitizationError: On the first segment that fails a check
    """

    accumulator = PurePosixPath()

    for raw in segments:
        if not raw:
            # "//" and trailing slashes produce empty segments
            continue

        segment = decode_segment(raw)

        if segment == "..":
            # parent of an empty relative path is itself
            accumulator = accumulator.parent
        elif ".." in segment:
            raise SanitizationError(SanitizeErrorKind.BAD_CHARACTER, ".")
        elif segment.startswith("*"):
            raise SanitizationError(SanitizeErrorKind.BAD_START, "*")
        elif segment.endswith(BAD_END_CHARS):
            raise SanitizationError(SanitizeErrorKind.BAD_END, segment[-1])
        elif "/" in segment:
            raise SanitizationError(SanitizeErrorKind.BAD_CHARACTER, "/")
        elif BACKSLASH_IS_SEPARATOR and "\\" in segment:
            raise SanitizationError(SanitizeErrorKind.BAD_CHARACTER, "\\")
        else:
            accumulator = accumulator / segment

    return accumulator


def resolve_target(root_path: Path, rel_path: PurePosixPath) -> ResolvedTarget:
    """
    Join the configured root with a sanitized path and classify the result

    Symlinks are followed by the stat call; nothing else is canonicalised.
    """

    full_path = root_path.joinpath(*rel_path.parts) if rel_path.parts else root_path

    try:
        st = os.stat(full_path)
    except (OSError, ValueError):
        # ValueError covers embedded NUL bytes
        return ResolvedTarget(path=full_path, relative=rel_path, kind=TargetKind.MISSING)

    kind = TargetKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else TargetKind.FILE
    return ResolvedTarget(path=full_path, relative=rel_path, kind=kind)


def _listing_path(root_path: Path, dir_path: Path) -> str:
    try:
        rel = dir_path.relative_to(root_path)
    except ValueError:
        return ROOT_MARKER
    if not rel.parts:
        return ROOT_MARKER
    return ROOT_MARKER + rel.as_posix()


def _build_entry(entry: os.DirEntry, root_path: Path, date_format: str) -> Optional[ListingEntry]:
    """Collect display metadata for one child, None when it must be skipped"""

    name = entry.name
    if not is_readable_name(name):
        logger.debug(f"Skipping entry with unreadable name in {root_path}")
        return None

    try:
        is_symlink = entry.is_symlink()
        st = entry.stat()
    except OSError as e:
        logger.warning(f"Failed to stat {entry.path}: {e}")
        return None

    try:
        rel_path = Path(entry.path).relative_to(root_path).as_posix()
    except ValueError:
        logger.warning(f"Entry outside configured root: {entry.path}")
        return None

    is_dir = stat.S_ISDIR(st.st_mode)
    if is_dir:
        size = DIRECTORY_SIZE
        mime_type = DIRECTORY_TYPE
    else:
        size = format_file_size(st.st_size)
        mime_type = get_mime_type(name) or DEFAULT_MIME_TYPE

    return ListingEntry(
        name=name,
        size=size,
        mime_type=mime_type,
        modified=format_timestamp(getattr(st, "st_mtime", None), date_format),
        is_dir=is_dir,
        is_symlink=is_symlink,
        path=rel_path,
    )


def list_directory(dir_path: Path, root_path: Path, date_format: str = "%d/%m/%Y %H:%M") -> DirectoryListing:
    """
    List directory contents safely

    Args:
        dir_path: Resolved directory below (or equal to) the root
        root_path: Configured root, used for entry link paths
        date_format: strftime format for modification times

    Returns:
        DirectoryListing in filesystem enumeration order

    Raises:
        ReadError: If the directory cannot be opened or enumerated
    """

    listing = DirectoryListing(path=_listing_path(root_path, dir_path))

    try:
        with os.scandir(dir_path) as it:
            for entry in it:
                item = _build_entry(entry, root_path, date_format)
                if item is not None:
                    listing.entries.append(item)
    except OSError as e:
        raise ReadError(e.strerror or str(e))

    return listing


async def open_file_for_download(file_path: Path) -> Optional[OpenedFile]:
    """
    Open a file for transfer to the client

    Returns:
        OpenedFile, or None if the file cannot be opened
    """

    try:
        handle = await aiofiles.open(file_path, 'rb')
    except OSError as e:
        logger.info(f"Failed to open {file_path}: {e}")
        return None

    try:
        st = await aiofiles.os.stat(file_path)
    except OSError as e:
        await handle.close()
        logger.info(f"Failed to stat {file_path}: {e}")
        return None

    return OpenedFile(
        name=file_path.name,
        size=st.st_size,
        handle=handle,
        mime_type=get_mime_type(file_path.name) or DEFAULT_MIME_TYPE,
    )


async def iter_file(opened: OpenedFile, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> AsyncGenerator[bytes, None]:
    """Yield file chunks, closing the handle when done"""
    try:
        while True:
            chunk = await opened.handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        await opened.handle.close()
