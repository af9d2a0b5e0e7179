"""
Data models and constants for homefs
"""

from enum import Enum
from typing import Any, List, Optional
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath


class TargetKind(Enum):
    """Classification of a resolved request target"""
    DIRECTORY = "directory"
    FILE = "file"
    MISSING = "missing"


class SanitizeErrorKind(Enum):
    """Reasons a URL segment sequence is rejected"""
    DECODE = "decode"
    BAD_CHARACTER = "bad_character"
    BAD_START = "bad_start"
    BAD_END = "bad_end"


class RouteKind(Enum):
    """Response shape decided by the request router"""
    LISTING = "listing"
    DOWNLOAD = "download"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ResolvedTarget:
    """Configured root joined with a sanitized relative path"""
    path: Path
    relative: PurePosixPath
    kind: TargetKind

    @property
    def is_dir(self) -> bool:
        return self.kind is TargetKind.DIRECTORY


@dataclass
class ListingEntry:
    """One child of a listed directory, ready for display"""
    name: str
    size: str
    mime_type: str
    modified: str
    is_dir: bool
    is_symlink: bool
    path: str


@dataclass
class DirectoryListing:
    """Listed path plus its entries in enumeration order"""
    path: str
    entries: List[ListingEntry] = field(default_factory=list)


@dataclass
class OpenedFile:
    """File opened for transfer to the client"""
    name: str
    size: int
    handle: Any
    mime_type: str


@dataclass
class RouteOutcome:
    """Result of routing one request"""
    kind: RouteKind
    requested_path: str = ""
    listing: Optional[DirectoryListing] = None
    file: Optional[OpenedFile] = None
    reason: str = ""


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 8000


@dataclass(frozen=True)
class BrowseConfig:
    """Browsed tree configuration"""
    root: Path = field(default_factory=Path.home)
    assets_dir: Optional[Path] = None
    date_format: str = "%d/%m/%Y %H:%M"

    def __post_init__(self):
        # frozen, so normalise through object.__setattr__
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
        if self.assets_dir is not None:
            object.__setattr__(self, "assets_dir", Path(self.assets_dir).expanduser().resolve())


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    json: bool = False
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 10
    backup_count: int = 3


@dataclass(frozen=True)
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    browse: BrowseConfig = field(default_factory=BrowseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Type tag shown for directories
DIRECTORY_TYPE = "directory"

# Size column value for directories
DIRECTORY_SIZE = "-"

# Listing path shown for the configured root itself
ROOT_MARKER = "/"

# Common MIME types
MIME_TYPES = {
    '.txt': 'text/plain',
    '.md': 'text/markdown',
    '.html': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.xml': 'application/xml',
    '.yaml': 'application/x-yaml',
    '.yml': 'application/x-yaml',
    '.pdf': 'application/pdf',
    '.zip': 'application/zip',
    '.tar': 'application/x-tar',
    '.gz': 'application/gzip',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.webp': 'image/webp',
    '.mp3': 'audio/mpeg',
    '.flac': 'audio/flac',
    '.mp4': 'video/mp4',
    '.mkv': 'video/x-matroska',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'
