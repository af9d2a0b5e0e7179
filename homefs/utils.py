"""
Utility functions for homefs
"""

import mimetypes
from datetime import datetime
from pathlib import PurePath
from typing import Optional, Union
import logging

from .models import MIME_TYPES

logger = logging.getLogger(__name__)


def get_mime_type(filename: Union[str, PurePath]) -> Optional[str]:
    """Guess MIME type from a file name, None when unknown"""
    name = str(filename)
    suffix = PurePath(name).suffix.lower()

    # Check our custom MIME types first
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]

    # Fall back to system mimetypes
    mime_type, _ = mimetypes.guess_type(name, strict=False)
    return mime_type


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(size_bytes)

    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    if i == 0:
        return f"{int(size)} {size_names[i]}"
    else:
        return f"{size:.1f} {size_names[i]}"


def format_timestamp(timestamp: Optional[float], format_str: str = "%d/%m/%Y %H:%M") -> str:
    """
    Format a modification time for display

    Falls back to the current time when the timestamp is missing or
    cannot be represented on this platform.
    """
    try:
        if timestamp is None:
            raise ValueError("no timestamp")
        dt = datetime.fromtimestamp(timestamp)
    except (ValueError, OverflowError, OSError):
        dt = datetime.now()
    return dt.strftime(format_str)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string"""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m{secs}s"


def get_client_ip(request) -> str:
    """Extract client IP from request, considering proxies"""

    # Check X-Forwarded-For header (proxy)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    # Check X-Real-IP header (nginx)
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    # Fall back to direct connection IP
    if request.client:
        return request.client.host

    return "unknown"


def is_readable_name(name: str) -> bool:
    """Check that a directory entry name is valid UTF-8 text"""
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        # os.scandir keeps undecodable bytes as lone surrogates
        return False
    return True
