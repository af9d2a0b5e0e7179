"""Per-request routing decisions for homefs."""

from __future__ import annotations

import asyncio
import logging
from pathlib import PurePosixPath
from typing import Sequence, Union

from .fs import (
    list_directory,
    open_file_for_download,
    resolve_target,
    sanitize_segments,
    ReadError,
    SanitizationError,
)
from .models import BrowseConfig, ResolvedTarget, RouteKind, RouteOutcome, TargetKind

logger = logging.getLogger(__name__)


class RequestRouter:
    """Decides between listing, download and not-found for each request.

    The router holds only the immutable browse configuration, so a single
    instance is shared by all requests.
    """

    def __init__(self, config: BrowseConfig):
        self.config = config

    @property
    def root(self):
        return self.config.root

    async def route(self, segments: Sequence[Union[str, bytes]], requested_path: str) -> RouteOutcome:
        """Sanitize, resolve, classify and dispatch one request."""
        try:
            rel_path = sanitize_segments(segments)
        except SanitizationError as e:
            logger.info(
                "Rejected request path",
                extra={"path": requested_path, "kind": e.kind.value, "char": e.char},
            )
            return RouteOutcome(kind=RouteKind.REJECTED, requested_path=requested_path, reason=str(e))

        # "/", "//" and "/x/.." all name the site root
        if not rel_path.parts:
            return await self.route_root(requested_path)

        # stat and scandir block, keep them off the event loop
        target = await asyncio.to_thread(resolve_target, self.root, rel_path)
        if target.kind is TargetKind.MISSING:
            return RouteOutcome(kind=RouteKind.NOT_FOUND, requested_path=requested_path)
        if target.kind is TargetKind.DIRECTORY:
            return await asyncio.to_thread(self._list, target, requested_path)
        return await self._download(target, requested_path)

    async def route_root(self, requested_path: str = "/") -> RouteOutcome:
        """The site root is a listing or missing, never a download."""
        target = await asyncio.to_thread(resolve_target, self.root, PurePosixPath())
        if target.kind is not TargetKind.DIRECTORY:
            logger.warning(f"Configured root is not a directory: {self.root}")
            return RouteOutcome(kind=RouteKind.NOT_FOUND, requested_path=requested_path)
        return await asyncio.to_thread(self._list, target, requested_path)

    def _list(self, target: ResolvedTarget, requested_path: str) -> RouteOutcome:
        try:
            listing = list_directory(target.path, self.root, self.config.date_format)
        except ReadError as e:
            logger.error(f"Cannot list {target.path}: {e.reason}")
            return RouteOutcome(kind=RouteKind.BAD_REQUEST, requested_path=requested_path, reason=e.reason)
        return RouteOutcome(kind=RouteKind.LISTING, requested_path=requested_path, listing=listing)

    async def _download(self, target: ResolvedTarget, requested_path: str) -> RouteOutcome:
        opened = await open_file_for_download(target.path)
        if opened is None:
            return RouteOutcome(kind=RouteKind.NOT_FOUND, requested_path=requested_path)
        return RouteOutcome(kind=RouteKind.DOWNLOAD, requested_path=requested_path, file=opened)
