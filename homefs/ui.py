"""
UI routes and template rendering for homefs
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from .fs import iter_file
from .models import RouteKind, RouteOutcome, ROOT_MARKER

logger = logging.getLogger(__name__)

# UI router
ui_router = APIRouter(tags=["ui"])

# Templates ship inside the package
templates_dir = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))

BAD_REQUEST_PAGE = """
<html>
<head><title>400 Bad Request</title></head>
<body>
    <h1>Bad Request</h1>
    <p>This directory cannot be listed.</p>
</body>
</html>
"""


def render(request: Request, view: str, data: Dict[str, Any], status_code: int = 200) -> HTMLResponse:
    """Render a logical view ("index", "error/404") with plain data"""
    context = dict(data)
    context["request"] = request
    return templates.TemplateResponse(
        request=request,
        name=f"{view}.html",
        context=context,
        status_code=status_code,
    )


def requested_uri(request: Request) -> str:
    """The request target as the client sent it"""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        uri = raw_path.decode("utf-8", "replace")
    else:
        uri = request.url.path
    if request.url.query:
        uri = f"{uri}?{request.url.query}"
    return uri


def path_segments(request: Request) -> List[bytes]:
    """Split the undecoded request path into segments"""
    raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
    return raw_path.split(b"/")


def render_not_found(request: Request, requested_path: str) -> HTMLResponse:
    return render(request, "error/404", {"path": requested_path}, status_code=404)


def respond(request: Request, outcome: RouteOutcome):
    """Map a routing outcome onto an HTTP response"""

    if outcome.kind is RouteKind.LISTING:
        listing = outcome.listing
        parent = None
        if listing.path != ROOT_MARKER:
            parent = str(PurePosixPath(listing.path).parent)
        return render(request, "index", {"listing": listing, "parent": parent})

    if outcome.kind is RouteKind.DOWNLOAD:
        opened = outcome.file
        headers = {
            "Content-Length": str(opened.size),
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(opened.name)}",
        }
        return StreamingResponse(iter_file(opened), media_type=opened.mime_type, headers=headers)

    if outcome.kind is RouteKind.BAD_REQUEST:
        return HTMLResponse(BAD_REQUEST_PAGE, status_code=400)

    # NOT_FOUND, and REJECTED since no other route can take the request
    return render_not_found(request, outcome.requested_path)


@ui_router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    """Listing of the configured root"""
    outcome = await request.app.state.router.route_root(requested_uri(request))
    return respond(request, outcome)


@ui_router.get("/{path:path}")
async def browse(request: Request, path: str):
    """Directory listing or file download"""
    outcome = await request.app.state.router.route(path_segments(request), requested_uri(request))
    return respond(request, outcome)


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    """Render every 404 with the error view, defer other statuses"""
    if exc.status_code == 404:
        return render_not_found(request, requested_uri(request))
    return await http_exception_handler(request, exc)


def setup_ui_routes(app):
    """Setup UI routes"""
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.include_router(ui_router)
    logger.info("UI routes setup complete")
