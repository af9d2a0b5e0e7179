"""
Middleware for homefs
"""

import logging
import time
from typing import Callable, Optional
from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.responses import HTMLResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .utils import format_duration, get_client_ip

logger = logging.getLogger(__name__)

INTERNAL_ERROR_PAGE = """
<html>
<head><title>500 Internal Server Error</title></head>
<body>
    <h1>Internal Server Error</h1>
    <p>The server could not complete this request.</p>
</body>
</html>
"""


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Access logging middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = get_client_ip(request)

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"Request failed: {request.method} {request.url.path} - {e}")
            self._log_access(request, None, duration, client_ip, error=str(e))
            raise

        self._log_access(request, response, time.time() - start_time, client_ip)
        return response

    def _log_access(
        self,
        request: Request,
        response: Optional[Response],
        duration: float,
        client_ip: str,
        error: Optional[str] = None
    ):
        """Log access information"""

        status_code = response.status_code if response else 500
        content_length = response.headers.get("content-length", "-") if response else "-"

        log_data = {
            "method": request.method,
            "path": str(request.url.path),
            "status": status_code,
            "size": content_length,
            "duration": format_duration(duration),
            "ip": client_ip,
            "user_agent": request.headers.get("user-agent", "-"),
        }

        if error:
            log_data["error"] = error

        # Log level based on status code
        if status_code >= 500:
            logger.error(f"ACCESS {log_data}")
        elif status_code >= 400:
            logger.warning(f"ACCESS {log_data}")
        else:
            logger.info(f"ACCESS {log_data}")


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Global exception handler middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except HTTPException:
            # Let FastAPI handle HTTP exceptions
            raise

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}")
            return HTMLResponse(INTERNAL_ERROR_PAGE, status_code=500)


def setup_middleware(app: FastAPI):
    """Setup all middleware for the application"""

    # Exception handling runs inside access logging so 500s are logged
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(AccessLogMiddleware)

    logger.info("Middleware setup complete")
