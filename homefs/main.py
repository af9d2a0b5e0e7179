"""
Main application factory for homefs
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import __version__
from .config import load_config, CONFIG_ENV_VAR
from .models import Config
from .middleware import setup_middleware
from .router import RequestRouter
from .ui import setup_ui_routes


logger = logging.getLogger(__name__)

ROOT_ENV_VAR = "HOMEFS_ROOT"

# Bundled stylesheet directory served under /css
DEFAULT_ASSETS_DIR = Path(__file__).parent / "static" / "css"


class JsonFormatter(logging.Formatter):
    """One JSON object per log line"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(config: Config):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if log_config.json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if configured
    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def mount_assets(app: FastAPI, config: Config):
    """Serve the stylesheet folder under /css"""
    assets_dir = config.browse.assets_dir or DEFAULT_ASSETS_DIR
    if assets_dir.is_dir():
        app.mount("/css", StaticFiles(directory=str(assets_dir)), name="css")
    else:
        logger.warning(f"Assets directory not found: {assets_dir}")


def create_app(config_path: Optional[str] = None, config: Optional[Config] = None) -> FastAPI:
    """Create FastAPI application"""

    # Load configuration unless one was handed in
    if config is None:
        config = load_config(config_path, root_override=os.getenv(ROOT_ENV_VAR))

    # Setup logging
    setup_logging(config)

    if not config.browse.root.is_dir():
        logger.warning(f"Configured root is not a directory: {config.browse.root}")

    app = FastAPI(
        title="homefs",
        description="Read-only directory browser",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Config never changes after startup
    app.state.config = config
    app.state.router = RequestRouter(config.browse)

    setup_middleware(app)

    # Fixed routes first, the browse catch-all last
    @app.get("/healthz")
    async def health_check():
        return {"ok": True, "version": __version__}

    mount_assets(app, config)
    setup_ui_routes(app)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"homefs starting on {config.server.addr}:{config.server.port}")
        logger.info(f"Serving {config.browse.root}")

    return app


def main():
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="homefs directory browser")
    parser.add_argument("--config", "-c", default=None, help="Configuration file path")
    parser.add_argument("--root", "-r", default=None, help="Directory to serve")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    # The factory runs in the server process, hand options over via env
    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config
    if args.root:
        os.environ[ROOT_ENV_VAR] = args.root

    config = load_config(args.config, root_override=args.root)

    uvicorn.run(
        "homefs.main:create_app",
        factory=True,
        host=args.host or config.server.addr,
        port=args.port or config.server.port,
        reload=args.reload,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
    )


if __name__ == "__main__":
    main()
