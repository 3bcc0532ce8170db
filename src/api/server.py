"""FastAPI application wiring for the log viewer."""

from __future__ import annotations

import argparse
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from api.routes import get_viewer_router
from errors import AppError
from logging_config import setup_logging
from paths import ensure_runtime_directories
from services import ViewerService
from settings import ViewerSettings, load_settings

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def create_app(
    settings: Optional[ViewerSettings] = None,
    service: Optional[ViewerService] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""

    settings = settings or load_settings()
    viewer_service = service or ViewerService(poll_interval=settings.poll_interval)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        viewer_service.detach()

    app = FastAPI(
        title="Follow Tail API",
        version="0.1.0",
        description="HTTP interface for following a growing log file.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.viewer_service = viewer_service
    app.include_router(get_viewer_router(viewer_service), prefix="/api")

    @app.get("/healthz", tags=["system"], summary="Liveness probe")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Serve the log viewer over HTTP.")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Settings YAML file.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except AppError as e:
        print(f"follow-tail-api: {e}", file=sys.stderr)
        sys.exit(2)
    ensure_runtime_directories()
    setup_logging(log_file=settings.log_file, level=settings.log_level_number)

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)


app = create_app()


if __name__ == "__main__":
    main()
