from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from provider_registry import __version__
from provider_registry.api.providers import router as providers_router
from provider_registry.core.config import RegistrySettings
from provider_registry.core.dependencies import build_registry, get_settings, set_settings
from provider_registry.core.errors import RegistryError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    if debug:
        logger.debug("Log level set to debug")


def create_app(settings: Optional[RegistrySettings] = None) -> FastAPI:
    """
    Build the FastAPI application serving one data directory.

    Uploads and deletes go through the providers router; every other GET
    under /providers is served straight from the data directory.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Provider Registry",
        version=__version__,
        description="Private registry of provider archives with JSON version and archive indexes.",
    )
    app.state.settings = settings
    app.state.registry = build_registry(settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(f"Received {request.method} request to {request.url.path}")
        return await call_next(request)

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    # Routes first: the static mount matches every method under /providers.
    app.include_router(providers_router, tags=["providers"])
    app.mount("/providers", StaticFiles(directory=str(settings.data_dir)), name="providers")

    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="provider-registry", description="Run the provider registry server.")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    parser.add_argument("--dir", type=Path, default=None, help="Directory to store providers in")
    parser.add_argument("--host", default="0.0.0.0", help="Address to bind")
    parser.add_argument("--port", type=int, default=8080, help="Server port")
    parser.add_argument(
        "--production",
        action="store_true",
        help="Production mode which serves HTTPS using --cert and --key",
    )
    parser.add_argument("--cert", default="cert.pem", help="Path to cert file for TLS")
    parser.add_argument("--key", default="key.pem", help="Path to key file for TLS")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    args = parse_args(argv)
    settings = RegistrySettings.from_env()
    overrides = {}
    if args.dir is not None:
        overrides["data_dir"] = args.dir
    if args.debug:
        overrides["debug"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)
    set_settings(settings)

    configure_logging(settings.debug)
    app = create_app(settings)

    ssl_options = {}
    if args.production:
        ssl_options = {"ssl_certfile": args.cert, "ssl_keyfile": args.key}
    scheme = "HTTPS" if args.production else "HTTP"
    logger.info(f"Starting {scheme} server on {args.host}:{args.port}, serving {settings.data_dir}...")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        timeout_keep_alive=60,
        log_level="debug" if settings.debug else "info",
        **ssl_options,
    )
    logger.info("Shutting down...")


if __name__ == "__main__":
    main()
