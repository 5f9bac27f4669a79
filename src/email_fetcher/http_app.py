"""FastAPI application exposing the fetcher over HTTP."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from urllib.parse import parse_qsl

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contracts import format_iso_utc
from src.email_fetcher.providers import PROVIDERS
from src.email_fetcher.results import invalid_request
from src.email_fetcher.server import EmailFetcherServer, create_server
from src.email_fetcher.settings import Settings, get_settings

logger = logging.getLogger("email-fetcher.http")

AVAILABLE_ENDPOINTS = ["GET /", "GET /health", "POST /fetch-email"]

router = APIRouter()


def _fetcher(request: Request) -> EmailFetcherServer:
    return request.app.state.fetcher


async def _read_payload(request: Request) -> object:
    """JSON or form-encoded body as a dict; None if it cannot be decoded."""
    raw = await request.body()
    content_type = request.headers.get("content-type", "")

    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace")))

    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


@router.post("/fetch-email")
async def fetch_email(request: Request) -> JSONResponse:
    fetcher = _fetcher(request)
    limit = fetcher.settings.max_body_bytes

    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return JSONResponse(
            status_code=413, content={"success": False, "error": "Request body too large"}
        )

    raw = await request.body()
    if len(raw) > limit:
        return JSONResponse(
            status_code=413, content={"success": False, "error": "Request body too large"}
        )

    payload = await _read_payload(request)
    if payload is None:
        response = invalid_request()
    else:
        response = await fetcher.fetch_email(payload)
    return JSONResponse(status_code=response.status_code, content=response.body)


@router.get("/health")
async def health(request: Request) -> dict:
    settings = _fetcher(request).settings
    return {
        "status": "OK",
        "version": f"{settings.app_version} - Optimized",
        "timestamp": format_iso_utc(datetime.now(timezone.utc)),
    }


@router.get("/")
async def index(request: Request) -> dict:
    settings = _fetcher(request).settings
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "Running",
        "endpoints": {
            "/": "API documentation",
            "/health": "Health check",
            "/fetch-email": "Fetch email (POST)",
        },
        "usage": {
            "method": "POST",
            "endpoint": "/fetch-email",
            "body": {
                "provider": " | ".join(name.value for name in PROVIDERS),
                "username": "your@email.com",
                "password": "app-password",
                "subject": "email subject",
            },
        },
        "important": {
            name.value: f"Requires App Password: {endpoint.app_password_url}"
            for name, endpoint in PROVIDERS.items()
        },
    }


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    include_in_schema=False,
)
async def not_found(path: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": "404 - Not found", "available": AVAILABLE_ENDPOINTS},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the startup banner."""
    settings = app.state.fetcher.settings
    logger.info("=" * 60)
    logger.info("%s v%s", settings.app_name, settings.app_version)
    logger.info("Port: %s", settings.port)
    logger.info("Ready for requests...")
    logger.info("=" * 60)
    yield
    logger.info("Shutting down...")


def create_app(
    fetcher: EmailFetcherServer | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (fetcher.settings if fetcher else get_settings())
    fetcher = fetcher or create_server(settings=settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Fetch one email by subject over IMAP",
        lifespan=lifespan,
    )
    app.state.fetcher = fetcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app
