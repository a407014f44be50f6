"""Middleware registration."""

from fastapi import FastAPI

from shelfquest.config import Settings
from shelfquest.middleware.cors import setup_cors
from shelfquest.middleware.error_handler import setup_error_handlers
from shelfquest.middleware.logging import setup_logging
from shelfquest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap every response, error responses included.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
