"""Middleware registration."""

from fastapi import FastAPI

from swingvote.config import Settings
from swingvote.middleware.cors import setup_cors
from swingvote.middleware.error_handler import setup_error_handlers
from swingvote.middleware.logging import setup_logging
from swingvote.middleware.rate_limit import RateLimitMiddleware
from swingvote.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs the last added one outermost.

    CORS goes last so 429 responses from the rate limiter still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
