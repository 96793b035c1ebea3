"""CORS for the voter site and admin dashboard.

Both frontends only read and submit; nothing here accepts PUT/PATCH/DELETE.
Preview deployments can be admitted with ``SWING_CORS_ORIGIN_REGEX``.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swingvote.config import Settings

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Request-Id"]
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=settings.cors_max_age,
    )
