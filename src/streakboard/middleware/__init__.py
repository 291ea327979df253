"""Middleware registration."""

from fastapi import FastAPI

from streakboard.config import Settings
from streakboard.middleware.cors import setup_cors
from streakboard.middleware.error_handler import setup_error_handlers
from streakboard.middleware.logging import setup_logging
from streakboard.middleware.rate_limit import RateLimitMiddleware
from streakboard.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them in reverse-add order.

    CORS is added last so it is outermost and also wraps 429 responses.
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
