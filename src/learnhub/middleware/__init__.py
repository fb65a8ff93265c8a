"""HTTP middleware stack.

Starlette runs middleware in reverse order of registration, so the resulting
onion is, outermost first:

    CORS -> RequestId -> RateLimit -> routes

CORS is outermost so 429s from the limiter still carry CORS headers, and the
request id is bound before the limiter logs anything.
"""

from fastapi import FastAPI

from learnhub.config import Settings
from learnhub.middleware.cors import setup_cors
from learnhub.middleware.error_handler import setup_error_handlers
from learnhub.middleware.logging import setup_logging
from learnhub.middleware.rate_limit import RateLimitMiddleware, rules_from_settings
from learnhub.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, error envelopes and the middleware stack."""
    setup_logging(settings)
    setup_error_handlers(app, settings)
    app.add_middleware(RateLimitMiddleware, rules=rules_from_settings(settings))
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
