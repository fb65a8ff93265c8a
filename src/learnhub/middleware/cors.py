"""CORS for the web client."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnhub.config import Settings

# Bearer tokens travel in the Authorization header and refresh tokens in JSON
# bodies, so no cookies and no credentialed CORS.
ALLOWED_METHODS = ["GET", "POST", "PUT", "OPTIONS"]
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-Id"]
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=600,
    )
