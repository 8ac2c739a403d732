"""Admission checks: browser origin allow-list and webhook shared secret."""

import hmac
import re
from urllib.parse import urlparse

from signup_api.core.config import Settings
from signup_api.schemas.http import SubmissionRequest

LOCALHOST_ORIGIN = re.compile(r"https?://(localhost|127\.0\.0\.1)(:\d+)?")
CORS_METHODS = "POST, OPTIONS"
CORS_HEADERS = "Content-Type"


def request_origin(request: SubmissionRequest) -> str | None:
    """Origin header, else scheme://host[:port] taken from Referer."""
    origin = request.header("origin").strip()
    if origin and origin != "null":
        return origin.rstrip("/")
    referer = request.header("referer").strip()
    if referer:
        parsed = urlparse(referer)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
    return None


class Gatekeeper:
    def __init__(self, settings: Settings) -> None:
        self._origins = set(settings.allowed_origins)
        self._pattern = re.compile(settings.allowed_origin_regex) if settings.allowed_origin_regex else None
        self._allow_localhost = settings.allow_localhost
        self._secret = settings.webhook_secret

    def origin_allowed(self, origin: str | None) -> bool:
        if not origin:
            return False
        if origin in self._origins:
            return True
        if self._pattern is not None and self._pattern.fullmatch(origin):
            return True
        return self._allow_localhost and LOCALHOST_ORIGIN.fullmatch(origin) is not None

    def token_valid(self, request: SubmissionRequest) -> bool:
        token = request.query.get("token") or request.query.get("secret") or ""
        if not token or not self._secret:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self._secret.encode("utf-8"))


def cors_headers(origin: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": CORS_HEADERS,
        "Vary": "Origin",
    }


def permissive_preflight_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": CORS_HEADERS,
        "Access-Control-Max-Age": "86400",
    }
