"""
The signup submission handler.

handle() runs one request through: method/preflight, admission (origin or
webhook token), body parsing, honeypot, normalization, and the store's
primary-then-fallback write. Every outcome becomes a SubmissionResponse;
nothing propagates to the host framework.
"""

from __future__ import annotations

import logging

from signup_api.core.config import Settings
from signup_api.core.error_codes import ErrorCode
from signup_api.core.errors import ApiError, AuthorizationError, MethodError
from signup_api.core.log import describe_record, redact_email
from signup_api.schemas.http import SubmissionRequest, SubmissionResponse
from signup_api.services.authorization import (
    Gatekeeper,
    cors_headers,
    permissive_preflight_headers,
    request_origin,
)
from signup_api.services.normalize import build_record, is_honeypot
from signup_api.services.payload import parse_submission
from signup_api.services.storage import SignupStore, build_store

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "POST, OPTIONS"


class SubmissionHandler:
    def __init__(self, settings: Settings, store: SignupStore) -> None:
        self.settings = settings
        self.store = store
        self.gatekeeper = Gatekeeper(settings)

    def handle(self, request: SubmissionRequest) -> SubmissionResponse:
        cors: dict[str, str] = {}
        try:
            origin = request_origin(request)
            if self.gatekeeper.origin_allowed(origin):
                cors = cors_headers(origin)

            if request.method == "OPTIONS":
                return self._preflight(cors)
            if request.method != "POST":
                raise MethodError()

            via_webhook = False
            if not cors:
                via_webhook = self.gatekeeper.token_valid(request)
                if not via_webhook:
                    logger.info("rejected submission: origin=%s webhook=no", origin or "-")
                    raise AuthorizationError()

            fields = parse_submission(request)
            logger.debug(
                "parsed submission: content_type=%s keys=%s webhook=%s",
                request.content_type or "-",
                sorted(fields),
                via_webhook,
            )

            if is_honeypot(fields):
                logger.info("honeypot field set; submission ignored")
                return SubmissionResponse(status_code=204, headers=cors)

            record = build_record(fields, request, lowercase_email=self.settings.dedupe_by_email)
            logger.debug("normalized row: %s", describe_record(record.model_dump(), self.settings.log_pii))

            result = self.store.save(record)
            logger.info("signup stored via=%s id=%s email=%s", result.via, result.id, redact_email(record.email))
            return SubmissionResponse(
                status_code=200,
                headers={**cors, "Cache-Control": "no-store"},
                payload={"ok": True, "id": result.id, "via": result.via},
            )
        except ApiError as exc:
            return self._error(exc, cors)
        except Exception:
            logger.exception("unhandled error in signup handler")
            return SubmissionResponse(
                status_code=500,
                headers=cors,
                payload={"ok": False, "error": "Server error", "code": ErrorCode.INTERNAL_ERROR},
            )

    def _preflight(self, cors: dict[str, str]) -> SubmissionResponse:
        if self.settings.preflight_policy == "permissive":
            return SubmissionResponse(status_code=204, headers=permissive_preflight_headers())
        return SubmissionResponse(status_code=204, headers=cors)

    def _error(self, exc: ApiError, cors: dict[str, str]) -> SubmissionResponse:
        headers = dict(cors)
        if isinstance(exc, MethodError):
            headers["Allow"] = ALLOWED_METHODS
        if exc.status_code >= 500:
            logger.error("signup failed: %s %s", exc.status_code, exc.code)
        return SubmissionResponse(
            status_code=exc.status_code,
            headers=headers,
            payload={"ok": False, "error": exc.message, "code": exc.code},
        )

    def close(self) -> None:
        self.store.close()


def build_handler(settings: Settings) -> SubmissionHandler:
    return SubmissionHandler(settings, build_store(settings))
