"""
Lambda/Netlify-style entry point.

Events carry httpMethod, headers, body, isBase64Encoded and either
queryStringParameters or rawQuery; the result is the usual
{statusCode, headers, body} mapping.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl

from signup_api.core.config import get_settings
from signup_api.core.log import configure_logging
from signup_api.schemas.http import SubmissionRequest, SubmissionResponse
from signup_api.services.handler import SubmissionHandler, build_handler


@lru_cache(maxsize=1)
def get_handler() -> SubmissionHandler:
    settings = get_settings()
    configure_logging(settings.log_level)
    return build_handler(settings)


def request_from_event(event: dict[str, Any]) -> SubmissionRequest:
    query = dict(parse_qsl(event.get("rawQuery") or "", keep_blank_values=True))
    query.update(event.get("queryStringParameters") or {})
    http = (event.get("requestContext") or {}).get("http") or {}
    method = event.get("httpMethod") or http.get("method", "")
    return SubmissionRequest(
        method=method,
        headers=event.get("headers") or {},
        body=event.get("body") or "",
        is_base64_encoded=bool(event.get("isBase64Encoded")),
        query=query,
    )


def to_event_response(result: SubmissionResponse) -> dict[str, Any]:
    headers = dict(result.headers)
    body = ""
    if result.payload is not None:
        headers["Content-Type"] = "application/json"
        body = json.dumps(dict(result.payload), default=str)
    return {"statusCode": result.status_code, "headers": headers, "body": body}


def handler(event: dict[str, Any], context: Any = None, submission_handler: SubmissionHandler | None = None) -> dict[str, Any]:
    submission_handler = submission_handler or get_handler()
    return to_event_response(submission_handler.handle(request_from_event(event)))
