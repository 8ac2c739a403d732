"""Decode and parse submission bodies into a flat field mapping."""

import base64
import binascii
import json
from typing import Any
from urllib.parse import parse_qsl

from signup_api.core.errors import ContentTypeError
from signup_api.schemas.http import SubmissionRequest

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


def decode_body(request: SubmissionRequest) -> str:
    raw = request.body or b""
    if request.is_base64_encoded:
        try:
            raw = base64.b64decode(raw, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ContentTypeError() from exc
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def parse_form(body: str) -> dict[str, Any]:
    """Last value wins, except keys ending in "[]" which keep every value in order."""
    fields: dict[str, Any] = {}
    for key, value in parse_qsl(body, keep_blank_values=True):
        if key.endswith("[]"):
            fields.setdefault(key, []).append(value)
        else:
            fields[key] = value
    return fields


def unwrap_webhook(data: dict[str, Any]) -> dict[str, Any]:
    """Netlify form notifications nest fields under payload.data or data."""
    inner = data.get("payload")
    if isinstance(inner, dict) and isinstance(inner.get("data"), dict):
        return inner["data"]
    if isinstance(data.get("data"), dict):
        return data["data"]
    return data


def parse_json(body: str) -> dict[str, Any] | None:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return unwrap_webhook(data)


def parse_submission(request: SubmissionRequest) -> dict[str, Any]:
    body = decode_body(request)
    content_type = request.content_type

    if content_type == FORM_CONTENT_TYPE:
        return parse_form(body)

    # Webhook senders sometimes omit or mis-declare the content type, so
    # anything that is not a form post gets a JSON attempt.
    data = parse_json(body)
    if data is None:
        raise ContentTypeError()
    return data
