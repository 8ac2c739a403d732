"""Map raw submission fields onto a SignupRecord."""

import re
from typing import Any, Mapping

from signup_api.core.errors import ValidationError
from signup_api.schemas.http import SubmissionRequest
from signup_api.schemas.signup import SignupRecord

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PLACEHOLDER_EMAIL = "you@example.com"
HONEYPOT_FIELD = "bot-field"
ROLE_SEPARATOR = ", "
TRUTHY_TOKENS = {"true", "1", "yes", "on"}

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("fullname", "full_name"),
    "email": ("user_email", "contact_email"),
    "organization": ("company", "org"),
    "message": ("notes", "comment"),
    "state": ("region", "province"),
}

CLIENT_IP_HEADERS = ("x-nf-client-connection-ip", "client-ip", "x-forwarded-for", "x-real-ip")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ROLE_SEPARATOR.join(str(v).strip() for v in value if str(v).strip())
    value = str(value).strip()
    return value or None


def is_truthy(value: Any) -> bool:
    if value is True:
        return True
    return isinstance(value, str) and value in TRUTHY_TOKENS


def is_honeypot(fields: Mapping[str, Any]) -> bool:
    return bool(fields.get(HONEYPOT_FIELD))


def apply_aliases(fields: Mapping[str, Any]) -> dict[str, Any]:
    resolved = dict(fields)
    for canonical, alternates in FIELD_ALIASES.items():
        if _text(resolved.get(canonical)) is not None:
            continue
        for alt in alternates:
            if _text(resolved.get(alt)) is not None:
                resolved[canonical] = resolved[alt]
                break
    return resolved


def split_name(fields: Mapping[str, Any]) -> tuple[str | None, str | None]:
    full = _text(fields.get("name"))
    if full:
        parts = full.split()
        return parts[0], " ".join(parts[1:]) or None
    return _text(fields.get("first_name")), _text(fields.get("last_name"))


def normalize_email(value: Any, lowercase: bool = True) -> str:
    email = _text(value) or ""
    if lowercase:
        email = email.lower()
    if not EMAIL_RE.fullmatch(email) or email.lower() == PLACEHOLDER_EMAIL:
        raise ValidationError()
    return email


def join_roles(fields: Mapping[str, Any]) -> str | None:
    multi = fields.get("role[]")
    if isinstance(multi, (list, tuple)):
        joined = _text(multi)
        if joined:
            return joined
    elif multi is not None and _text(multi):
        return _text(multi)
    return _text(fields.get("role"))


def client_ip(request: SubmissionRequest) -> str | None:
    for name in CLIENT_IP_HEADERS:
        value = request.header(name)
        if name == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return None


def build_record(fields: Mapping[str, Any], request: SubmissionRequest, lowercase_email: bool = True) -> SignupRecord:
    fields = apply_aliases(fields)
    first_name, last_name = split_name(fields)
    return SignupRecord(
        first_name=first_name,
        last_name=last_name,
        email=normalize_email(fields.get("email"), lowercase=lowercase_email),
        role=join_roles(fields),
        state=_text(fields.get("state")),
        organization=_text(fields.get("organization")),
        message=_text(fields.get("message")),
        updates_opt_in=is_truthy(fields.get("updates")) or is_truthy(fields.get("updates_opt_in")),
        ip=client_ip(request),
        ua=_text(request.header("user-agent")),
    )
