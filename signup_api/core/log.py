"""Process-wide logging setup and PII redaction helpers."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    else:
        root.setLevel(level.upper())


def redact_email(email: str | None) -> str:
    """Mask the local part: jane@example.com -> j***@example.com."""
    if not email:
        return "-"
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def describe_record(record: dict, show_pii: bool = False) -> str:
    """Render a signup row for log lines. Values are hidden unless `show_pii`."""
    if show_pii:
        return " ".join(f"{k}={v!r}" for k, v in record.items())
    filled = sorted(k for k, v in record.items() if v not in (None, "", False))
    return f"email={redact_email(record.get('email'))} fields={','.join(filled)}"
