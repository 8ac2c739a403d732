"""Framework-neutral request/response envelopes for the submission handler."""

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class SubmissionRequest:
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    is_base64_encoded: bool = False
    query: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = (self.method or "").upper()
        self.headers = {str(k).lower(): str(v) for k, v in (self.headers or {}).items() if v is not None}
        self.query = {str(k): str(v) for k, v in (self.query or {}).items() if v is not None}

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        return self.header("content-type").split(";", 1)[0].strip().lower()


@dataclass
class SubmissionResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    payload: Mapping[str, Any] | None = None
