from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from signup_api.core.config import Settings


def _connect_args(url: str, timeout_seconds: float) -> dict[str, Any]:
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        return {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    if backend == "sqlite":
        return {"check_same_thread": False, "timeout": timeout_seconds}
    return {}


def create_db_engine(settings: Settings) -> Engine:
    """Build the pooled engine for the direct SQL write path."""
    url = settings.database_url
    kwargs: dict[str, Any] = {
        "connect_args": _connect_args(url, settings.storage_timeout_seconds),
        "pool_pre_ping": True,
    }
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:"):
        # a single shared connection keeps an in-memory database alive
        kwargs["poolclass"] = StaticPool
    elif parsed.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.storage_timeout_seconds,
        )
    return create_engine(url, **kwargs)
