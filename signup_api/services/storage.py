"""
Write paths for signup rows.

Two interchangeable writers exist: the PostgREST data API (httpx) and a
direct SQL connection pool (SQLAlchemy). `SignupStore` tries the primary
writer and, when it is missing or fails, the secondary one exactly once.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import httpx
from sqlalchemy import func, insert, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from signup_api.core.config import Settings
from signup_api.core.errors import StorageFailure, StorageTimeout, StorageUnavailable
from signup_api.db.session import create_db_engine
from signup_api.models import Signup
from signup_api.schemas.signup import SignupRecord

logger = logging.getLogger(__name__)

ERROR_DETAIL_LIMIT = 500


@dataclass
class WriteResult:
    id: Any
    via: str


class SignupWriter(Protocol):
    name: str

    def write(self, row: dict[str, Any]) -> WriteResult: ...

    def close(self) -> None: ...


class RestSignupWriter:
    """Insert or upsert through the PostgREST table endpoint."""

    name = "rest"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        table: str = "signups",
        dedupe_by_email: bool = True,
        timeout_seconds: float = 8.0,
        force_ipv4: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = f"{base_url.rstrip('/')}/rest/v1"
        self._service_key = service_key
        self._table = table
        self._dedupe = dedupe_by_email
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport
        if self._transport is None and force_ipv4:
            # binding to the IPv4 wildcard keeps every connection on IPv4
            self._transport = httpx.HTTPTransport(local_address="0.0.0.0")
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                    headers={
                        "apikey": self._service_key,
                        "Authorization": f"Bearer {self._service_key}",
                        "Content-Type": "application/json",
                    },
                )
            return self._client

    def write(self, row: dict[str, Any]) -> WriteResult:
        params = {"select": "id"}
        prefer = "return=representation"
        body = dict(row)
        if self._dedupe:
            params["on_conflict"] = "email"
            prefer = "resolution=merge-duplicates,return=representation"
            # merge-duplicates only rewrites columns present in the body
            body["updated_at"] = datetime.now(timezone.utc).isoformat()

        try:
            resp = self._get_client().post(f"/{self._table}", params=params, json=body, headers={"Prefer": prefer})
        except httpx.TimeoutException as exc:
            raise StorageTimeout(detail=f"rest timeout: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise StorageFailure(detail=f"rest transport error: {exc!r}") from exc

        if resp.status_code >= 400:
            raise StorageFailure(detail=f"rest HTTP {resp.status_code}: {resp.text[:ERROR_DETAIL_LIMIT]}")

        return WriteResult(id=_returned_id(resp), via="rest_upsert" if self._dedupe else "rest_insert")

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


def _returned_id(resp: httpx.Response) -> Any:
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        return data.get("id")
    return None


class SqlSignupWriter:
    """Insert or upsert over a pooled SQLAlchemy engine."""

    name = "sql"

    def __init__(
        self,
        engine_factory: Callable[[], Engine],
        dedupe_by_email: bool = True,
        upsert_strategy: str = "on_conflict",
    ) -> None:
        self._engine_factory = engine_factory
        self._engine: Engine | None = None
        self._dedupe = dedupe_by_email
        self._strategy = upsert_strategy
        self._lock = threading.Lock()

    def _get_engine(self) -> Engine:
        with self._lock:
            if self._engine is None:
                self._engine = self._engine_factory()
            return self._engine

    def write(self, row: dict[str, Any]) -> WriteResult:
        try:
            # begin() hands the connection back to the pool on every exit path
            with self._get_engine().begin() as conn:
                if not self._dedupe:
                    return WriteResult(id=str(_insert(conn, row)), via="sql_insert")
                if self._strategy == "update_then_insert" or conn.dialect.name not in ("postgresql", "sqlite"):
                    row_id = _update_then_insert(conn, row)
                else:
                    row_id = _on_conflict_upsert(conn, row)
                return WriteResult(id=str(row_id), via="sql_upsert")
        except PoolTimeoutError as exc:
            raise StorageTimeout(detail=f"sql pool timeout: {exc}") from exc
        except OperationalError as exc:
            detail = str(exc)[:ERROR_DETAIL_LIMIT]
            if "timeout" in detail.lower() or "canceling statement" in detail.lower():
                raise StorageTimeout(detail=f"sql timeout: {detail}") from exc
            raise StorageFailure(detail=f"sql operational error: {detail}") from exc
        except SQLAlchemyError as exc:
            raise StorageFailure(detail=f"sql error: {str(exc)[:ERROR_DETAIL_LIMIT]}") from exc

    def close(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None


def _insert(conn: Connection, row: dict[str, Any]):
    table = Signup.__table__
    stmt = insert(table).values(id=uuid.uuid4(), **row).returning(table.c.id)
    return conn.execute(stmt).scalar_one()


def _update_then_insert(conn: Connection, row: dict[str, Any]):
    table = Signup.__table__
    changes = {k: v for k, v in row.items() if k != "email"}
    stmt = (
        update(table)
        .where(table.c.email == row["email"])
        .values(**changes, updated_at=func.now())
        .returning(table.c.id)
    )
    row_id = conn.execute(stmt).scalars().first()
    if row_id is None:
        row_id = _insert(conn, row)
    return row_id


def _on_conflict_upsert(conn: Connection, row: dict[str, Any]):
    if conn.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    else:
        from sqlalchemy.dialects.sqlite import insert as dialect_insert

    table = Signup.__table__
    stmt = dialect_insert(table).values(id=uuid.uuid4(), **row)
    changes = {k: stmt.excluded[k] for k in row if k != "email"}
    changes["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[table.c.email], set_=changes).returning(table.c.id)
    return conn.execute(stmt).scalar_one()


class SignupStore:
    def __init__(self, primary: SignupWriter | None = None, secondary: SignupWriter | None = None) -> None:
        self.primary = primary
        self.secondary = secondary

    @property
    def writers(self) -> list[SignupWriter]:
        return [w for w in (self.primary, self.secondary) if w is not None]

    def save(self, record: SignupRecord) -> WriteResult:
        writers = self.writers
        if not writers:
            raise StorageUnavailable()

        row = record.model_dump()
        failure: StorageFailure | None = None
        for writer in writers:
            try:
                result = writer.write(dict(row))
            except StorageFailure as exc:
                logger.warning("%s write failed: %s", writer.name, exc.detail)
                failure = exc
                continue
            except Exception as exc:
                logger.exception("%s write raised unexpectedly", writer.name)
                failure = StorageFailure(detail=repr(exc))
                continue
            if failure is not None:
                logger.info("fallback %s write succeeded after primary failure", writer.name)
            return result

        raise failure

    def close(self) -> None:
        for writer in self.writers:
            writer.close()


def build_store(settings: Settings) -> SignupStore:
    rest = None
    sql = None
    if settings.rest_configured:
        rest = RestSignupWriter(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            table=settings.signups_table,
            dedupe_by_email=settings.dedupe_by_email,
            timeout_seconds=settings.storage_timeout_seconds,
            force_ipv4=settings.rest_force_ipv4,
        )
    if settings.sql_configured:
        sql = SqlSignupWriter(
            engine_factory=lambda: create_db_engine(settings),
            dedupe_by_email=settings.dedupe_by_email,
            upsert_strategy=settings.sql_upsert_strategy,
        )

    if settings.primary_write_path == "sql":
        return SignupStore(primary=sql, secondary=rest)
    return SignupStore(primary=rest, secondary=sql)
