import json
from datetime import datetime

import httpx
import pytest
from sqlalchemy import Text, func, select

from conftest import RecordingWriter, make_settings
from signup_api.core.errors import StorageFailure, StorageTimeout, StorageUnavailable
from signup_api.db.base import Base
from signup_api.db.session import create_db_engine
from signup_api.models import Signup
from signup_api.schemas.signup import SignupRecord
from signup_api.services.storage import (
    RestSignupWriter,
    SignupStore,
    SqlSignupWriter,
    build_store,
)


def _row(**overrides) -> dict:
    record = SignupRecord(email="jane@example.com", first_name="Jane", last_name="Doe", organization="First Org")
    return {**record.model_dump(), **overrides}


# ── REST writer ──────────────────────────────────────────────────────────────


def _rest_writer(handler, dedupe: bool = True) -> RestSignupWriter:
    return RestSignupWriter(
        base_url="https://proj.supabase.co/",
        service_key="service-key",
        dedupe_by_email=dedupe,
        transport=httpx.MockTransport(handler),
    )


def test_rest_upsert_request_shape():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"id": 41}])

    result = _rest_writer(handler).write(_row())

    assert result.id == 41
    assert result.via == "rest_upsert"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/signups"
    assert request.url.params["on_conflict"] == "email"
    assert request.url.params["select"] == "id"
    assert request.headers["prefer"] == "resolution=merge-duplicates,return=representation"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"
    body = json.loads(request.content)
    assert body["email"] == "jane@example.com"
    assert datetime.fromisoformat(body["updated_at"]).tzinfo is not None


def test_rest_plain_insert_has_no_conflict_target():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"id": "abc"}])

    result = _rest_writer(handler, dedupe=False).write(_row())

    assert result.via == "rest_insert"
    assert "on_conflict" not in seen[0].url.params
    assert seen[0].headers["prefer"] == "return=representation"
    assert "updated_at" not in json.loads(seen[0].content)


def test_rest_error_status_raises_storage_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "duplicate key value violates unique constraint"})

    with pytest.raises(StorageFailure) as exc_info:
        _rest_writer(handler).write(_row())
    assert "409" in exc_info.value.detail
    assert exc_info.value.message == "Database write failed"


def test_rest_timeout_raises_storage_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(StorageTimeout):
        _rest_writer(handler).write(_row())


def test_rest_connect_error_raises_storage_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    with pytest.raises(StorageFailure) as exc_info:
        _rest_writer(handler).write(_row())
    assert not isinstance(exc_info.value, StorageTimeout)


def test_rest_empty_representation_yields_no_id():
    result = _rest_writer(lambda request: httpx.Response(201, content=b"")).write(_row())
    assert result.id is None


# ── SQL writer ───────────────────────────────────────────────────────────────


@pytest.fixture
def engine():
    engine = create_db_engine(make_settings(database_url="sqlite://"))
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _count(engine) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(Signup)).scalar_one()


@pytest.mark.parametrize("strategy", ["on_conflict", "update_then_insert"])
def test_sql_upsert_keeps_one_row_per_email(engine, strategy: str):
    writer = SqlSignupWriter(lambda: engine, dedupe_by_email=True, upsert_strategy=strategy)

    first = writer.write(_row())
    second = writer.write(_row(organization="Second Org", role="vet"))

    assert first.via == second.via == "sql_upsert"
    assert first.id == second.id
    assert _count(engine) == 1
    with engine.connect() as conn:
        stored = conn.execute(select(Signup.organization, Signup.role, Signup.first_name)).one()
    assert stored.organization == "Second Org"
    assert stored.role == "vet"
    assert stored.first_name == "Jane"


def test_sql_upsert_inserts_distinct_emails(engine):
    writer = SqlSignupWriter(lambda: engine)
    writer.write(_row())
    writer.write(_row(email="other@example.com"))
    assert _count(engine) == 2


def test_free_text_columns_have_no_length_limit():
    for name in ("first_name", "last_name", "email", "role", "state", "organization", "message", "ip", "ua"):
        assert isinstance(Signup.__table__.c[name].type, Text), name


def test_sql_stores_long_free_text(engine):
    long_state = "S" * 300
    roles = ", ".join(f"role-{i}" for i in range(60))
    writer = SqlSignupWriter(lambda: engine)
    writer.write(_row(state=long_state, role=roles, organization="O" * 400))

    with engine.connect() as conn:
        stored = conn.execute(select(Signup.state, Signup.role, Signup.organization)).one()
    assert stored.state == long_state
    assert stored.role == roles
    assert len(stored.organization) == 400


def test_sql_plain_insert_relies_on_unique_constraint(engine):
    writer = SqlSignupWriter(lambda: engine, dedupe_by_email=False)
    assert writer.write(_row()).via == "sql_insert"

    with pytest.raises(StorageFailure):
        writer.write(_row(organization="Second Org"))
    assert _count(engine) == 1


def test_sql_writer_builds_engine_lazily():
    calls = []

    def factory():
        calls.append(1)
        engine = create_db_engine(make_settings(database_url="sqlite://"))
        Base.metadata.create_all(engine)
        return engine

    writer = SqlSignupWriter(factory)
    assert calls == []
    writer.write(_row())
    writer.write(_row(email="b@example.com"))
    assert calls == [1]
    writer.close()


def test_sql_missing_table_raises_storage_failure():
    engine = create_db_engine(make_settings(database_url="sqlite://"))
    writer = SqlSignupWriter(lambda: engine)
    with pytest.raises(StorageFailure):
        writer.write(_row())


# ── Store / fallback ─────────────────────────────────────────────────────────


def test_store_without_writers_is_unavailable():
    with pytest.raises(StorageUnavailable):
        SignupStore().save(SignupRecord(email="a@b.co"))


def test_store_uses_secondary_when_primary_missing():
    secondary = RecordingWriter("sql", via="sql_upsert")
    result = SignupStore(primary=None, secondary=secondary).save(SignupRecord(email="a@b.co"))
    assert result.via == "sql_upsert"
    assert len(secondary.calls) == 1


def test_store_skips_secondary_after_primary_success():
    primary = RecordingWriter("rest")
    secondary = RecordingWriter("sql")
    SignupStore(primary=primary, secondary=secondary).save(SignupRecord(email="a@b.co"))
    assert len(primary.calls) == 1
    assert secondary.calls == []


def test_store_reraises_last_failure():
    primary = RecordingWriter("rest", fail_with=StorageTimeout(detail="slow"))
    secondary = RecordingWriter("sql", fail_with=StorageFailure(detail="down"))
    with pytest.raises(StorageFailure) as exc_info:
        SignupStore(primary=primary, secondary=secondary).save(SignupRecord(email="a@b.co"))
    assert exc_info.value.detail == "down"


def test_fallback_from_rest_to_sqlite_end_to_end(engine):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    store = SignupStore(primary=_rest_writer(handler), secondary=SqlSignupWriter(lambda: engine))
    result = store.save(SignupRecord(email="a@b.co", organization="Acme"))

    assert result.via == "sql_upsert"
    assert _count(engine) == 1


def test_build_store_orders_writers_by_primary_path():
    configured = {
        "supabase_url": "https://proj.supabase.co",
        "supabase_service_key": "key",
        "database_url": "postgres://u:p@db.example:5432/postgres",
    }
    rest_first = build_store(make_settings(**configured))
    assert rest_first.primary.name == "rest"
    assert rest_first.secondary.name == "sql"

    sql_first = build_store(make_settings(primary_write_path="sql", **configured))
    assert sql_first.primary.name == "sql"
    assert sql_first.secondary.name == "rest"

    rest_only = build_store(make_settings(supabase_url="https://proj.supabase.co", supabase_service_key="key"))
    assert rest_only.secondary is None
    assert build_store(make_settings()).writers == []


def test_database_url_scheme_is_normalized():
    settings = make_settings(database_url="postgres://u:p@db.example:5432/postgres")
    assert settings.database_url == "postgresql://u:p@db.example:5432/postgres"
