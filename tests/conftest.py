import os

import pytest
from fastapi.testclient import TestClient
from httpx import Client

from signup_api.core.config import Settings
from signup_api.main import create_app
from signup_api.services.handler import SubmissionHandler
from signup_api.services.storage import SignupStore, WriteResult


RUN_INTEGRATION = os.getenv("RUN_INTEGRATION") == "1"
BASE_URL = os.getenv("BASE_URL", "http://localhost:8888")

ALLOWED_ORIGIN = "https://veteranverify.net"
WEBHOOK_SECRET = "hook-secret"


class RecordingWriter:
    """Stand-in for a write path; records every row it is handed."""

    def __init__(self, name: str = "rest", fail_with: Exception | None = None, via: str | None = None):
        self.name = name
        self.fail_with = fail_with
        self.via = via or f"{name}_upsert"
        self.calls: list[dict] = []
        self.closed = False

    def write(self, row: dict) -> WriteResult:
        self.calls.append(row)
        if self.fail_with is not None:
            raise self.fail_with
        return WriteResult(id=f"{self.name}-{len(self.calls)}", via=self.via)

    def close(self) -> None:
        self.closed = True


def make_settings(**overrides) -> Settings:
    values = {
        "allowed_origins": [ALLOWED_ORIGIN, "https://www.veteranverify.net"],
        "allowed_origin_regex": r"https://([a-z0-9-]+--)?veteranverify\.netlify\.app",
        "allow_localhost": True,
        "webhook_secret": WEBHOOK_SECRET,
        "supabase_url": "",
        "supabase_service_key": "",
        "database_url": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(settings: Settings | None = None, store: SignupStore | None = None) -> TestClient:
    settings = settings or make_settings()
    handler = SubmissionHandler(settings, store or SignupStore())
    return TestClient(create_app(settings=settings, handler=handler))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def primary() -> RecordingWriter:
    return RecordingWriter("rest", via="rest_upsert")


@pytest.fixture
def store(primary: RecordingWriter) -> SignupStore:
    return SignupStore(primary=primary)


@pytest.fixture
def api(settings: Settings, store: SignupStore) -> TestClient:
    return make_client(settings, store)


@pytest.fixture(scope="session")
def base_url() -> str:
    return BASE_URL


@pytest.fixture(scope="session")
def client(base_url: str):
    with Client(base_url=base_url, timeout=20.0) as c:
        yield c


@pytest.fixture(scope="session")
def integration_enabled() -> bool:
    return RUN_INTEGRATION
