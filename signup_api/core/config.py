import json
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "signup-api"
    app_env: str = "development"
    app_port: int = 8888

    log_level: str = "INFO"
    log_pii: bool = False

    # Browser admission
    allowed_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)
    allowed_origin_regex: str = ""  # e.g. r"https://([a-z0-9-]+--)?veteranverify\.netlify\.app"
    allow_localhost: bool = True
    preflight_policy: Literal["strict", "permissive"] = "strict"

    # Server-to-server admission
    webhook_secret: str = Field(
        default="",
        validation_alias=AliasChoices("webhook_secret", "FORM_WEBHOOK_SECRET", "WEBHOOK_TOKEN"),
    )

    # REST data API (PostgREST)
    supabase_url: str = ""
    supabase_service_key: str = ""
    signups_table: str = "signups"
    rest_force_ipv4: bool = False

    # Direct SQL
    database_url: str = Field(
        default="",
        validation_alias=AliasChoices("database_url", "DATABASE_URL", "SUPABASE_DB_URL"),
    )
    db_pool_size: int = 5
    db_max_overflow: int = 5

    primary_write_path: Literal["rest", "sql"] = "rest"
    dedupe_by_email: bool = True
    sql_upsert_strategy: Literal["on_conflict", "update_then_insert"] = "on_conflict"
    storage_timeout_seconds: float = 8.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                v = json.loads(v)
            else:
                v = v.split(",")
        return [str(o).strip().rstrip("/") for o in v if str(o).strip()]

    @field_validator("supabase_url", mode="before")
    @classmethod
    def strip_supabase_url(cls, v):
        return str(v or "").strip().rstrip("/")

    @field_validator("supabase_service_key", "webhook_secret", mode="before")
    @classmethod
    def strip_secret(cls, v):
        return str(v or "").strip()

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v):
        url = str(v or "").strip()
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url

    @property
    def rest_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def sql_configured(self) -> bool:
        return bool(self.database_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
