import os

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .secrets import fetch_vault_secret

load_dotenv(".env")


def _default_db_url() -> str:
    env_url = os.getenv("APP_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_url:
        return env_url

    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db_name = os.getenv("POSTGRES_DB", "registry")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db_name}"


class Settings(BaseSettings):
    app_name: str = "Library Catalog & Asset Registry API"
    version: str = "1.0.0"
    google_credentials: str | None = Field(
        default=None,
        validation_alias=AliasChoices("APP_GOOGLE_CREDENTIALS", "GOOGLE_CREDENTIALS"),
    )
    spreadsheet_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("APP_SPREADSHEET_ID", "SPREADSHEET_ID"),
    )
    sheet_index: int = 1
    database_url: str = Field(default_factory=_default_db_url)
    cors_origins: str = "*"
    host: str = "0.0.0.0"
    port: int = 5000
    otel_enabled: bool = True
    vault_addr: str | None = None
    vault_token: str | None = None
    vault_kv_mount: str = "kv"
    vault_secret_path: str = "registry-api/config"

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    settings = Settings()
    if settings.vault_addr and settings.vault_token:
        secret = fetch_vault_secret(
            addr=settings.vault_addr,
            token=settings.vault_token,
            mount=settings.vault_kv_mount,
            path=settings.vault_secret_path,
        )
        if secret.get("google_credentials"):
            settings.google_credentials = secret["google_credentials"]
        if secret.get("spreadsheet_id"):
            settings.spreadsheet_id = secret["spreadsheet_id"]
        if secret.get("database_url"):
            settings.database_url = secret["database_url"]
    return settings
