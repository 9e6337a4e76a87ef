"""Application settings and configuration helpers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(default="Daejeon Tour Admin", description="Human-readable service name.")
    environment: str = Field(default="local", description="Deployment environment identifier.")
    log_level: str = Field(default="INFO", description="Application log level.")

    database_path: Path = Field(
        default=Path("../db/tourdesk.db"),
        description="SQLite file holding synced catalog records.",
    )

    tourapi_service_key: str | None = Field(
        default=None,
        description="data.go.kr service key shared by the Korean and English catalogs.",
    )
    tourapi_base_url: str = Field(
        default="https://apis.data.go.kr/B551011/KorService2",
        description="Korean TourAPI service root.",
    )
    tourapi_en_base_url: str = Field(
        default="https://apis.data.go.kr/B551011/EngService2",
        description="English TourAPI service root.",
    )
    tourapi_area_code: str = Field(default="3", description="TourAPI area code (3 = Daejeon).")
    tourapi_mobile_app: str = Field(default="LetsGoDaejeon", description="MobileApp query parameter.")
    tourapi_timeout_sec: float = Field(default=20.0, ge=1.0, description="Per-request timeout.")
    request_interval_sec: float = Field(
        default=0.2,
        ge=0.0,
        description="Minimum interval (seconds) between upstream catalog calls.",
    )

    sync_page_size: int = Field(default=100, ge=1, le=1000, description="Rows requested per catalog page.")
    upsert_batch_size: int = Field(default=100, ge=1, description="Rows written per upsert statement batch.")

    english_equivalences_path: Path | None = Field(
        default=None,
        description="Optional JSON file mapping Korean titles to English titles or content ids.",
    )

    openrouter_api_key: str | None = Field(
        default=None,
        description="Optional OpenRouter API key for AI descriptions.",
    )
    openrouter_model: str = Field(
        default="minimax/minimax-m2:free",
        description="OpenRouter model identifier.",
    )
    openrouter_referer: str | None = Field(
        default=None,
        description="Referer header required by OpenRouter (your app URL).",
    )
    openrouter_title: str | None = Field(
        default="Daejeon Tour Admin",
        description="Title header sent to OpenRouter.",
    )

    frontend_origin: AnyHttpUrl | None = Field(
        default=None,
        description="Allowed admin frontend origin (CORS). If omitted, defaults to localhost dev server.",
    )
    additional_origins: List[AnyHttpUrl] = Field(
        default_factory=list,
        description="Additional allowed CORS origins.",
    )

    @property
    def cors_origins(self) -> list[str]:
        """Return the full list of allowed CORS origins."""

        origins: list[str] = []

        if self.frontend_origin:
            origins.append(str(self.frontend_origin).rstrip("/"))
        else:
            origins.extend([
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            ])

        for origin in self.additional_origins:
            origins.append(str(origin).rstrip("/"))

        # Deduplicate while preserving order
        return list(dict.fromkeys(origins))

    @property
    def openrouter_enabled(self) -> bool:
        return bool(self.openrouter_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
