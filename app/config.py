"""Application settings loaded from environment variables."""
from typing import List
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Caminho absoluto para o ficheiro .env
ENV_FILE = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    # Application
    app_name: str = "Estate-Listings"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    # Database
    database_url: str

    # Identity provider (token verification only, issuance lives elsewhere)
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # Object storage
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "properties"
    upload_tmp_dir: str = ""

    # Search
    default_near_distance_m: float = 10_000.0
    default_page_size: int = 10
    max_page_size: int = 100
    max_nearby_results: int = 200

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError('database_url must use async driver')
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("default_near_distance_m")
    @classmethod
    def validate_near_distance(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("default_near_distance_m must be positive")
        return v

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "dev-secret-change-me":
            import warnings
            warnings.warn(
                "JWT_SECRET not configured, using the development default.",
                stacklevel=2,
            )
        return v

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name.strip()
            and self.cloudinary_api_key.strip()
            and self.cloudinary_api_secret.strip()
        )


settings = Settings()
