"""Application settings"""
import sys
from functools import lru_cache
from typing import ClassVar, cast

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _running_tests() -> bool:
    return "pytest" in sys.modules


class Settings(BaseSettings):
    """Application settings"""
    # app
    app_name: str = "CampusBoard"
    debug: bool = Field(default_factory=_running_tests)
    log_level: str = "INFO"
    log_dir: str = "logs"

    # database
    database_url: str = "sqlite+aiosqlite:///./data/campusboard.db"

    # JWT
    secret_key: str = Field(
        default="your-super-secret-key-change-in-production",
        validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET_KEY"),
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    cors_allow_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    cors_allow_credentials: bool = False

    # object storage
    storage_provider: str = "local"
    storage_local_dir: str = "./uploads"
    storage_public_base_url: str = "/api/upload"
    storage_s3_bucket: str = ""
    storage_s3_endpoint_url: str | None = None
    storage_s3_region: str | None = None
    storage_s3_access_key_id: str | None = None
    storage_s3_secret_access_key: str | None = None
    storage_s3_prefix: str = "uploads"
    storage_signed_url_expire_seconds: int = 3600
    anonymous_avatar_ref: str = "user/anonymous-avatar.png"
    default_avatar_ref: str = "user/avatar-1.png"

    # reports
    report_strict_transitions: bool = True
    report_code_max_retries: int = 3

    model_config: ClassVar[SettingsConfigDict] = cast(
        SettingsConfigDict,
        cast(
            object,
            {
                "env_file": None if _running_tests() else ".env",
                "extra": "ignore",
            },
        ),
    )

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_cors_allow_origins(cls, value: object):
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",")]
            return [p for p in parts if p]
        return value

    @field_validator("debug", mode="before")
    @classmethod
    def _parse_debug(cls, value: object):
        if value is None:
            return bool(_running_tests())
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if not s:
                return bool(_running_tests())
            if s in {"1", "true", "yes", "y", "on"}:
                return True
            if s in {"0", "false", "no", "n", "off"}:
                return False
            return True
        return bool(_running_tests())

    @model_validator(mode="after")
    def _validate_security(self):
        if _running_tests():
            return self
        insecure_defaults = {
            "your-super-secret-key-change-in-production",
            "your-secret-key-here",
        }
        if not self.debug:
            if self.secret_key in insecure_defaults or len(self.secret_key) < 32:
                raise ValueError("SECRET_KEY must be set to a secure value when DEBUG is False")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance"""
    return Settings()
