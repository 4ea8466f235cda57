# cosmicds/settings/config.py  (Pydantic v2)
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # ---------- Database ----------
    DATABASE_URL: Optional[str] = Field(default=None, env=["DATABASE_URL"])
    DB_ECHO: bool = Field(default=False, env=["DB_ECHO"])
    # Only create tables at startup in dev; prod goes through Alembic
    RUN_DB_CREATE_ALL: bool = Field(default=False, env=["RUN_DB_CREATE_ALL"])

    # ---------- Codes ----------
    # Ceiling for the check-then-insert retry loops (verification + classroom codes)
    CODE_MAX_ATTEMPTS: int = Field(default=20, env=["CODE_MAX_ATTEMPTS"])
    CLASS_CODE_LENGTH: int = Field(default=8, env=["CLASS_CODE_LENGTH"])
    VERIFICATION_CODE_BYTES: int = Field(default=16, env=["VERIFICATION_CODE_BYTES"])

    # ---------- Stories / galaxies ----------
    DEFAULT_STORY: str = Field(default="hubbles_law", env=["DEFAULT_STORY"])
    GALAXY_NAME_SUFFIX: str = Field(default=".fits", env=["GALAXY_NAME_SUFFIX"])

    # ---------- HTTP ----------
    CORS_ORIGINS: List[str] = Field(default=["*"], env=["CORS_ORIGINS"])
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", env=["LOG_LEVEL"])

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )


settings = Settings()
