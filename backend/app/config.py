from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Patient Records Microservice"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_PREFIX: str = ""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Supabase (auth + relational store)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    BACKEND_TIMEOUT_SECONDS: float = 10.0

    # Tables
    PROFILES_TABLE: str = "profiles"
    MEDICAL_RECORDS_TABLE: str = "medical_records"

    # Encryption
    ENCRYPTION_MASTER_KEY: str = "dev-master-key-change-in-production"

    @field_validator("SUPABASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
