from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "S-Net Support"
    ENVIRONMENT: str = "development"
    API_V1_STR: str = "/api/v1"

    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Database - the Supabase Postgres URL in deployments, local SQLite otherwise
    DATABASE_URL: str = "sqlite+aiosqlite:///./snet_local.db"

    # Supabase (auth is delegated, we only verify the issued JWT)
    SUPABASE_URL: str = ""
    SUPABASE_JWT_SECRET: str = ""
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    STUDENT_EMAIL_DOMAIN: str = "mentalhealth.app"

    # AI
    GEMINI_API_KEY: str = ""
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_TIMEOUT: float = 15.0

    # Moderation / triage product knobs
    MODERATION_CONFIDENCE_THRESHOLD: float = 0.7
    TRIAGE_DELAY_SECONDS: float = 60.0
    TRIAGE_QUESTION_COUNT: int = 2
    TRIAGE_HISTORY_LIMIT: int = 20

    # Realtime fallback policy
    REALTIME_RECONNECT_DELAY: float = 5.0
    REALTIME_MAX_RECONNECT_ATTEMPTS: int = 5
    REALTIME_POLL_INTERVAL: float = 30.0

    TIMEZONE: str = "Asia/Ho_Chi_Minh"

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file="snet_config.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
