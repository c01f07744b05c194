from typing import Any
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: Any = ["http://localhost:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            if v.startswith("[") and v.endswith("]"):
                import json

                try:
                    return json.loads(v)
                except ValueError:
                    pass
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        return ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    # Database: either DATABASE_URL, or the POSTGRES_* parts when POSTGRES_HOST is set
    DATABASE_URL: str = "sqlite+aiosqlite:///./dealflow.db"

    POSTGRES_HOST: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "dealflow"

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Workflow engine
    ACTION_TIMEOUT_SECONDS: float = 10.0
    STATUS_CHANGE_NOTIFICATIONS: bool = True

    @field_validator("ACTION_TIMEOUT_SECONDS")
    @classmethod
    def check_action_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("ACTION_TIMEOUT_SECONDS must be positive")
        return v

    @property
    def effective_database_url(self) -> str:
        """Return the database URL to connect with.

        POSTGRES_HOST takes precedence over DATABASE_URL when set.
        """
        if self.POSTGRES_HOST:
            return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        return self.DATABASE_URL


settings = Settings()
