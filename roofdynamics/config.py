"""Application configuration using Pydantic Settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./roofdynamics.db"
    DATABASE_READY_TIMEOUT: int = 60

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.2
    OPENAI_MAX_TOKENS: int = 4000
    OPENAI_TIMEOUT: float = 120.0

    # Imagery (placeholder source)
    IMAGERY_PLACEHOLDER_URL: str = (
        "https://via.placeholder.com/800x600/4a5568/ffffff?text=Satellite+Image"
    )

    # Artifact storage
    ARTIFACT_BACKEND: str = "local"  # 'local' or 'supabase'
    ARTIFACT_DIR: str = "./artifacts"
    ARTIFACT_BASE_URL: str = "http://localhost:8000/artifacts"
    ARTIFACT_BUCKET: str = "reports"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # Stage transport and dispatch
    STAGE_TRANSPORT: str = "local"  # 'local' or 'http'
    FUNCTIONS_BASE_URL: str = "http://localhost:8000"
    PIPELINE_DISPATCH: str = "worker"  # 'worker' or 'inline'

    # Worker
    WORKER_POLL_INTERVAL: int = 5

    # Dashboard
    HISTORY_LIMIT: int = 10
    POLL_INTERVAL: float = 2.0
    POLL_TIMEOUT: float = 300.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
