"""Server settings, overridable through DIAGRAM_EDITOR_SERVER_* environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DIAGRAM_EDITOR_SERVER_", extra="ignore")

    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
