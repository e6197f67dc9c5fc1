"""Deployment settings read from the environment."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Storage
    data_dir: str = ".transcriptq"
    resource_dir: str = "."

    # Transcription service
    service_base_url: str = "https://generativelanguage.googleapis.com/v1beta/batch"
    service_api_key: str = ""
    service_model: str = "gemini-2.5-flash"
    service_timeout_seconds: float = 60.0
    temperature: float = 0.1
    max_output_tokens: int = 8192

    # Notifications (outbox in the store when no SMTP host is set)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_sender: str = "transcriptq@localhost"
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True

    # Links to created transcripts in notifications
    artifact_base_url: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIPTQ_", env_file=".env", env_file_encoding="utf-8"
    )
