from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Desa Admin API"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./desa.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    log_level: str = "INFO"
    log_json: bool = False

    # Outgoing mail; when disabled, notifications are only logged
    mail_enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    mail_from: str = "noreply@desa.local"
    mail_from_name: str = "Sistem Informasi Desa"
    # Route every message to this inbox instead of the real recipient (staging)
    mail_redirect_to: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
