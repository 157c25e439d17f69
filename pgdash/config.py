from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "PG Dash Access Core"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./pgdash.db"
    store_timeout_seconds: float = 5.0
    store_retry_attempts: int = 2

    # Session settings
    session_cookie_name: str = "pg_dash_session"
    session_ttl_days: int = 7

    # Credential settings
    bcrypt_rounds: int = 12
    allow_legacy_plaintext: bool = True

    # Access control settings
    admin_role_aliases: list[str] = ["ADMIN", "Administrador"]
    default_role_name: str = "CLIENTE"
    strict_permission_ids: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = False

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
