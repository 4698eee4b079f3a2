from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Encryption for stored provider credentials (comma-separated for key rotation, newest first)
    fernet_key: str = ""

    # LLM request timeouts (milliseconds)
    llm_request_timeout_ms: int = 30_000  # primary endpoint kinds
    llm_fallback_default_timeout_ms: int = 60_000  # /completions, /responses

    # App
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs
    log_payloads: bool = False  # outbound request bodies can carry prompts; opt-in only

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not settings.fernet_key:
        errors.append(
            'FERNET_KEY must be set (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")'
        )

    if settings.llm_request_timeout_ms <= 0:
        errors.append("LLM_REQUEST_TIMEOUT_MS must be a positive number of milliseconds")

    if settings.llm_fallback_default_timeout_ms <= 0:
        errors.append("LLM_FALLBACK_DEFAULT_TIMEOUT_MS must be a positive number of milliseconds")

    if settings.app_env == "production" and settings.log_payloads:
        errors.append("LOG_PAYLOADS must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
