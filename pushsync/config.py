from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./pushsync.db"
    SECRET_KEY: str = "change-me-to-a-32-char-random-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Web Push (VAPID). Generate with: npx web-push generate-vapid-keys
    # Leave the public key empty to report push as unavailable to clients.
    VAPID_PRIVATE_KEY: str = ""
    VAPID_PUBLIC_KEY: str = ""
    VAPID_CLAIMS_EMAIL: str = "mailto:admin@localhost"
    PUSH_TTL_SECONDS: int = 60 * 60 * 24
    # Consecutive non-410 delivery failures before a device is deactivated
    PUSH_MAX_FAILURES: int = 5

    # SMTP: optional email channel. Empty SMTP_HOST disables email delivery.
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_TLS: bool = True
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "noreply@localhost"

    # Client side: registry location and request timeout
    REGISTRY_URL: str = "http://localhost:8000/api"
    REGISTRY_TIMEOUT: float = 10.0
    FEED_PAGE_SIZE: int = 20

    # Client key-value storage. Empty REDIS_URL keeps state in memory only.
    REDIS_URL: str = ""
    STORAGE_PREFIX: str = "pushsync"

    model_config = {"env_file": ".env"}


settings = Settings()
