from functools import lru_cache
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_allowed_origins(v: Any) -> List[str]:
    """Empty means no cross-origin access; "*" has to be set explicitly."""
    if v is None:
        return []
    if isinstance(v, list):
        return [x.strip() for x in v if isinstance(x, str) and x.strip()]
    s = str(v).strip()
    if not s:
        return []
    if s.startswith("["):
        import json
        out = json.loads(s)
        return [x.strip() for x in out if isinstance(x, str) and x.strip()]
    return [x.strip() for x in s.split(",") if x.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Razorpay
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")
    order_currency: str = Field(default="INR", alias="ORDER_CURRENCY")

    # Pending order cache
    order_cache_backend: Literal["memory", "redis"] = Field(default="memory", alias="ORDER_CACHE_BACKEND")
    order_ttl_seconds: int = Field(default=24 * 3600, alias="ORDER_TTL_SECONDS")

    # Redis (order cache, arq notification queue)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Policy store
    policy_store_backend: Literal["memory", "mongo"] = Field(default="memory", alias="POLICY_STORE_BACKEND")
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="stshield", alias="MONGODB_DB_NAME")

    # Email (Brevo)
    brevo_api_key: str = Field(default="", alias="BREVO_API_KEY")
    brevo_api_url: str = Field(default="https://api.brevo.com/v3/smtp/email", alias="BREVO_API_URL")
    sender_email: str = Field(default="", alias="SENDER_EMAIL")
    company_email: str = Field(default="", alias="COMPANY_EMAIL")
    email_max_attempts: int = Field(default=3, alias="EMAIL_MAX_ATTEMPTS")
    email_timeout_seconds: float = Field(default=10.0, alias="EMAIL_TIMEOUT_SECONDS")

    # Notification queue: "local" runs jobs as asyncio tasks, "arq" hands them to the worker
    notification_backend: Literal["local", "arq"] = Field(default="local", alias="NOTIFICATION_BACKEND")

    # Storage (exported files)
    storage_backend: str = Field(default="local", alias="STORAGE_BACKEND")
    storage_local_path: str = Field(default="./exports_data", alias="STORAGE_LOCAL_PATH")
    gcs_bucket_name: str | None = Field(default=None, alias="GCS_BUCKET_NAME")

    # Admin endpoints (exports)
    admin_api_key: str = Field(default="", alias="ADMIN_API_KEY")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    allowed_origins_raw: str = Field(
        default="",
        alias="ALLOWED_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def allowed_origins(self) -> List[str]:
        return _parse_allowed_origins(getattr(self, "allowed_origins_raw", None))

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
