"""
Story unlock API configuration, shared by the web app, the Celery worker and Alembic.
Values come from the environment or .env; env.example lists every variable.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Database, Redis/Celery, end-user JWT, catalog and Midtrans credentials, purchase policy.

    Secrets (database URL, JWT key, catalog token, Midtrans server key) have no defaults.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma separated (e.g. http://localhost:5173,https://fotoyou.app). Empty = default list in main.py.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    database_pool_size: int = 10
    database_statement_timeout_ms: int = 5000

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # AUTH (bearer tokens issued by the identity service)
    # ===========================================
    jwt_secret_key: str  # Required, no default
    jwt_algorithm: str = "HS256"

    # ===========================================
    # STORY CATALOG (Dicoding Story API)
    # ===========================================
    catalog_api_base: str = "https://story-api.dicoding.dev/v1"
    catalog_api_token: str  # Service credential, not the end user's token
    catalog_timeout: float = 10.0

    # ===========================================
    # PAYMENT GATEWAY (Midtrans Snap)
    # ===========================================
    midtrans_server_key: str  # Required, no default
    midtrans_client_key: str = ""
    midtrans_is_production: bool = False
    payment_gateway_timeout: float = 15.0
    # Public URL of POST /api/payment/notification. Empty = use the URL from the Midtrans dashboard.
    payment_notification_url: str = ""

    # ===========================================
    # PURCHASES
    # ===========================================
    order_id_prefix: str = "FOTOYOU"
    # Compare client amount with the catalog price when the catalog exposes one
    purchase_verify_price: bool = True
    purchase_rate_limit: int = 5  # max initiate attempts per window
    purchase_rate_window_seconds: int = 60
    # Reconciliation of PENDING purchases that never got a webhook
    purchase_reconcile_after_minutes: int = 30
    purchase_reconcile_interval_minutes: int = 15
    purchase_reconcile_batch: int = 100
    purchase_abandon_hours: int = 24

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("order_id_prefix")
    @classmethod
    def validate_order_id_prefix(cls, v: str) -> str:
        """Midtrans order_id allows only alphanumerics, '-', '_', '~' and '.'."""
        v = v.strip()
        if not v or any(not (c.isalnum() or c in "-_~.") for c in v):
            raise ValueError("order_id_prefix must be non-empty and contain only [A-Za-z0-9-_~.]")
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Ensure JWT secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("jwt_secret_key must be at least 16 characters")
        if v in ("changeme", "secret", "password"):
            raise ValueError("jwt_secret_key is too weak, please change it")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def midtrans_snap_base(self) -> str:
        if self.midtrans_is_production:
            return "https://app.midtrans.com"
        return "https://app.sandbox.midtrans.com"

    @property
    def midtrans_api_base(self) -> str:
        if self.midtrans_is_production:
            return "https://api.midtrans.com"
        return "https://api.sandbox.midtrans.com"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
