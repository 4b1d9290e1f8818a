from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_DB_URL: str
    SUPABASE_ANON_KEY: str | None = None

    # Redis settings
    UPSTASH_REDIS_REST_URL: str
    UPSTASH_REDIS_REST_TOKEN: str

    # Stripe settings
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_PAYMENT_LINK_URL: str = "https://buy.stripe.com/test_3cI5kF6Ns9rM0fY8fAbQY00"
    STRIPE_EVENT_REPLAY_TTL_SECONDS: int = 7 * 24 * 3600

    # Credits
    CREDITS_PER_PURCHASE: int = 100
    SUBSCRIPTION_PLAN_NAME: str = "$20/month Plan"

    # Tool execution
    TOOL_WEBHOOK_TIMEOUT_SECONDS: float = 300.0
    EXECUTION_ESTIMATE_SAMPLE_SIZE: int = 10

    # Contacts
    CONTACT_SEARCH_DEBOUNCE_SECONDS: float = 0.4
    IMPORT_PREVIEW_ROWS: int = 5
    IMPORT_MAX_FILE_BYTES: int = 10 * 1024 * 1024

    # CORS (the SPA origin)
    CORS_ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:8080"]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_FAIL_OPEN: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_USER_PER_MINUTE: int = 120
    RATE_LIMIT_IP_PER_MINUTE: int = 300
    RATE_LIMIT_EXECUTIONS_PER_MINUTE: int = 10

    # Proxy handling
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def project_ref(self) -> str | None:
        """
        Extract the Supabase project ref from SUPABASE_URL host, e.g.
        https://ykvceus...supabase.co -> ykvceus...
        """
        try:
            host = urlparse(self.SUPABASE_URL).hostname or ""
            return host.split(".")[0]
        except Exception:
            return None

    def get_rate_limits(self) -> dict:
        return {
            "user_per_minute": self.RATE_LIMIT_USER_PER_MINUTE,
            "ip_per_minute": self.RATE_LIMIT_IP_PER_MINUTE,
            "executions_per_minute": self.RATE_LIMIT_EXECUTIONS_PER_MINUTE,
        }

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 2,
                    "max_size": 6,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
