from pydantic import AliasChoices, AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", "../.env"), extra="ignore")

    # Supabase project: database, and verification of its access tokens.
    supabase_url: AnyUrl | None = None
    supabase_db_url: AnyUrl | None = None
    supabase_jwks_url: AnyUrl | None = None
    supabase_jwt_issuer: str | None = None
    # Legacy projects sign access tokens with a shared HS256 secret.
    supabase_jwt_secret: str | None = None
    supabase_jwt_audience: str | None = "authenticated"

    database_url: AnyUrl | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60

    stripe_secret_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STRIPE_SECRET_KEY", "STRIPE_TEST_SECRET_KEY"),
    )
    stripe_api_version: str | None = "2025-08-27.basil"
    stripe_price_monthly: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STRIPE_PRICE_MONTHLY", "CTE_PRICE_MONTHLY"),
    )
    stripe_price_annual: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STRIPE_PRICE_ANNUAL", "STRIPE_PRICE_YEARLY", "CTE_PRICE_ANNUAL"),
    )

    frontend_base_url: str | None = "http://localhost:5173"
    checkout_success_url: str | None = None
    checkout_cancel_url: str | None = None
    portal_return_url: str | None = None

    admin_customers_default_limit: int = Field(default=50, ge=1, le=100)
    admin_customer_charges_limit: int = Field(default=10, ge=1, le=100)
    admin_orders_limit: int = Field(default=100, ge=1, le=500)

    # Backend functions are called straight from the browser of any deployment.
    cors_allow_origins: list[str] = ["*"]
    cors_allow_origin_regex: str | None = None

    sentry_dsn: str | None = Field(
        default=None, validation_alias=AliasChoices("SENTRY_DSN", "BACKEND_SENTRY_DSN")
    )
    sentry_traces_sample_rate: float = 0.0
    log_level: str = "INFO"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _require_database(self):
        if self.database_url is None:
            if self.supabase_db_url is None:
                raise ValueError("DATABASE_URL or SUPABASE_DB_URL is required")
            self.database_url = self.supabase_db_url
        return self

    def _supabase_auth_base(self) -> str | None:
        if self.supabase_url is None:
            return None
        return f"{self.supabase_url.unicode_string().rstrip('/')}/auth/v1"

    @property
    def supabase_jwks_endpoint(self) -> str | None:
        if self.supabase_jwks_url:
            return str(self.supabase_jwks_url)
        base = self._supabase_auth_base()
        return f"{base}/.well-known/jwks.json" if base else None

    @property
    def supabase_token_issuer(self) -> str | None:
        return self.supabase_jwt_issuer or self._supabase_auth_base()


settings = Settings()
