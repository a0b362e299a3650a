from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

PAYSTACK_BASE_URL = "https://api.paystack.co"


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (and `.env`) once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Gateway
    PAYSTACK_SECRET_KEY: Optional[str] = None
    PAYSTACK_BASE_URL: str = PAYSTACK_BASE_URL
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Payment record store: "sql" uses DATABASE_URL, "rest" uses the hosted data API
    STORE_BACKEND: Literal["sql", "rest"] = "sql"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    DATABASE_URL: Optional[str] = None

    # App
    APP_SECRET_KEY: str = "dev-secret-change-this"
    CORS_ALLOWED: str = ""
    ADMIN_USER: str = "admin"
    ADMIN_PASSWORD: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOWED.split(",") if o.strip()]

    def missing(self) -> List[str]:
        """Names of credentials the payment handlers need but are not set."""
        names = []
        if not self.PAYSTACK_SECRET_KEY:
            names.append("PAYSTACK_SECRET_KEY")
        if self.STORE_BACKEND == "rest":
            if not self.SUPABASE_URL:
                names.append("SUPABASE_URL")
            if not self.SUPABASE_SERVICE_ROLE_KEY:
                names.append("SUPABASE_SERVICE_ROLE_KEY")
        return names

    def require_gateway(self) -> str:
        if not self.PAYSTACK_SECRET_KEY:
            raise ConfigurationError(
                "Paystack API key not configured. Please add PAYSTACK_SECRET_KEY."
            )
        return self.PAYSTACK_SECRET_KEY

    def require_store(self) -> None:
        if self.STORE_BACKEND != "rest":
            return
        if not self.SUPABASE_URL or not self.SUPABASE_SERVICE_ROLE_KEY:
            raise ConfigurationError(
                "Payment store not configured. Please add SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )


# one instance per process; the app, the engine and request handlers all read this
settings = Settings()
