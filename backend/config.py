"""
Configuration management for the studio storefront backend.

Loads settings from .env via pydantic-settings.

Security notes:
    - Merchant credentials are handed to the Hyp client as an explicit
      HypCredentials value, never read from the environment by the client.
    - validate_production_settings() refuses unsafe combinations in production.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    shop_name: str = "OmerAviv"
    app_base_url: str = "http://localhost:5173"

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Hyp hosted payment page ─────────────────────────────────────
    hyp_base_url: str = "https://pay.hyp.co.il/p/"
    hyp_masof: str = ""
    hyp_passp: str = ""
    hyp_key: str = ""
    hyp_success_path: str = "/payment/success"
    hyp_failure_path: str = "/payment/failure"
    hyp_cancel_path: str = "/payment/cancel"
    hyp_page_lang: str = "HEB"
    hyp_coin: int = 1                     # 1 = ILS
    hyp_max_installments: int | None = None
    hyp_send_invoice: bool = False        # SendHesh
    hyp_send_email: bool = False          # sendemail
    hyp_itemized: bool = False            # Pritim
    hyp_timeout_seconds: float = 15.0

    # ── Outbound mail ───────────────────────────────────────────────
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    admin_email: str = ""

    # ── Guards ──────────────────────────────────────────────────────
    dev_secret: str = ""
    admin_api_key: str = ""
    checkout_rate_limit: int = 10
    checkout_rate_window_seconds: int = 60

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def smtp_uses_ssl(self) -> bool:
        """Implicit TLS when explicitly requested or on the SMTPS port."""
        return self.smtp_secure or self.smtp_port == 465

    @property
    def mail_sender(self) -> str:
        return self.smtp_from or self.smtp_user or self.admin_email

    @property
    def dev_routes_enabled(self) -> bool:
        return bool(self.dev_secret) and self.environment != "production"

    def hyp_credentials(self):
        """Merchant credentials for the Hyp client."""
        from services.hyp_client import HypCredentials

        return HypCredentials(
            base_url=self.hyp_base_url,
            masof=self.hyp_masof,
            passp=self.hyp_passp,
            key=self.hyp_key,
        )

    def hyp_options(self):
        """Gateway behavior flags applied to every sign request."""
        from services.hyp_client import HypOptions

        return HypOptions(
            page_lang=self.hyp_page_lang,
            more_data=True,
            max_installments=self.hyp_max_installments,
            send_invoice=self.hyp_send_invoice,
            send_email=self.hyp_send_email,
            itemized=self.hyp_itemized,
        )

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            missing = [
                name for name, value in (
                    ("HYP_MASOF", self.hyp_masof),
                    ("HYP_PASSP", self.hyp_passp),
                    ("HYP_KEY", self.hyp_key),
                )
                if not value
            ]
            if missing:
                raise ValueError(
                    f"Gateway credentials missing in production: {', '.join(missing)}"
                )
            if self.dev_secret:
                raise ValueError(
                    "DEV_SECRET must be empty in production. "
                    "It enables the manual mark-paid endpoint."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if self.dev_secret:
                warnings.append("DEV_SECRET set (manual mark-paid endpoint enabled)")
            if not self.hyp_masof:
                warnings.append("HYP_MASOF not set (checkout will fail at the gateway)")
            if not self.admin_email:
                warnings.append("ADMIN_EMAIL not set (admin order mails will be recorded as errors)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(w)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency — the process-wide settings (overridable in tests)."""
    return settings
