from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./rentledger.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|gateway
    dev_header_org_slug: str = "X-Org-Slug"
    dev_header_user_id: str = "X-User-Id"
    dev_header_user_email: str = "X-User-Email"

    # ---- Billing calendar ----
    rent_due_day: int = 5
    penalty_day: int = 25
    penalty_score: int = 60

    # ---- Invoice upsert ----
    invoice_upsert_max_attempts: int = 6

    # ---- Statements ----
    statement_invoice_limit: int = 48
    statement_payment_limit: int = 120

    # ---- Prepayments ----
    prepayment_amount_tolerance: float = 0.05  # +/- 5% of expected rent

    # ---- Notifications ----
    notifications_enabled: bool = True
    sms_sender_tag: str = "RES"
    currency: str = "KES"

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if not 1 <= int(self.rent_due_day) <= 28:
            raise ValueError("rent_due_day must be between 1 and 28")
        if int(self.invoice_upsert_max_attempts) < 1:
            raise ValueError("invoice_upsert_max_attempts must be >= 1")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
