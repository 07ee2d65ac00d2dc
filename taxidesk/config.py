# taxidesk/config.py
from decimal import Decimal

from pydantic_settings import BaseSettings
from pydantic import computed_field


class Settings(BaseSettings):
    # Any SQLAlchemy URL; managed Postgres in production
    database_url: str = "sqlite:///./taxidesk.db"

    # App secrets
    secret_key: str | None = None  # Primary secret
    session_secret: str | None = None  # Optional legacy/alt secret

    log_level: str = "INFO"
    currency_symbol: str = "₹"

    # Phone sign-in
    otp_length: int = 6
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 5
    sms_backend: str = "console"  # only "console" ships; it logs the code

    # Invoices
    gst_rate: Decimal = Decimal("0.18")
    company_name: str = "BSH Taxi Services"
    company_address: str = "Visakhapatnam, Andhra Pradesh"
    company_phone: str = ""
    bank_account_holder: str = ""
    bank_name: str = ""
    bank_branch: str = ""
    bank_account_number: str = ""
    bank_ifsc: str = ""

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def session_key(self) -> str:
        """
        Unified session secret.
        - If SECRET_KEY is set, use it.
        - Otherwise fall back to SESSION_SECRET.
        - If neither is set, fall back to a dev default.
        """
        return (
            self.secret_key
            or self.session_secret
            or "dev-secret-change-me"
        )

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
