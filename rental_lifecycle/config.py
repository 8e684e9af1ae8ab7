"""Configuration management using Pydantic Settings"""

from datetime import datetime
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Transaction store (marketplace integration API)
    store_api_base: str = "http://localhost:8001"
    store_client_id: str = ""
    store_client_secret: str = ""
    store_page_size: int = 100
    store_max_pages: int = 20
    store_seed_path: Optional[str] = None  # use an in-memory store seeded from this file

    # SMS (Twilio REST API)
    twilio_api_base: str = "https://api.twilio.com"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_messaging_service_sid: str = ""
    twilio_from_number: str = ""
    sms_status_callback_url: str = ""
    sms_simulate: bool = False

    # Link shortener
    shortener_api_base: str = ""
    shortener_api_key: str = ""
    app_host: str = ""  # fallback return page links: {app_host}/return/{tx_id}

    # Calendar
    business_timezone: str = "America/Los_Angeles"
    holiday_calendar_path: Optional[str] = None
    calendar_warn_days: int = 60

    # Charges
    late_fee_cents: int = 1500  # $15/day
    currency: str = "USD"
    replacement_policy: Literal["manual", "automatic"] = "manual"
    replacement_threshold_days: int = 5

    # Messages
    brand_name: str = "Sherbrt"
    max_message_length: int = 300

    # Batch controls (CLI flags take precedence)
    dry_run: bool = False
    verbose: bool = False
    only_phone: Optional[str] = None
    force_now: Optional[datetime] = None
    send_limit: int = 0  # 0 = unlimited

    # Daemon
    return_interval_seconds: float = 900.0
    shipping_interval_seconds: float = 900.0
    overdue_interval_seconds: float = 86400.0
    ops_port: Optional[int] = None

    # Service
    service_name: str = "rental-lifecycle"
    log_level: str = "INFO"

    # HTTP client
    http_timeout_seconds: float = 10.0


settings = Settings()
