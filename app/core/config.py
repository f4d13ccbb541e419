"""Application configuration settings."""

from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "AgriConnect API"
    app_env: str = "development"
    debug: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./agriconnect.db"

    # JWT Authentication (access and refresh tokens use independent keys)
    jwt_access_secret: str = "change-me-access-secret"
    jwt_refresh_secret: str = "change-me-refresh-secret"
    jwt_algorithm: str = "HS256"
    jwt_access_expiry: str = "15m"
    jwt_refresh_expiry: str = "7d"

    # Refresh token cookie
    refresh_cookie_name: str = "refreshToken"
    refresh_cookie_path: str = "/"

    # OTP
    otp_step_seconds: int = 60
    otp_window_minutes: int = 5
    otp_look_ahead_steps: int = 0

    # Login / registration policies
    require_verified_for_login: bool = False
    require_telegram_link_for_login: bool = True
    duplicate_user_policy: Literal["mobile", "mobile_or_email"] = "mobile_or_email"
    mobile_otp_channel: Literal["telegram", "sms"] = "telegram"

    # Telegram bot
    telegram_bot_token: str = ""
    telegram_bot_username: str = "AgriConnectBot"
    telegram_api_base: str = "https://api.telegram.org"
    telegram_webhook_secret: str = ""

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@agriconnect.local"
    smtp_from_name: str = "AgriConnect"
    smtp_use_tls: bool = True

    # Outbound delivery calls
    delivery_timeout_seconds: float = 15.0

    # CORS
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Security
    allowed_hosts: str = "*"
    # Read client IPs from X-Forwarded-For / X-Real-IP (only behind a proxy)
    trust_proxy_headers: bool = False

    # Periodic purge of expired refresh tokens and idle rate-limit keys (0 disables)
    housekeeping_interval_seconds: int = 3600

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.is_production

    @property
    def cookie_samesite(self) -> str:
        return "strict" if self.is_production else "lax"

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token)

    def telegram_bot_link(self, user_id: str) -> str:
        """Deep link that starts the bot with the user's id as payload."""
        return f"https://t.me/{self.telegram_bot_username}?start={user_id}"

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Get allowed hosts as a list."""
        return [host.strip() for host in self.allowed_hosts.split(",")]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
