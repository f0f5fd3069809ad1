# app/core/settings.py
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    api_title: str = Field(default="Portfolio API", alias="API_TITLE")
    port: int = Field(default=5000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Comma separated; the deployment URLs below are always allowed too
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")
    client_url: str = Field(default="https://subash-s-66.github.io/Subash-Portfolio", alias="CLIENT_URL")
    zeabur_url: str = Field(default="https://subash-portfolio.zeabur.app", alias="ZEABUR_URL")
    github_pages_url: str = Field(default="https://subash-s-66.github.io", alias="GITHUB_PAGES_URL")
    # Separately hosted API the front-end talks to, if any
    api_url: Optional[str] = Field(default=None, alias="API_URL")
    # Extra style/script hosts for the Content-Security-Policy, comma separated
    csp_extra_sources: str = Field(default="", alias="CSP_EXTRA_SOURCES")
    # Honour X-Forwarded-For when behind a single reverse proxy
    trust_proxy: bool = Field(default=True, alias="TRUST_PROXY")

    # SMTP transport, active only when host, user and password are all set
    email_host: Optional[str] = Field(default=None, alias="EMAIL_HOST")
    email_port: int = Field(default=587, alias="EMAIL_PORT")
    email_user: Optional[str] = Field(default=None, alias="EMAIL_USER")
    email_password: Optional[str] = Field(default=None, alias="EMAIL_PASSWORD")
    email_from: Optional[str] = Field(default=None, alias="EMAIL_FROM")
    smtp_timeout: float = Field(default=60.0, alias="SMTP_TIMEOUT")

    # Resend API transport
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")
    resend_from: str = Field(default="Portfolio Contact <onboarding@resend.dev>", alias="RESEND_FROM")
    resend_api_url: str = Field(default="https://api.resend.com/emails", alias="RESEND_API_URL")
    resend_timeout: float = Field(default=30.0, alias="RESEND_TIMEOUT")

    notification_email: str = Field(
        default="subash.93450@gmail.com",
        validation_alias=AliasChoices("EMAIL_TO", "NOTIFICATION_EMAIL"),
    )
    display_timezone: str = Field(default="UTC", alias="DISPLAY_TIMEZONE")

    api_rate_limit: int = Field(default=100, alias="API_RATE_LIMIT")
    api_rate_window_seconds: int = Field(default=15 * 60, alias="API_RATE_WINDOW_SECONDS")
    contact_rate_limit: int = Field(default=5, alias="CONTACT_RATE_LIMIT")
    contact_rate_window_seconds: int = Field(default=15 * 60, alias="CONTACT_RATE_WINDOW_SECONDS")
    # Shared counters for the rate limiter; in-process counters when unset
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Built front-end; if unset we use <backend>/dist
    static_dir: Optional[str] = Field(default=None, alias="STATIC_DIR")
    # Android packages offered for download; if unset we use <project-root>/Android app
    apk_dir: Optional[str] = Field(default=None, alias="APK_DIR")

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.email_host and self.email_user and self.email_password)

    @property
    def allowed_origins(self) -> List[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        for url in (self.client_url, self.github_pages_url, self.zeabur_url):
            if url and url not in origins:
                origins.append(url)
        return origins

    @property
    def static_root(self) -> Path:
        return Path(self.static_dir).resolve() if self.static_dir else (BACKEND_DIR / "dist")

    @property
    def apk_root(self) -> Path:
        return Path(self.apk_dir).resolve() if self.apk_dir else (BACKEND_DIR.parent / "Android app")


settings = Settings()
