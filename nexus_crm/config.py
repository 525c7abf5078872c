"""Nexus CRM configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class NexusSettings(BaseSettings):
    environment: str = "development"
    local_database_url: str = "sqlite:///data/nexus_local.db"
    echo_sql: bool = False

    # Remote store (PostgREST-compatible, e.g. Supabase)
    remote_url: str = ""
    remote_anon_key: str = ""
    remote_timeout_seconds: float = 5.0
    audit_pull_limit: int = 100
    # Comma-separated emails whose sessions see every tenant.
    super_admin_emails: str = ""

    session_dir: str = "~/.nexus"

    # Notifications
    push_alerts_enabled: bool = False
    toast_ttl_seconds: float = 5.0

    # Local messaging bridge (WhatsApp / SMTP relay)
    bridge_proxy_url: str = "http://localhost:5173/api-bridge"
    bridge_direct_url: str = "http://127.0.0.1:3001"
    bridge_timeout_seconds: float = 3.0
    bridge_direct_timeout_seconds: float = 2.0

    webhook_timeout_seconds: float = 10.0

    # Bulk dispatch pacing: random gap between consecutive sends.
    dispatch_min_delay_seconds: float = 120.0
    dispatch_max_delay_seconds: float = 420.0
    dispatch_poll_interval_seconds: float = 1.0

    churn_risk_health_threshold: int = 40

    model_config = {"env_prefix": "NEXUS_", "env_file": ".env", "extra": "ignore"}

    @property
    def session_path(self) -> Path:
        return Path(self.session_dir).expanduser() / "session.json"

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url and self.remote_anon_key)

    @property
    def super_admin_emails_set(self) -> set[str]:
        """Parse the comma-separated super admin list (case-insensitive)."""
        return {
            email.strip().lower()
            for email in self.super_admin_emails.split(",")
            if email.strip()
        }

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = NexusSettings()
