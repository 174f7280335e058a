"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

# --- Pagination defaults ---
# Module-level constants read at import time so FastAPI Query() defaults
# can reference them (Query defaults must be static at decoration time).
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))


def _split(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS — comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Catalogue directory (None → ProtocolCatalogue default, v1/ from repo root)
    catalogue_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Trusted proxy secret — when set, every request that carries
    # X-User-ID must also carry X-Proxy-Secret matching this value.
    trusted_proxy_secret: str | None = None

    # Users allowed to act with X-User-Role: admin.  Empty means the
    # gateway is trusted to set the role header.
    admin_user_ids: frozenset[str] = frozenset()

    # Notification delivery — unset URLs fall back to the logging sink
    notify_alert_url: str | None = None
    notify_email_url: str | None = None
    notify_timeout_seconds: float = 10.0


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*``, ``ADMIN_*`` and ``NOTIFY_*`` variables."""
    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=_split(os.getenv("SERVER_CORS_ORIGINS", "*")),
        catalogue_dir=os.getenv("SERVER_CATALOGUE_DIR") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
        admin_user_ids=frozenset(_split(os.getenv("ADMIN_USER_IDS", ""))),
        notify_alert_url=os.getenv("NOTIFY_ALERT_URL") or None,
        notify_email_url=os.getenv("NOTIFY_EMAIL_URL") or None,
        notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10")),
    )
