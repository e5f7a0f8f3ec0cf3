from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional


_DEFAULT_PROVIDER_ROLES = (
    "doctor,radiologist,lab_technician,nutritionist,therapist,"
    "yoga_instructor,pharmacy,food_service,community_manager"
)


def _csv_set(raw: str) -> FrozenSet[str]:
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class Settings:
    """Centralized application settings.

    Environment-variable handling lives here so services can depend on typed
    attributes instead of calling os.getenv directly.
    """

    # Persistence backend for the key-value collaborator: "memory" (default)
    # or "sql". The SQL backend requires DATABASE_URL.
    store_backend: str = os.getenv("STORE_BACKEND", "memory")
    database_url: Optional[str] = os.getenv("DATABASE_URL")

    # A provider is reported as overloaded when current/maximum patients is
    # strictly greater than this ratio.
    overload_ratio_threshold: float = float(os.getenv("OVERLOAD_RATIO_THRESHOLD", "0.9"))

    # Patient capacity used when a provider identity does not carry its own
    # max_patients value (or is not registered at all).
    default_max_patients: int = int(os.getenv("DEFAULT_MAX_PATIENTS", "25"))

    # Roles that require administrator approval before they become active.
    # Anything outside this set (patient, admin) auto-activates.
    provider_roles: FrozenSet[str] = field(
        default_factory=lambda: _csv_set(os.getenv("PROVIDER_ROLES", _DEFAULT_PROVIDER_ROLES))
    )

    # Optional webhook that receives urgent notifications from the outbox.
    urgent_webhook_url: Optional[str] = os.getenv("URGENT_WEBHOOK_URL")
    urgent_webhook_timeout_seconds: float = float(os.getenv("URGENT_WEBHOOK_TIMEOUT_SECONDS", "5.0"))

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, protected endpoints require a valid API key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # CORS configuration: comma-separated origins. Default "*" is fine for
    # local development only.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
