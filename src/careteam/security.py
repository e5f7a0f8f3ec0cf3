from __future__ import annotations

import hashlib
from contextvars import ContextVar
from typing import FrozenSet, Optional

from fastapi import Header, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from src.careteam.config import Settings

# API key is expected in this header when ENABLE_API_AUTH is true.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Hashed caller identity for the audit logger; never the raw key.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier, if any.

    Set by ``get_api_key`` when API authentication is enabled. Outside a
    request (direct service calls, tests) this is ``None``.
    """

    return _current_subject.get()


def allowed_api_keys(cfg: Settings) -> FrozenSet[str]:
    return frozenset(key.strip() for key in (cfg.api_keys or "").split(",") if key.strip())


def subject_for_key(api_key: str) -> str:
    return "api-key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


async def get_api_key(request: Request, api_key: Optional[str] = Security(_api_key_header)) -> None:
    """Reject the request unless it carries one of the configured API keys.

    Settings come from the app's service container, so each app built by
    ``create_app`` enforces its own configuration. A no-op while
    ENABLE_API_AUTH is off.
    """

    cfg: Settings = request.app.state.services.settings
    if not cfg.enable_api_auth:
        _current_subject.set(None)
        return

    keys = allowed_api_keys(cfg)
    if not keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )
    if api_key not in keys:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key.")

    _current_subject.set(subject_for_key(api_key))


async def get_acting_provider(x_provider_id: Optional[str] = Header(None, alias="X-Provider-Id")) -> str:
    """Provider identity the caller is acting as, from the X-Provider-Id header."""

    if not x_provider_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Provider-Id header is required",
        )
    return x_provider_id
