"""Shared-secret API key checks for collaborator-facing routes."""

import hmac
from typing import Optional

from fastapi import Header

from intent_engine.core.config import settings
from intent_engine.core.exceptions import UnauthenticatedError


def _check_key(expected: str, provided: Optional[str]) -> None:
    # An unset secret disables the check (local development)
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise UnauthenticatedError()


async def require_ingest_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Validate ``X-API-Key`` against ``INGEST_API_KEY``."""
    _check_key(settings.INGEST_API_KEY, x_api_key)


async def require_admin_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Validate ``X-API-Key`` against ``ADMIN_API_KEY``."""
    _check_key(settings.ADMIN_API_KEY, x_api_key)
