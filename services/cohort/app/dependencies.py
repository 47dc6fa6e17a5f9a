"""Shared FastAPI dependencies for the cohort service."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.certificates.issuer import CertificateRenderer, build_renderer
from app.config import Settings
from app.database import get_session_factory
from shared.auth.dependencies import get_current_user_required, require_roles
from shared.constants import STAFF_ROLES
from shared.models.user import CurrentUser


@lru_cache
def get_settings() -> Settings:
    return Settings()


@lru_cache
def get_renderer() -> CertificateRenderer:
    """One renderer per process; built from the cached settings."""
    return build_renderer(get_settings())


def get_issuance_session_factory() -> async_sessionmaker[AsyncSession]:
    """Issuance opens one session per certificate instead of the request session."""
    return get_session_factory()


get_current_user = get_current_user_required

# Teachers and admins manage batches, approvals and issuance
get_staff_user = require_roles(*STAFF_ROLES)

__all__ = [
    "CurrentUser",
    "get_current_user",
    "get_issuance_session_factory",
    "get_renderer",
    "get_settings",
    "get_staff_user",
]
