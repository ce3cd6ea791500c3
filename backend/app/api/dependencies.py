"""Shared API dependencies."""

from __future__ import annotations

import hmac
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from ..config import Settings, load_settings
from ..domain.access.verifiers import CredentialVerifier, build_verifier
from ..domain.diary.gateway import DiaryStoreGateway, build_diary_store_gateway
from ..domain.diary.models import STORE_KEY_HEADER
from ..domain.errors import ConfigError, CredentialRejected

__all__ = [
    "get_credential_verifier",
    "get_diary_gateway",
    "get_settings",
    "require_store_key",
]


@lru_cache()
def _settings_singleton() -> Settings:
    return load_settings()


def get_settings() -> Settings:
    """Return the process-wide settings."""

    return _settings_singleton()


@lru_cache()
def _diary_gateway_singleton() -> DiaryStoreGateway:
    return build_diary_store_gateway()


def get_diary_gateway() -> DiaryStoreGateway:
    """Return the process-wide diary store gateway instance."""

    return _diary_gateway_singleton()


def get_credential_verifier(
    settings: Settings = Depends(get_settings),
) -> CredentialVerifier:
    """Verifier for the configured mode; the secret may be missing (checked on use)."""

    return build_verifier(settings.gate.verification_mode, settings.password)


def require_store_key(
    request: Request, settings: Settings = Depends(get_settings)
) -> None:
    """Reject diary requests that do not carry the revealed store key."""

    expected = settings.store.api_key
    if not expected:
        error = ConfigError("Server misconfigured: store key is not set")
        raise HTTPException(status_code=error.status_code, detail=error.to_detail())
    provided = (request.headers.get(STORE_KEY_HEADER) or "").strip()
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        error = CredentialRejected(
            "Invalid or missing store key", details={"header": STORE_KEY_HEADER}
        )
        raise HTTPException(status_code=error.status_code, detail=error.to_detail())
