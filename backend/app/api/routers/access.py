"""Password verification endpoint."""

from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ...api.dependencies import get_credential_verifier, get_settings
from ...config import Settings
from ...domain.access.verifiers import CredentialVerifier
from ...domain.errors import ConfigError, ValidationError
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client

router = APIRouter(prefix="/api", tags=["access"])
logger = get_logger(__name__)
metrics = get_metrics_client()

VERIFY_PATH = "/verify-password"


@router.post(VERIFY_PATH, summary="Verify the access password")
async def verify_password(
    request: Request,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    metrics.increment("verify_password_http_total")
    payload = await _read_payload(request)
    try:
        accepted = verifier.verify(payload)
    except ValidationError as exc:
        return _failure(exc.status_code, exc.message)
    except ConfigError as exc:
        logger.error("verify_password_misconfigured", extra={"error": exc.message})
        return _failure(exc.status_code, "Server misconfigured")

    if not accepted:
        metrics.increment("verify_password_rejected_total")
        logger.info("verify_password_rejected", extra={"mode": verifier.mode})
        return JSONResponse({"success": False})

    if not settings.store.api_key:
        logger.error("verify_password_store_key_missing")
        return _failure(ConfigError.status_code, "Server misconfigured")

    metrics.increment("verify_password_accepted_total")
    logger.info("verify_password_accepted", extra={"mode": verifier.mode})
    return JSONResponse(
        {
            "success": True,
            "storeUrl": settings.store.public_url,
            "storeKey": settings.store.api_key,
        }
    )


@router.api_route(
    VERIFY_PATH,
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def verify_password_method_not_allowed() -> JSONResponse:
    return _failure(status.HTTP_405_METHOD_NOT_ALLOWED, "Method Not Allowed")


async def _read_payload(request: Request) -> Dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": message}, status_code=status_code
    )
