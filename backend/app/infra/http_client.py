"""httpx clients for the verification endpoint and the diary store API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..domain.access.gate import VerificationOutcome
from ..domain.access.verifiers import build_credential_payload
from ..domain.diary.models import (
    STORE_KEY_HEADER,
    DiaryEntry,
    EntryPreview,
    StoreCredentials,
)
from ..domain.errors import ConfigError, StoreError, TransportError
from .logging import get_logger

__all__ = ["HttpDiaryStoreClient", "HttpVerificationClient"]

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
VERIFY_PATH = "/api/verify-password"
DIARY_PATH = "/api/diary"


class _OwnedClient:
    """Lazily creates an ``AsyncClient`` unless one was injected."""

    def __init__(self, client: Optional[httpx.AsyncClient], timeout: float) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class HttpVerificationClient(_OwnedClient):
    """Posts the credential payload for the configured mode and reads ``{success}``."""

    def __init__(
        self,
        base_url: str,
        *,
        mode: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(client, timeout)
        self._endpoint = base_url.rstrip("/") + VERIFY_PATH
        self._mode = mode

    async def verify(self, candidate: str) -> VerificationOutcome:
        payload = build_credential_payload(self._mode, candidate)
        try:
            response = await self.http.post(self._endpoint, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "verification_transport_failed",
                extra={"endpoint": self._endpoint, "error": str(exc)},
            )
            raise TransportError("Verification failed: server unreachable") from exc

        if response.status_code >= 500:
            raise ConfigError(_error_message(response, "Server misconfigured"))
        if response.status_code == httpx.codes.UNAUTHORIZED:
            return VerificationOutcome(success=False)
        if response.status_code >= 400:
            raise TransportError(_error_message(response, "Verification failed"))
        data = _json_body(response)
        if not data.get("success"):
            return VerificationOutcome(success=False)
        credentials = None
        if data.get("storeUrl") and data.get("storeKey"):
            credentials = StoreCredentials(
                url=str(data["storeUrl"]), key=str(data["storeKey"])
            )
        return VerificationOutcome(success=True, credentials=credentials)


class HttpDiaryStoreClient(_OwnedClient):
    """``DiaryStoreClient`` over the ``/api/diary`` routes."""

    def __init__(
        self,
        credentials: StoreCredentials,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(client, timeout)
        self._base = credentials.url.rstrip("/") + DIARY_PATH
        self._headers = {STORE_KEY_HEADER: credentials.key}

    async def list_entries(
        self, *, offset: int, limit: Optional[int], preview_length: int
    ) -> List[EntryPreview]:
        params: Dict[str, Any] = {"offset": offset, "preview_length": preview_length}
        if limit is None:
            params["all"] = "true"
        else:
            params["limit"] = limit
        data = await self._request("GET", self._base, params=params)
        return [_preview_from_json(item) for item in data.get("items", [])]

    async def fetch_body(self, entry_id: str) -> str:
        data = await self._request("GET", f"{self._base}/{entry_id}")
        return str(data["body"])

    async def insert(self, *, title: str, body: str) -> DiaryEntry:
        data = await self._request("POST", self._base, json={"title": title, "body": body})
        return DiaryEntry(
            entry_id=str(data["id"]),
            title=str(data["title"]),
            body=str(data["body"]),
            created_at=datetime.fromisoformat(str(data["created_at"])),
        )

    async def delete(self, entry_id: str) -> None:
        await self._request("DELETE", f"{self._base}/{entry_id}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self.http.request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "diary_store_transport_failed",
                extra={"method": method, "url": url, "error": str(exc)},
            )
            raise TransportError("Unable to reach the diary store") from exc
        if response.is_error:
            raise StoreError(
                _error_message(response, f"Store request failed ({response.status_code})")
            )
        return _json_body(response)


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise TransportError("Malformed response from server") from exc
    if not isinstance(data, dict):
        raise TransportError("Malformed response from server")
    return data


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Pull the server's own message out of either error envelope."""

    try:
        data = response.json()
    except ValueError:
        return response.text or fallback
    if not isinstance(data, Mapping):
        return fallback
    detail = data.get("detail")
    if isinstance(detail, Mapping) and detail.get("message"):
        return str(detail["message"])
    if isinstance(detail, str) and detail:
        return detail
    if data.get("message"):
        return str(data["message"])
    return fallback


def _preview_from_json(item: Mapping[str, Any]) -> EntryPreview:
    return EntryPreview(
        entry_id=str(item["id"]),
        title=str(item["title"]),
        created_at=datetime.fromisoformat(str(item["created_at"])),
        preview=str(item.get("preview") or ""),
        has_more=bool(item.get("has_more")),
    )
