"""Client session: the gate in front of the listing view and the editor."""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional

import httpx

from ..config import ListingConfig, Settings
from ..infra.http_client import HttpDiaryStoreClient, HttpVerificationClient
from ..infra.logging import get_logger
from .access.gate import AccessGate, GateResult, SubmitResult
from .access.notifier import build_lockout_notifier
from .access.state import JsonFileStorage, KeyValueStorage
from .diary.listing import ListingController
from .diary.models import StoreCredentials
from .diary.mutations import EntryEditor
from .diary.store_client import DiaryStoreClient

__all__ = ["DiaryWorkspace", "StoreFactory", "build_workspace"]

logger = get_logger(__name__)

StoreFactory = Callable[[StoreCredentials], DiaryStoreClient]
MISSING_CREDENTIALS_MESSAGE = "Session expired, please enter the password again"


class DiaryWorkspace:
    """Opens the listing and editor only once the gate reports ``Verified``."""

    def __init__(
        self,
        gate: AccessGate,
        store_factory: StoreFactory,
        *,
        listing_config: ListingConfig | None = None,
        fallback_credentials: Optional[StoreCredentials] = None,
    ) -> None:
        self._gate = gate
        self._store_factory = store_factory
        self._config = listing_config or ListingConfig()
        self._fallback_credentials = fallback_credentials
        self._store: Optional[DiaryStoreClient] = None
        self.listing: Optional[ListingController] = None
        self.editor: Optional[EntryEditor] = None
        self.status_message = ""

    @property
    def gate(self) -> AccessGate:
        return self._gate

    @property
    def is_open(self) -> bool:
        return self.listing is not None

    async def start(self) -> None:
        """Restore a verified session from storage and load the first page."""

        if not self._gate.is_verified:
            return
        credentials = self._gate.credentials or self._fallback_credentials
        if credentials is None:
            logger.warning("workspace_restore_without_credentials")
            self._gate.logout()
            self.status_message = MISSING_CREDENTIALS_MESSAGE
            return
        await self._open(credentials)

    async def login(self, candidate: str) -> SubmitResult:
        result = await self._gate.submit_credential(candidate)
        if not (isinstance(result, GateResult) and result.granted):
            self.status_message = result.message
            return result
        credentials = result.credentials or self._fallback_credentials
        if credentials is None:
            self._gate.logout()
            self.status_message = MISSING_CREDENTIALS_MESSAGE
            return result
        self.status_message = ""
        await self._open(credentials)
        return result

    async def logout(self) -> None:
        await self._teardown()
        self._gate.logout()

    async def close(self) -> None:
        await self._teardown()

    async def _open(self, credentials: StoreCredentials) -> None:
        await self._teardown()
        self._store = self._store_factory(credentials)
        self.listing = ListingController(
            self._store,
            page_size=self._config.page_size,
            blur_length=self._config.blur_length,
            scroll_threshold=self._config.scroll_threshold,
            display_timezone=self._config.display_timezone,
            access_check=lambda: self._gate.is_verified,
        )
        self.editor = EntryEditor(
            self._store,
            self.listing,
            success_flash_seconds=self._config.success_flash_seconds,
        )
        logger.info("workspace_opened", extra={"store_url": credentials.url})
        await self.listing.load_first_page()

    async def _teardown(self) -> None:
        if self.listing is not None:
            self.listing.close()
        if self.editor is not None:
            self.editor.close()
        if self._store is not None:
            await self._store.aclose()
        self._store = None
        self.listing = None
        self.editor = None


def build_workspace(
    settings: Settings,
    *,
    client: Optional[httpx.AsyncClient] = None,
    storage: Optional[KeyValueStorage] = None,
) -> DiaryWorkspace:
    """Wire the HTTP-backed gate and store client from settings."""

    gate_cfg = settings.gate
    verifier = HttpVerificationClient(
        settings.store.public_url, mode=gate_cfg.verification_mode, client=client
    )
    gate = AccessGate(
        verifier,
        storage or JsonFileStorage(gate_cfg.state_path),
        notifier=build_lockout_notifier(gate_cfg.notify_url, client=client),
        max_failures=gate_cfg.max_failures,
        lockout=timedelta(seconds=gate_cfg.lockout_seconds),
        page_url=gate_cfg.page_url,
    )
    return DiaryWorkspace(
        gate,
        lambda credentials: HttpDiaryStoreClient(credentials, client=client),
        listing_config=settings.listing,
    )
