"""Password gate: verification, failure counting and lockout."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..diary.models import StoreCredentials
from ..errors import ConfigError, CredentialRejected, TransportError, ValidationError
from .notifier import LockoutNotifier, LoggingLockoutNotifier
from .state import (
    AccessState,
    KeyValueStorage,
    clear_store_credentials,
    load_access_state,
    load_store_credentials,
    save_access_state,
    save_store_credentials,
)

__all__ = [
    "AccessGate",
    "GateResult",
    "GateStatus",
    "Locked",
    "VerificationClient",
    "VerificationOutcome",
]

logger = get_logger(__name__)

DEFAULT_MAX_FAILURES = 3
DEFAULT_LOCKOUT = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GateStatus(str, Enum):
    UNVERIFIED = "unverified"
    LOCKED = "locked"
    VERIFIED = "verified"


@dataclass(frozen=True)
class VerificationOutcome:
    success: bool
    credentials: Optional[StoreCredentials] = None


class VerificationClient(Protocol):  # pragma: no cover - interface only
    """Talks to the verification endpoint.

    Raises ``TransportError`` when unreachable and ``ConfigError`` when the
    server reports it is misconfigured; a plain "no" is an outcome.
    """

    async def verify(self, candidate: str) -> VerificationOutcome: ...


@dataclass(frozen=True)
class GateResult:
    granted: bool
    remaining_attempts: Optional[int] = None
    message: str = ""
    error_code: Optional[str] = None
    credentials: Optional[StoreCredentials] = None


@dataclass(frozen=True)
class Locked:
    unlock_at: datetime
    remaining: timedelta
    message: str = ""


SubmitResult = Union[GateResult, Locked]


class AccessGate:
    """State machine ``Unverified -> Verified | Locked``.

    ``AccessState`` is read from storage once and written back on every
    change. The failure counter is only reset by a successful attempt, so
    once the lock elapses a single further failure locks again.
    """

    def __init__(
        self,
        verifier: VerificationClient,
        storage: KeyValueStorage,
        *,
        notifier: LockoutNotifier | None = None,
        max_failures: int = DEFAULT_MAX_FAILURES,
        lockout: timedelta = DEFAULT_LOCKOUT,
        page_url: str = "",
        clock: Callable[[], datetime] = _utcnow,
        metrics: MetricsClient | None = None,
    ) -> None:
        self._verifier = verifier
        self._storage = storage
        self._notifier = notifier or LoggingLockoutNotifier()
        self._max_failures = max_failures
        self._lockout = lockout
        self._page_url = page_url
        self._clock = clock
        self._metrics = metrics or get_metrics_client()
        self.state: AccessState = load_access_state(storage)

    @property
    def status(self) -> GateStatus:
        if self.state.verified:
            return GateStatus.VERIFIED
        if self.state.is_locked(self._clock()):
            return GateStatus.LOCKED
        return GateStatus.UNVERIFIED

    @property
    def is_verified(self) -> bool:
        return self.state.verified

    @property
    def credentials(self) -> Optional[StoreCredentials]:
        return load_store_credentials(self._storage)

    async def submit_credential(self, candidate: str) -> SubmitResult:
        now = self._clock()
        if self.state.is_locked(now):
            self._metrics.increment("gate_locked_rejections_total")
            return self._locked(self.state.lock_until, now)
        if not candidate or not candidate.strip():
            return GateResult(
                granted=False,
                message="Please enter the password",
                error_code=ValidationError.error_code,
            )
        try:
            outcome = await self._verifier.verify(candidate)
        except (TransportError, ConfigError) as exc:
            self._metrics.increment("gate_verification_errors_total")
            logger.warning(
                "gate_verification_unavailable",
                extra={"error_code": exc.error_code, "error": exc.message},
            )
            return GateResult(
                granted=False, message=exc.message, error_code=exc.error_code
            )
        if outcome.success:
            return self._grant(outcome.credentials)
        return self._reject(now)

    def logout(self) -> None:
        """Drop the verified flag and revealed credentials; lock state is kept."""

        self.state.verified = False
        save_access_state(self._storage, self.state)
        clear_store_credentials(self._storage)
        logger.info("gate_logout")

    def _grant(self, credentials: Optional[StoreCredentials]) -> GateResult:
        self.state.failure_count = 0
        self.state.lock_until = None
        self.state.verified = True
        save_access_state(self._storage, self.state)
        if credentials is not None:
            save_store_credentials(self._storage, credentials)
        self._metrics.increment("gate_granted_total")
        logger.info("gate_granted")
        return GateResult(granted=True, message="", credentials=credentials)

    def _reject(self, now: datetime) -> SubmitResult:
        self.state.failure_count += 1
        self._metrics.increment("gate_rejected_total")
        if self.state.failure_count >= self._max_failures:
            self.state.lock_until = now + self._lockout
            save_access_state(self._storage, self.state)
            logger.warning(
                "gate_locked",
                extra={
                    "failure_count": self.state.failure_count,
                    "lock_until": self.state.lock_until.isoformat(),
                },
            )
            self._metrics.increment("gate_lockouts_total")
            self._notifier.notify_lockout(self._page_url)
            return self._locked(self.state.lock_until, now)
        save_access_state(self._storage, self.state)
        remaining = self._max_failures - self.state.failure_count
        logger.info("gate_rejected", extra={"remaining_attempts": remaining})
        return GateResult(
            granted=False,
            remaining_attempts=remaining,
            message=f"Wrong password, {remaining} attempt(s) left",
            error_code=CredentialRejected.error_code,
        )

    def _locked(self, unlock_at: datetime, now: datetime) -> Locked:
        remaining = unlock_at - now
        minutes = max(math.ceil(remaining.total_seconds() / 60), 1)
        return Locked(
            unlock_at=unlock_at,
            remaining=remaining,
            message=f"Too many failed attempts, try again in {minutes} minute(s)",
        )
