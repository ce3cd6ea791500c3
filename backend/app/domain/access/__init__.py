"""Access gate domain package."""

from .gate import (
    AccessGate,
    GateResult,
    GateStatus,
    Locked,
    VerificationClient,
    VerificationOutcome,
)
from .notifier import BeaconLockoutNotifier, LockoutNotifier, build_lockout_notifier
from .state import AccessState, JsonFileStorage, KeyValueStorage, MemoryStorage
from .verifiers import (
    CredentialVerifier,
    PlaintextCompare,
    SaltedHashChallenge,
    build_credential_payload,
    build_verifier,
)

__all__ = [
    "AccessGate",
    "AccessState",
    "BeaconLockoutNotifier",
    "CredentialVerifier",
    "GateResult",
    "GateStatus",
    "JsonFileStorage",
    "KeyValueStorage",
    "Locked",
    "LockoutNotifier",
    "MemoryStorage",
    "PlaintextCompare",
    "SaltedHashChallenge",
    "VerificationClient",
    "VerificationOutcome",
    "build_credential_payload",
    "build_lockout_notifier",
    "build_verifier",
]
