"""Credential verification strategies shared by the endpoint and the client.

Challenge mode sends ``SHA256(candidate + salt)`` instead of the raw
candidate. Anyone who captures a ``{hashedPassword, salt}`` pair can still
guess the secret offline; the scheme only avoids putting the plaintext on
the wire.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from ..errors import ConfigError, ValidationError

__all__ = [
    "CredentialVerifier",
    "PlaintextCompare",
    "SaltedHashChallenge",
    "build_credential_payload",
    "build_verifier",
    "generate_salt",
    "salted_hash",
]

PLAINTEXT_MODE = "plaintext"
SALTED_HASH_MODE = "salted_hash"
SALT_BYTES = 16


def salted_hash(value: str, salt: str) -> str:
    """Hex SHA-256 of ``value + salt``; both sides must build it identically."""

    return hashlib.sha256((value + salt).encode("utf-8")).hexdigest()


def generate_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


class CredentialVerifier(Protocol):  # pragma: no cover - interface only
    """Checks a submitted payload against the server-held secret."""

    mode: str
    required_fields: Tuple[str, ...]

    def verify(self, payload: Mapping[str, Any]) -> bool: ...


class _SecretVerifier:
    mode = ""
    required_fields: Tuple[str, ...] = ()

    def __init__(self, secret: Optional[str]) -> None:
        self._secret = secret

    def verify(self, payload: Mapping[str, Any]) -> bool:
        values = _require_fields(payload, self.required_fields)
        if not self._secret:
            raise ConfigError("Server misconfigured: access password is not set")
        return self._matches(self._secret, *values)

    def _matches(self, secret: str, *values: str) -> bool:  # pragma: no cover
        raise NotImplementedError


class PlaintextCompare(_SecretVerifier):
    """Direct mode; only acceptable over an encrypted transport."""

    mode = PLAINTEXT_MODE
    required_fields = ("password",)

    def _matches(self, secret: str, *values: str) -> bool:
        (password,) = values
        return hmac.compare_digest(password.encode("utf-8"), secret.encode("utf-8"))


class SaltedHashChallenge(_SecretVerifier):
    """Challenge mode: compares against ``SHA256(secret + salt)``."""

    mode = SALTED_HASH_MODE
    required_fields = ("hashedPassword", "salt")

    def _matches(self, secret: str, *values: str) -> bool:
        hashed, salt = values
        expected = salted_hash(secret, salt)
        return hmac.compare_digest(
            hashed.lower().encode("utf-8"), expected.encode("utf-8")
        )


_VERIFIERS = {
    PLAINTEXT_MODE: PlaintextCompare,
    SALTED_HASH_MODE: SaltedHashChallenge,
}


def build_verifier(mode: str, secret: Optional[str]) -> CredentialVerifier:
    try:
        verifier_cls = _VERIFIERS[mode]
    except KeyError as exc:
        raise ConfigError(f"Unsupported verification mode '{mode}'") from exc
    return verifier_cls(secret)


def build_credential_payload(
    mode: str, candidate: str, *, salt: Optional[str] = None
) -> Dict[str, str]:
    """Client half of the exchange: the request body for ``mode``."""

    if mode == PLAINTEXT_MODE:
        return {"password": candidate}
    if mode == SALTED_HASH_MODE:
        salt = salt or generate_salt()
        return {"hashedPassword": salted_hash(candidate, salt), "salt": salt}
    raise ConfigError(f"Unsupported verification mode '{mode}'")


def _require_fields(
    payload: Mapping[str, Any], fields: Tuple[str, ...]
) -> Tuple[str, ...]:
    missing = [
        name
        for name in fields
        if not isinstance(payload.get(name), str) or not payload.get(name)
    ]
    if missing:
        raise ValidationError(
            f"Missing required parameters: {', '.join(missing)}",
            details={"fields": missing},
        )
    return tuple(payload[name] for name in fields)
