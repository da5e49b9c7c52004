"""Provider credentials: static secrets and self-signed, time-bounded JWTs.

Both variants expose the same two calls, so the poll loop can invoke
``refresh_if_expiring`` on every iteration without caring which one it holds:

    cred = provider.obtain()
    cred = provider.refresh_if_expiring(cred, margin_seconds=300)
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from jose import JWTError, jwt

from mediarelay.errors import CredentialError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """An authorization token held for one orchestration run."""

    token: str
    issued_at: float | None = None
    not_before: float | None = None
    expires_at: float | None = None

    @property
    def signed(self) -> bool:
        return self.expires_at is not None

    def remaining(self, now: float) -> float:
        """Seconds of validity left; static secrets never expire."""
        if self.expires_at is None:
            return math.inf
        return self.expires_at - now

    def __repr__(self) -> str:
        return f"Credential(signed={self.signed}, expires_at={self.expires_at})"


class CredentialProvider(ABC):

    @abstractmethod
    def obtain(self) -> Credential:
        ...

    @abstractmethod
    def refresh_if_expiring(self, credential: Credential, margin_seconds: float) -> Credential:
        ...


class StaticCredentialProvider(CredentialProvider):
    """Caller-supplied API key, passed through verbatim."""

    def __init__(self, secret: str | None, *, name: str = "api_key") -> None:
        self.secret = secret
        self.name = name

    def obtain(self) -> Credential:
        if not isinstance(self.secret, str) or not self.secret.strip():
            raise CredentialError(f"{self.name} is required")
        return Credential(token=self.secret)

    def refresh_if_expiring(self, credential: Credential, margin_seconds: float) -> Credential:
        return credential


class SignedCredentialProvider(CredentialProvider):
    """HS256 JWT with ``iss`` = access key, signed with the secret key.

    Tokens expire ``ttl_seconds`` after issuance and become valid
    ``skew_seconds`` before it to tolerate clock drift on the provider side.
    """

    algorithm = "HS256"

    def __init__(
        self,
        access_key: str | None,
        secret_key: str | None,
        *,
        ttl_seconds: int = 1800,
        skew_seconds: int = 5,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.access_key = access_key
        self.secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self.skew_seconds = skew_seconds
        self._clock = clock or time.time

    def _validate(self) -> tuple[str, str]:
        if not isinstance(self.access_key, str) or not self.access_key.strip():
            raise CredentialError("access_key is required")
        if not isinstance(self.secret_key, str) or not self.secret_key.strip():
            raise CredentialError("secret_key is required")
        return self.access_key.strip(), self.secret_key

    def obtain(self) -> Credential:
        return self._issue(not_earlier_than=None)

    def _issue(self, not_earlier_than: float | None) -> Credential:
        issuer, secret = self._validate()
        now = int(self._clock())
        exp = now + self.ttl_seconds
        if not_earlier_than is not None and exp <= not_earlier_than:
            exp = int(not_earlier_than) + 1
        claims = {"iss": issuer, "exp": exp, "nbf": now - self.skew_seconds}
        try:
            token = jwt.encode(claims, secret, algorithm=self.algorithm)
        except JWTError as e:
            raise CredentialError(f"Failed to sign token: {e}") from e
        return Credential(
            token=token,
            issued_at=float(now),
            not_before=float(claims["nbf"]),
            expires_at=float(exp),
        )

    def refresh_if_expiring(self, credential: Credential, margin_seconds: float) -> Credential:
        if margin_seconds >= self.ttl_seconds:
            raise CredentialError(
                f"Refresh margin {margin_seconds}s must be shorter than "
                f"token lifetime {self.ttl_seconds}s"
            )
        if credential.remaining(self._clock()) >= margin_seconds:
            return credential
        refreshed = self._issue(not_earlier_than=credential.expires_at)
        logger.info(
            "Signed token refreshed (exp %s -> %s)",
            credential.expires_at, refreshed.expires_at,
        )
        return refreshed
