"""
=============================================================================
IDENTITY COLLABORATORS
=============================================================================

The authentication middleware never knows how credentials are issued or
where users are stored. It talks to two collaborators:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                   BEARER TOKEN → IDENTITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   "Authorization: Bearer eyJ..."                                    │
    │          │                                                           │
    │          ▼                                                           │
    │   TokenDecoder.decode(token)  ──► {"sub": 7, "exp": ...}            │
    │          │  raises TokenError on any verification failure           │
    │          ▼                                                           │
    │   UserLookup.find_by_id(7)    ──► {"id": 7, "role": "admin",        │
    │          │                         "status": "active", ...}         │
    │          ▼                                                           │
    │   Identity(subject_id=7, role="admin", status="active", ...)        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

HS256TokenDecoder is a reference decoder for HMAC-SHA256 signed JWTs,
built on PyJWT.
Token issuance is deliberately not part of this package.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import jwt


class TokenError(Exception):
    """The bearer token could not be verified (any reason)."""


@dataclass(frozen=True)
class Identity:
    """
    The authenticated principal attached to a request.

    Attributes:
        subject_id: Numeric subject identifier from the token's "sub" claim
        role:       Role name from the user record (None if the record has none)
        status:     Account status ("active", "suspended", ...)
        attributes: The full user record as returned by the lookup
    """

    subject_id: int
    role: Optional[str] = None
    status: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, subject_id: int, record: Mapping[str, Any]) -> "Identity":
        """
        Build an identity from a user record.

        The role is read from "role", falling back to "role_name".
        """
        role = record.get("role")
        if role is None:
            role = record.get("role_name")
        return cls(
            subject_id=subject_id,
            role=str(role) if role is not None else None,
            status=record.get("status"),
            attributes=dict(record),
        )


class TokenDecoder(ABC):
    """Turns an opaque bearer token into its claims."""

    @abstractmethod
    def decode(self, token: str) -> Mapping[str, Any]:
        """
        Verify and decode a token.

        Raises:
            TokenError: expired, bad signature, malformed, ...
        """


class UserLookup(ABC):
    """Resolves a subject identifier to a user record."""

    @abstractmethod
    def find_by_id(self, subject_id: int) -> Optional[Mapping[str, Any]]:
        """Return the user record, or None if there is no such user."""




# =============================================================================
# HS256 JWT DECODER
# =============================================================================
#
#   header.payload.signature     verified by PyJWT
#
# PyJWT checks the segments, the HS256 algorithm, the signature, exp and
# iat (with leeway). Any PyJWTError becomes a TokenError carrying a short
# reason for the log. The subject claim is left to the caller, so it may
# be numeric.
#
# =============================================================================

class HS256TokenDecoder(TokenDecoder):
    """
    Verifies HMAC-SHA256 signed JSON Web Tokens.

    Usage:
        decoder = HS256TokenDecoder(secret="change-me")
        claims = decoder.decode(token)   # raises TokenError when invalid
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str, leeway: int = 0):
        """
        Args:
            secret: Shared signing secret (must not be empty)
            leeway: Seconds of clock skew tolerated for exp/iat
        """
        if not secret:
            raise ValueError("HS256TokenDecoder requires a non-empty secret")
        self._secret = secret
        self._leeway = leeway

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                leeway=self._leeway,
                options={"verify_sub": False},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token expired")
        except jwt.ImmatureSignatureError:
            raise TokenError("Token issued in the future")
        except jwt.InvalidSignatureError:
            raise TokenError("Signature verification failed")
        except jwt.InvalidAlgorithmError:
            raise TokenError("Unsupported token algorithm")
        except jwt.PyJWTError as e:
            raise TokenError(f"Invalid token: {e}")

        if not isinstance(payload, dict):
            raise TokenError("Token payload must be an object")
        return payload


class InMemoryUserDirectory(UserLookup):
    """
    Dict-backed user lookup for development and tests.

    Usage:
        users = InMemoryUserDirectory()
        users.add(1, role="admin", email="admin@example.com")
        users.find_by_id(1)["role"]   # "admin"
    """

    def __init__(self, records: Optional[Mapping[int, Mapping[str, Any]]] = None):
        self._records: Dict[int, Dict[str, Any]] = {
            int(user_id): dict(record) for user_id, record in (records or {}).items()
        }

    def add(self, user_id: int, status: str = "active", **attributes: Any) -> Dict[str, Any]:
        """Register a user; returns the stored record."""
        record = {"id": user_id, "status": status, **attributes}
        self._records[user_id] = record
        return record

    def find_by_id(self, subject_id: int) -> Optional[Dict[str, Any]]:
        record = self._records.get(subject_id)
        return dict(record) if record is not None else None

    def __len__(self) -> int:
        return len(self._records)
