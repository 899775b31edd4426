"""
=============================================================================
AUTHENTICATION MIDDLEWARE
=============================================================================

Protects routes with a bearer token:

    Authorization: Bearer <token>

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      AUTHENTICATION STEPS                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. Header missing / not "Bearer <token>"    → 401                  │
    │  2. Token fails verification                 → 401 (same message)   │
    │  3. No numeric "sub" claim                   → 401 invalid payload  │
    │  4. User not found or status != "active"     → 401 not found/inactive│
    │  5. Identity attached to request             → continue             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Steps 1 and 2 answer with the same message so a caller can't tell a
missing token from a forged or expired one. The actual reason is logged.

=============================================================================
"""

from typing import Any, Mapping, Optional
import logging
import re

from ..http.request import Request
from ..http.response import unauthorized
from ..identity import Identity, TokenDecoder, TokenError, UserLookup
from .base import GuardMiddleware, Outcome, Terminal, CONTINUE


logger = logging.getLogger(__name__)


BEARER_PATTERN = re.compile(r"^Bearer\s+(\S+)")

MISSING_TOKEN_MESSAGE = "Authentication required. Please provide a valid Bearer token."
INVALID_PAYLOAD_MESSAGE = "Invalid token payload"
INACTIVE_USER_MESSAGE = "User account not found or inactive"


def subject_from_claims(claims: Mapping[str, Any]) -> Optional[int]:
    """
    Extract a numeric subject identifier from token claims.

        {"sub": 7}      → 7
        {"sub": "7"}    → 7
        {"sub": "abc"}  → None
        {"sub": True}   → None
    """
    sub = claims.get("sub")
    if isinstance(sub, bool):
        return None
    if isinstance(sub, int):
        return sub
    if isinstance(sub, float) and sub.is_integer():
        return int(sub)
    if isinstance(sub, str) and sub.strip().isdecimal():
        return int(sub.strip())
    return None


class AuthenticationMiddleware(GuardMiddleware):
    """
    Verifies the bearer token and attaches the caller's Identity.

    Usage:
        auth = AuthenticationMiddleware(
            decoder=HS256TokenDecoder(secret),
            users=InMemoryUserDirectory(),
        )
        router.get("/profile", show_profile, middleware=[auth])

        def show_profile(request):
            return success(dict(request.identity.attributes))
    """

    def __init__(self, decoder: TokenDecoder, users: UserLookup, active_status: str = "active"):
        """
        Args:
            decoder: Verifies tokens and returns their claims
            users: Resolves a subject id to a user record
            active_status: The only account status allowed through
        """
        self.decoder = decoder
        self.users = users
        self.active_status = active_status

    def check(self, request: Request) -> Outcome:
        header = request.header("Authorization")
        found = BEARER_PATTERN.match(header) if header else None
        if found is None:
            logger.warning(f"Missing or malformed Authorization header on {request.method} {request.path}")
            return Terminal(unauthorized(MISSING_TOKEN_MESSAGE))

        try:
            claims = self.decoder.decode(found.group(1))
        except TokenError as e:
            logger.warning(f"Token verification failed on {request.method} {request.path}: {e}")
            return Terminal(unauthorized(MISSING_TOKEN_MESSAGE))

        subject_id = subject_from_claims(claims)
        if subject_id is None:
            logger.warning(f"Token without a numeric subject on {request.method} {request.path}")
            return Terminal(unauthorized(INVALID_PAYLOAD_MESSAGE))

        record = self.users.find_by_id(subject_id)
        if not record or record.get("status") != self.active_status:
            logger.warning(f"Subject {subject_id} not found or inactive")
            return Terminal(unauthorized(INACTIVE_USER_MESSAGE))

        request.attach_identity(Identity.from_record(subject_id, record))
        return CONTINUE
