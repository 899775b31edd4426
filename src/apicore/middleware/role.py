"""
=============================================================================
ROLE MIDDLEWARE
=============================================================================

Lets a request through only if the authenticated identity holds one of
the accepted roles. Must come after AuthenticationMiddleware:

    middleware=[AuthenticationMiddleware(...), RoleMiddleware("admin")]

    no identity attached         → 401 "Authentication required before role check"
    identity has no role         → 403 "User role information is missing"
    role not accepted            → 403 "Access denied: ..."
    role accepted                → continue

Roles are compared trimmed and case-insensitively:

    RoleMiddleware(["admin", "Admin", " admin "]).roles == ("admin",)

=============================================================================
"""

from typing import Iterable, Tuple, Union
import logging

from ..errors import ConfigurationFault
from ..http.request import Request
from ..http.response import forbidden, unauthorized
from .base import GuardMiddleware, Outcome, Terminal, CONTINUE


logger = logging.getLogger(__name__)


def normalize_roles(roles: Union[str, Iterable[str]]) -> Tuple[str, ...]:
    """Trim, lower-case and de-duplicate role names, keeping first-seen order."""
    if isinstance(roles, str):
        roles = [roles]

    normalized = []
    for role in roles:
        role = str(role).strip().lower()
        if role and role not in normalized:
            normalized.append(role)
    return tuple(normalized)


class RoleMiddleware(GuardMiddleware):
    """Role-based authorization for one route or group."""

    def __init__(self, roles: Union[str, Iterable[str]]):
        """
        Args:
            roles: A role name or an iterable of role names

        Raises:
            ConfigurationFault: if no non-empty role remains.
        """
        self.roles = normalize_roles(roles)
        if not self.roles:
            raise ConfigurationFault("At least one role must be specified for RoleMiddleware")

    def check(self, request: Request) -> Outcome:
        identity = request.identity
        if identity is None:
            return Terminal(unauthorized("Authentication required before role check"))

        if identity.role is None:
            logger.warning(f"Subject {identity.subject_id} has no role information")
            return Terminal(forbidden("User role information is missing"))

        role = identity.role.strip().lower()
        for accepted in self.roles:
            if role == accepted:
                return CONTINUE

        logger.info(f"Subject {identity.subject_id} with role '{role}' denied on {request.path}")
        return Terminal(forbidden("Access denied: You do not have permission to access this resource."))
