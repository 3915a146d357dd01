import logging

from django.conf import settings
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


def required_role() -> str:
    return getattr(settings, "CASHCARDS_REQUIRED_ROLE", "CARD-OWNER")


class HasCardOwnerRole(BasePermission):
    """
    Role gate for the /cards endpoints.

    Runs before any handler. It only checks that the caller is authenticated
    and holds the resource-family role; whether the caller owns a given card
    is decided later by CardService. Anonymous callers get 401 (DRF raises
    NotAuthenticated when no authenticator succeeded), authenticated callers
    without the role get 403.
    """

    message = "Caller does not hold the role required for cash cards."

    def has_permission(self, request, view):
        principal = request.user
        if principal is None or not principal.is_authenticated:
            return False

        role = required_role()
        if not principal.has_role(role):
            logger.info(
                "Denied %s %s to user=%s: missing role %s",
                request.method,
                request.path,
                principal,
                role,
            )
            return False
        return True
