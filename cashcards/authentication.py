import logging
from dataclasses import dataclass, field
from typing import Optional

from django.contrib.auth.hashers import check_password, is_password_usable, make_password
from rest_framework import exceptions
from rest_framework.authentication import BasicAuthentication

from cashcards.directory import UserDirectory, get_user_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    An authenticated caller: a username plus its assigned roles.

    Installed as ``request.user`` by DirectoryBasicAuthentication. The
    ``is_authenticated`` flag is what DRF permission classes look at.
    """

    username: str
    roles: frozenset = field(default_factory=frozenset)

    is_authenticated = True
    is_anonymous = False

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def __str__(self):
        return self.username


def verify_credentials(
    directory: UserDirectory, username: str, password: str
) -> Optional[Principal]:
    """
    Check a username/password pair against the user directory.

    The password is compared with the configured salted hasher
    (bcrypt-SHA256 by default), which compares digests in constant time.
    For an unknown username, or an unusable stored hash, the hasher still
    runs once, so an unknown user and a wrong password take the same time and
    give the same result.

    Args:
        directory: Directory used to resolve the username.
        username: Username supplied by the caller.
        password: Plaintext password supplied by the caller. Never stored or logged.

    Returns:
        The Principal on success, None on any failure.
    """
    entry = directory.resolve(username)
    if entry is None or not is_password_usable(entry.password_hash):
        make_password(password)
        return None

    if not check_password(password, entry.password_hash):
        return None

    return Principal(username=entry.username, roles=entry.roles)


class DirectoryBasicAuthentication(BasicAuthentication):
    """
    HTTP Basic authentication against the configured user directory.

    Credentials are checked on every request; there is no session state.
    Missing credentials leave the request anonymous (the permission class then
    answers 401); wrong credentials fail immediately with 401.
    """

    www_authenticate_realm = "api"

    def authenticate_credentials(self, userid, password, request=None):
        principal = verify_credentials(get_user_directory(), userid, password)
        if principal is None:
            logger.warning("Rejected basic credentials for username=%s", userid)
            raise exceptions.AuthenticationFailed("Invalid username/password.")

        return (principal, None)
