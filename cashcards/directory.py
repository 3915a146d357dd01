"""
User directories resolve a username to its stored password hash and roles.

The service only depends on ``resolve(username)``; which directory is used is
configured with the ``CASHCARDS_USER_DIRECTORY`` setting (a dotted path to a
class taking no arguments).
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils.module_loading import import_string


@dataclass(frozen=True)
class DirectoryEntry:
    """Stored credentials for one user. `password_hash` is never plaintext."""

    username: str
    password_hash: str
    roles: frozenset = field(default_factory=frozenset)


class UserDirectory(Protocol):
    def resolve(self, username: str) -> Optional[DirectoryEntry]:
        ...


class DjangoUserDirectory:
    """
    Directory backed by ``django.contrib.auth`` users.

    A user's roles are the names of the groups it belongs to. Inactive users
    resolve to None, the same as unknown ones.
    """

    def resolve(self, username: str) -> Optional[DirectoryEntry]:
        user_model = get_user_model()
        user = (
            user_model.objects.filter(
                **{user_model.USERNAME_FIELD: username, "is_active": True}
            )
            .prefetch_related("groups")
            .first()
        )
        if user is None:
            return None

        return DirectoryEntry(
            username=user.get_username(),
            password_hash=user.password,
            roles=frozenset(group.name for group in user.groups.all()),
        )


class InMemoryUserDirectory:
    """
    Fixed set of users, e.g. for local runs without a user table.

    Each user is a mapping with ``username``, ``password`` (already encoded
    with ``make_password``) and ``roles``. Without explicit users the
    ``CASHCARDS_IN_MEMORY_USERS`` setting is used.
    """

    def __init__(self, users: Optional[Iterable[dict]] = None):
        if users is None:
            users = getattr(settings, "CASHCARDS_IN_MEMORY_USERS", [])
        self._entries = {
            user["username"]: DirectoryEntry(
                username=user["username"],
                password_hash=user["password"],
                roles=frozenset(user.get("roles", ())),
            )
            for user in users
        }

    def resolve(self, username: str) -> Optional[DirectoryEntry]:
        return self._entries.get(username)


def get_user_directory() -> UserDirectory:
    """Instantiate the directory named by ``CASHCARDS_USER_DIRECTORY``."""
    path = getattr(
        settings,
        "CASHCARDS_USER_DIRECTORY",
        "cashcards.directory.DjangoUserDirectory",
    )
    return import_string(path)()
