"""Role model for moderation access control."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Platform roles carried in the bearer token (ordered by privilege)."""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


STAFF_ROLES = frozenset({Role.MODERATOR, Role.ADMIN})


def is_role_allowed(subject_role: Role, allowed: set[Role]) -> bool:
    """Default-deny role check with explicit allow set."""
    return subject_role in allowed


def is_staff(role: Role) -> bool:
    return role in STAFF_ROLES
