"""User accounts and the permission gate used by the admin surface."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .db import Database, Row
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import Permission, User, UserRole
from .validation import require_non_empty

logger = logging.getLogger(__name__)

ACTIONS = ("view", "edit", "delete", "create")
DEFAULT_ADMIN_USERNAME = "admin"


def validate_permission(user: Optional[User], action: str) -> bool:
    """Return whether ``user`` may perform ``action``; admins may do anything."""

    if action not in ACTIONS:
        raise ValueError(f"unknown permission {action!r}")
    if user is None:
        return False
    if user.role is UserRole.ADMIN:
        return True
    return bool(getattr(user.permissions, action))


def require_permission(user: Optional[User], action: str) -> None:
    if not validate_permission(user, action):
        who = user.username if user else "anonymous"
        raise AuthorizationError(f"{who} is not allowed to {action}")


def require_admin(user: Optional[User]) -> None:
    if user is None or user.role is not UserRole.ADMIN:
        raise AuthorizationError("administrator role required")


def _parse_role(value: Any) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"invalid role {value!r}; expected admin or user") from exc


def _row_to_user(row: Row) -> User:
    return User(
        id=int(row["id"]),
        username=row["username"],
        role=UserRole(row["role"]),
        permissions=Permission(
            view=bool(row["can_view"]),
            edit=bool(row["can_edit"]),
            delete=bool(row["can_delete"]),
            create=bool(row["can_create"]),
        ),
    )


def _permission_columns(permissions: Permission) -> Dict[str, int]:
    return {
        "can_view": int(permissions.view),
        "can_edit": int(permissions.edit),
        "can_delete": int(permissions.delete),
        "can_create": int(permissions.create),
    }


class UserService:
    def __init__(self, database: Database, *, seed_admin: bool = True) -> None:
        self.database = database
        if seed_admin and self.database.count_users() == 0:
            self.create_user(
                DEFAULT_ADMIN_USERNAME,
                role=UserRole.ADMIN,
                permissions=Permission(view=True, edit=True, delete=True, create=True),
            )
            logger.info("Seeded default %r administrator", DEFAULT_ADMIN_USERNAME)

    def list_users(self) -> List[User]:
        return [_row_to_user(row) for row in self.database.get_users()]

    def get_user(self, user_id: int) -> User:
        row = self.database.get_user(user_id)
        if not row:
            raise NotFoundError(f"user {user_id} not found")
        return _row_to_user(row)

    def get_by_username(self, username: Optional[str]) -> Optional[User]:
        if not username or not username.strip():
            return None
        row = self.database.get_user_by_username(username.strip())
        return _row_to_user(row) if row else None

    def create_user(
        self,
        username: str,
        *,
        role: Any = UserRole.USER,
        permissions: Optional[Permission] = None,
    ) -> User:
        username = require_non_empty(username, "username")
        parsed_role = _parse_role(role)
        permissions = permissions or Permission()
        if self.database.get_user_by_username(username):
            raise ValidationError(f"user {username!r} already exists")
        user_id = self.database.insert_user(
            {"username": username, "role": parsed_role.value, **_permission_columns(permissions)}
        )
        logger.info("Created user %s with role %s", username, parsed_role.value)
        return User(id=user_id, username=username, role=parsed_role, permissions=permissions)

    def update_permissions(self, user_id: int, **flags: bool) -> User:
        unknown = set(flags) - set(ACTIONS)
        if unknown:
            raise ValidationError(f"unknown permissions: {', '.join(sorted(unknown))}")
        user = self.get_user(user_id)
        merged = Permission(
            view=bool(flags.get("view", user.permissions.view)),
            edit=bool(flags.get("edit", user.permissions.edit)),
            delete=bool(flags.get("delete", user.permissions.delete)),
            create=bool(flags.get("create", user.permissions.create)),
        )
        self.database.update_user(user_id, _permission_columns(merged))
        return User(id=user.id, username=user.username, role=user.role, permissions=merged)

    def update_role(self, user_id: int, role: Any) -> User:
        user = self.get_user(user_id)
        parsed_role = _parse_role(role)
        if user.role is UserRole.ADMIN and parsed_role is not UserRole.ADMIN:
            self._ensure_other_admin(user)
        self.database.update_user(user_id, {"role": parsed_role.value})
        return User(id=user.id, username=user.username, role=parsed_role, permissions=user.permissions)

    def delete_user(self, user_id: int) -> None:
        user = self.get_user(user_id)
        if user.role is UserRole.ADMIN:
            self._ensure_other_admin(user)
        self.database.delete_user(user_id)
        logger.info("Deleted user %s", user.username)

    def _ensure_other_admin(self, user: User) -> None:
        admins = [other for other in self.list_users() if other.role is UserRole.ADMIN and other.id != user.id]
        if not admins:
            raise ValidationError("at least one administrator must remain")


__all__ = [
    "UserService",
    "validate_permission",
    "require_permission",
    "require_admin",
    "ACTIONS",
]
