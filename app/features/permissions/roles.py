"""
Closed vocabularies for roles, actions and feature levels, plus the role
hierarchy helpers every other module relies on.

The hierarchy is a literal table on purpose; there is no dynamic role
definition.
"""
import enum


class UserRole(str, enum.Enum):
    USER = "USER"
    ORGADMIN = "ORGADMIN"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


class PermissionAction(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE = "manage"


class FeatureLevel(str, enum.Enum):
    """Which tier gates a catalog feature. Organization toggles apply only to ORGANIZATION."""
    ORGANIZATION = "ORGANIZATION"
    USER_ROLE = "USER_ROLE"
    SYSTEM = "SYSTEM"


class FeatureStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


ROLE_HIERARCHY: dict[UserRole, frozenset[UserRole]] = {
    UserRole.SUPERADMIN: frozenset({UserRole.ADMIN, UserRole.ORGADMIN, UserRole.USER}),
    UserRole.ADMIN: frozenset({UserRole.ORGADMIN, UserRole.USER}),
    UserRole.ORGADMIN: frozenset({UserRole.USER}),
    UserRole.USER: frozenset(),
}

ROLE_ORDER: tuple[UserRole, ...] = (
    UserRole.USER,
    UserRole.ORGADMIN,
    UserRole.ADMIN,
    UserRole.SUPERADMIN,
)

# Roles that operate at platform level and never belong to an organization
PLATFORM_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPERADMIN})

# Roles allowed to issue invitations at all
INVITER_ROLES: frozenset[UserRole] = frozenset({UserRole.ORGADMIN, UserRole.ADMIN, UserRole.SUPERADMIN})


def can_manage(actor_role: UserRole | str, target_role: UserRole | str) -> bool:
    """
    True if ``actor_role`` may assign, edit or invite ``target_role``.

    A role only manages roles strictly below it; SUPERADMIN is never a
    manageable target, not even by itself.
    """
    try:
        actor = UserRole(actor_role)
        target = UserRole(target_role)
    except ValueError:
        return False
    return target in ROLE_HIERARCHY[actor]


def role_rank(role: UserRole | str) -> int:
    """USER=0, ORGADMIN=1, ADMIN=2, SUPERADMIN=3."""
    return ROLE_ORDER.index(UserRole(role))


def has_minimum_role(role: UserRole | str, minimum: UserRole | str) -> bool:
    return role_rank(role) >= role_rank(minimum)


def is_platform_role(role: UserRole | str) -> bool:
    return UserRole(role) in PLATFORM_ROLES
