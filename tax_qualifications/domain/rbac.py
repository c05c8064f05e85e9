"""Role-based access control matrix.

Brokers work only on their own qualifications. Administrators manage accounts
and audit data and are denied access to qualification data altogether.
"""
from __future__ import annotations

from enum import Enum

from .errors import AuthorizationError
from .models import Role, UserProfile


class Permission(str, Enum):
    VIEW_QUALIFICATIONS = "viewQualifications"
    CREATE_QUALIFICATION = "createQualification"
    EDIT_QUALIFICATION = "editQualification"
    DELETE_QUALIFICATION = "deleteQualification"
    BULK_UPLOAD = "bulkUpload"
    GENERATE_REPORTS = "generateReports"
    MANAGE_USERS = "manageUsers"
    VIEW_AUDIT_LOGS = "viewAuditLogs"
    PERFORM_MAINTENANCE = "performMaintenance"
    ACCESS_BROKER_DASHBOARD = "accessBrokerDashboard"
    ACCESS_ADMIN_DASHBOARD = "accessAdminDashboard"


PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.BROKER: frozenset(
        {
            Permission.VIEW_QUALIFICATIONS,
            Permission.CREATE_QUALIFICATION,
            Permission.EDIT_QUALIFICATION,
            Permission.DELETE_QUALIFICATION,
            Permission.BULK_UPLOAD,
            Permission.GENERATE_REPORTS,
            Permission.ACCESS_BROKER_DASHBOARD,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Permission.MANAGE_USERS,
            Permission.VIEW_AUDIT_LOGS,
            Permission.PERFORM_MAINTENANCE,
            Permission.ACCESS_ADMIN_DASHBOARD,
        }
    ),
}

# Permissions that additionally require the caller to own the resource.
OWNED_PERMISSIONS = frozenset(
    {
        Permission.VIEW_QUALIFICATIONS,
        Permission.EDIT_QUALIFICATION,
        Permission.DELETE_QUALIFICATION,
    }
)

DASHBOARD_ROUTES = {Role.BROKER: "/dashboard", Role.ADMIN: "/admin"}


def can(role: Role | str, permission: Permission, owner_id: str | None = None, user_id: str | None = None) -> bool:
    try:
        role = Role(role)
    except ValueError:
        return False
    if permission not in PERMISSIONS[role]:
        return False
    if permission in OWNED_PERMISSIONS and owner_id is not None:
        return owner_id == user_id
    return True


def require(actor: UserProfile, permission: Permission, owner_id: str | None = None) -> None:
    """Raise :class:`AuthorizationError` unless ``actor`` holds ``permission``."""
    if not actor.active:
        raise AuthorizationError(f"La cuenta {actor.email} está desactivada")
    if not can(actor.role, permission, owner_id=owner_id, user_id=actor.uid):
        raise AuthorizationError(f"El rol {Role(actor.role).value} no tiene permiso para {permission.value}")


def dashboard_route(role: Role | str) -> str:
    try:
        return DASHBOARD_ROUTES[Role(role)]
    except ValueError:
        return "/login"


def permissions_for(role: Role | str) -> dict[str, object]:
    label = role.value if isinstance(role, Role) else str(role)
    return {
        "role": label,
        "permissions": {permission.value: can(role, permission) for permission in Permission},
    }
