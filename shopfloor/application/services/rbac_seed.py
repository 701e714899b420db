"""
Default permission catalog and roles.

Seeding is idempotent: existing permissions and roles are kept as they are,
only missing rows are created.
"""

from __future__ import annotations

from typing import TypedDict

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.domain.authorization import ADMIN_ACCESS_KEY, WILDCARD_KEY, PermissionLevel
from shopfloor.infrastructure.persistence.models.permission import Permission
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.models.user import User
from shopfloor.infrastructure.persistence.repositories.permission_repo import PermissionRepository
from shopfloor.infrastructure.persistence.repositories.role_repo import RoleRepository
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class RoleData(TypedDict):
    """Type definition for role configuration"""

    name: str
    description: str
    # "module.action" or "module.*" -> level
    permissions: dict[str, int]


# (module, action, description)
SYSTEM_PERMISSIONS = [
    # User management
    ("users", "read", "View users"),
    ("users", "create", "Create users"),
    ("users", "update", "Update users"),
    ("users", "delete", "Deactivate users"),
    # Role management
    ("roles", "read", "View roles"),
    ("roles", "create", "Create roles"),
    ("roles", "update", "Update roles"),
    ("roles", "delete", "Delete roles"),
    ("permissions", "read", "View permissions"),
    ("permissions", "assign", "Assign permissions"),
    # Time tracking
    ("timeTracking", "read", "View time tracking"),
    ("timeTracking", "create", "Create time tracking sessions"),
    ("timeTracking", "update", "Update time tracking sessions"),
    ("timeTracking", "delete", "Delete time tracking sessions"),
    ("timeTracking", "manageSettings", "Manage time tracking settings"),
    ("timeTracking", "viewReports", "View time tracking reports"),
    ("timeTracking", "exportReports", "Export time tracking reports"),
    ("timeTracking", "viewAll", "View all users time tracking"),
    # Leave
    ("leave", "read", "View leave requests"),
    ("leave", "create", "Create leave requests"),
    ("leave", "update", "Update leave requests"),
    ("leave", "delete", "Delete leave requests"),
    ("leave", "approve", "Approve or reject leave requests"),
    ("leave", "manageTypes", "Manage leave types"),
    ("leave", "viewAll", "View all users leave requests"),
    # Inventory
    ("inventory", "read", "View inventory and stock levels"),
    ("inventory", "create", "Create inventory items"),
    ("inventory", "update", "Update inventory items"),
    ("inventory", "manage", "Manage reservations and stock levels"),
    # Production guides
    ("production", "read", "View production guides"),
    ("production", "create", "Create production guides"),
    ("production", "update", "Update production guides"),
    ("production", "delete", "Delete production guides"),
    ("production", "work", "Log work on production guides"),
    ("production", "manageAll", "Advanced production management"),
    ("production", "assign", "Assign users to production guides"),
    # Other modules
    ("auditLogs", "read", "View audit logs"),
    ("quality", "read", "View quality control"),
    ("quality", "manage", "Manage quality control"),
    ("ocr", "process", "Process images with OCR"),
    ("ocr", "manage", "Manage OCR results"),
    ("dashboard", "read", "View dashboard"),
    ("scheduling", "read", "View schedules"),
    ("scheduling", "manage", "Manage schedules"),
    ("statistics", "read", "View basic statistics"),
    ("statistics", "viewReports", "View detailed reports"),
    ("statistics", "export", "Export statistics"),
    ("chat", "read", "Use chat"),
    ("admin", "access", "Administrator access to every module"),
    # Wildcard
    ("*", "*", "Super admin - all permissions"),
]


DEFAULT_ROLES: dict[str, RoleData] = {
    "admin": {
        "name": "Admin",
        "description": "Administrator with full access",
        "permissions": {WILDCARD_KEY: 3, ADMIN_ACCESS_KEY: 3},
    },
    "manager": {
        "name": "Manager",
        "description": "Manager with access to most features",
        "permissions": {
            "users.read": 2,
            "users.create": 2,
            "users.update": 2,
            "roles.read": 2,
            "permissions.read": 2,
            "timeTracking.read": 2,
            "timeTracking.create": 2,
            "timeTracking.update": 2,
            "timeTracking.manageSettings": 1,
            "timeTracking.viewReports": 2,
            "timeTracking.exportReports": 2,
            "timeTracking.viewAll": 2,
            "leave.*": 2,
            "production.*": 2,
            "inventory.read": 2,
            "statistics.*": 2,
            "auditLogs.read": 1,
            "dashboard.read": 2,
            "chat.read": 1,
        },
    },
    "warehouseman": {
        "name": "Warehouseman",
        "description": "Inventory handling",
        "permissions": {
            "inventory.*": 2,
            "production.read": 1,
            "timeTracking.read": 1,
            "timeTracking.create": 1,
            "dashboard.read": 1,
            "chat.read": 1,
        },
    },
    "employee": {
        "name": "Employee",
        "description": "Regular user with limited access",
        "permissions": {
            "users.read": 1,
            "timeTracking.read": 1,
            "timeTracking.create": 1,
            "leave.read": 1,
            "leave.create": 1,
            "production.read": 1,
            "production.work": 1,
            "dashboard.read": 1,
            "chat.read": 1,
        },
    },
}


def expand_grants(
    patterns: dict[str, int], catalog: dict[str, Permission]
) -> dict[str, tuple[Permission, int]]:
    """Resolve "module.*" patterns against the catalog; the highest level wins"""
    resolved: dict[str, tuple[Permission, int]] = {}
    for pattern, level in patterns.items():
        if level <= 0:
            continue
        if pattern.endswith(".*") and pattern != WILDCARD_KEY:
            module = pattern[:-2]
            keys = [key for key, perm in catalog.items() if perm.module == module]
        else:
            keys = [pattern]
        for key in keys:
            if key not in catalog:
                raise KeyError(f"Permission '{key}' is not in the catalog")
            current = resolved.get(key)
            if current is None or current[1] < level:
                resolved[key] = (catalog[key], min(level, PermissionLevel.FULL))
    return resolved


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """Create missing catalog permissions. Returns mapping of key -> Permission"""
    repo = PermissionRepository(db)
    catalog: dict[str, Permission] = {}
    for module, action, description in SYSTEM_PERMISSIONS:
        permission, created = await repo.get_or_create(module, action, description)
        if created:
            logger.info("Created permission %s", permission.key)
        catalog[permission.key] = permission
    return catalog


async def seed_roles(db: AsyncSession, catalog: dict[str, Permission]) -> dict[str, Role]:
    """Create missing default roles with their grants"""
    repo = RoleRepository(db, enable_audit=False)
    roles: dict[str, Role] = {}
    for code, role_data in DEFAULT_ROLES.items():
        existing = await repo.get_by_name(role_data["name"])
        if existing:
            logger.info("Role already exists: %s", role_data["name"])
            roles[code] = existing
            continue

        role = await repo.create(
            Role(name=role_data["name"], description=role_data["description"])
        )
        grants = expand_grants(role_data["permissions"], catalog)
        await repo.replace_grants(role, grants)
        logger.info("Created role %s with %d grants", role.name, len(grants))
        roles[code] = role
    return roles


async def ensure_admin_user(
    db: AsyncSession,
    admin_role: Role,
    login: str = "admin",
    email: str = "admin@example.com",
    password: str = "admin123",
) -> User:
    """Create the bootstrap administrator unless the login already exists"""
    repo = UserRepository(db, enable_audit=False)
    user = await repo.get_by_login(login)
    if user:
        logger.info("Admin user already exists: %s", login)
        return user

    user = await repo.create_user(
        login=login,
        email=email,
        password=password,
        first_name="Admin",
        last_name="User",
    )
    await repo.set_roles(user, [admin_role.id])
    logger.info("Created admin user %s", login)
    return user


async def seed_all(db: AsyncSession, admin_password: str | None = None) -> dict[str, Role]:
    catalog = await seed_permissions(db)
    roles = await seed_roles(db, catalog)
    if admin_password:
        await ensure_admin_user(db, roles["admin"], password=admin_password)
    return roles
