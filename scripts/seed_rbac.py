"""
Seed the permission catalog, the default roles and optionally an admin user.

Usage:
    python -m scripts.seed_rbac
    ADMIN_PASSWORD=... python -m scripts.seed_rbac
"""
import asyncio
import os

from shopfloor.application.services.rbac_seed import SYSTEM_PERMISSIONS, seed_all
from shopfloor.infrastructure.persistence.database import AsyncSessionLocal
from shopfloor.shared.telemetry.logging import setup_logging


async def main():
    setup_logging()
    admin_password = os.environ.get("ADMIN_PASSWORD")

    async with AsyncSessionLocal() as db:
        print(f"\n🌱 Seeding {len(SYSTEM_PERMISSIONS)} permissions and the default roles...\n")
        roles = await seed_all(db, admin_password=admin_password)
        await db.commit()

    for code, role in roles.items():
        print(f"  ✓ {code}: {role.name}")
    if admin_password:
        print("  ✓ Admin user 'admin' ensured")
    print("\n✅ RBAC seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
