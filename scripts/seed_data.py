"""
Seed script to populate the feature catalog and the bootstrap SUPERADMIN.

Run this script after database initialization to create:
- Default catalog features and their sub-features
- A SUPERADMIN holding grants for every catalog feature

Both steps skip anything that already exists, so the script can be re-run.
The SUPERADMIN password is read from SUPERADMIN_PASSWORD and never logged.

Usage:
    python -m scripts.seed_data
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db, init_db
from app.features.catalog.models import Feature, SubFeature
from app.features.permissions.roles import FeatureLevel, PermissionAction, UserRole
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

ALL_ACTIONS = [action.value for action in PermissionAction]
READ_ONLY = [PermissionAction.READ.value]
NO_DELETE = [PermissionAction.READ.value, PermissionAction.WRITE.value, PermissionAction.MANAGE.value]


# (name, display_name, description, required_role, feature_level, sub_features)
# sub_features: (name, display_name, description, actions)
DEFAULT_FEATURES = [
    ("promotion", "Promotion Management", "Manage promotional campaigns and offers",
     UserRole.ORGADMIN, FeatureLevel.ORGANIZATION, [
         ("email", "Email Promotions", "Email-based promotional campaigns", ALL_ACTIONS),
         ("unique_code", "Unique Code Promotions", "Unique code-based promotions", ALL_ACTIONS),
         ("qr_code", "QR Code Promotions", "QR code-based promotions", ALL_ACTIONS),
         ("video", "Video Promotions", "Video-based promotional content", ALL_ACTIONS),
         ("joining_bonus", "Joining Bonus", "New member joining bonuses", ALL_ACTIONS),
     ]),
    ("merchandise", "Merchandise Management", "Manage merchandise and rewards",
     UserRole.ORGADMIN, FeatureLevel.ORGANIZATION, [
         ("experience", "Experience Rewards", "Experience-based merchandise", ALL_ACTIONS),
         ("loaded_value", "Loaded Value", "Value-loaded merchandise", ALL_ACTIONS),
         ("autograph", "Autograph Items", "Autographed merchandise", ALL_ACTIONS),
         ("merch_level", "Merchandise Level", "Tiered merchandise levels", ALL_ACTIONS),
     ]),
    ("user_management", "User Management", "Manage users and permissions",
     UserRole.ORGADMIN, FeatureLevel.ORGANIZATION, [
         ("view_users", "View Users", "View user listings", READ_ONLY),
         ("manage_users", "Manage Users", "Create, update and deactivate users", ALL_ACTIONS),
         ("manage_permissions", "Manage Permissions", "Assign and modify user permissions", NO_DELETE),
     ]),
    ("organization_management", "Organization Management", "Manage organizations and settings",
     UserRole.ADMIN, FeatureLevel.USER_ROLE, [
         ("view_organizations", "View Organizations", "View organization listings", READ_ONLY),
         ("manage_organizations", "Manage Organizations", "Create and update organizations", ALL_ACTIONS),
         ("manage_features", "Manage Features", "Enable/disable organization features", NO_DELETE),
     ]),
    ("partner_management", "Partner Management", "Manage sponsorship partners",
     UserRole.ORGADMIN, FeatureLevel.ORGANIZATION, [
         ("view_partners", "View Partners", "View partner listings", READ_ONLY),
         ("manage_partners", "Manage Partners", "Create, update and delete partners", ALL_ACTIONS),
         ("payment_processing", "Payment Processing", "Process sponsorship payments", NO_DELETE),
     ]),
    ("system_management", "System Management", "System-wide management features",
     UserRole.SUPERADMIN, FeatureLevel.SYSTEM, [
         ("feature_management", "Feature Management", "Manage system features", ALL_ACTIONS),
         ("platform_settings", "Platform Settings", "Configure platform settings", NO_DELETE),
     ]),
]


async def seed_features(db: AsyncSession) -> list[Feature]:
    """
    Create default catalog features.

    Returns:
        Every catalog feature, existing or new
    """
    log.info("Creating default catalog features...")
    created = 0

    for name, display_name, description, required_role, level, sub_features in DEFAULT_FEATURES:
        result = await db.execute(select(Feature).where(Feature.name == name))
        if result.scalars().first() is not None:
            log.debug(f"Feature '{name}' already exists, skipping")
            continue

        db.add(Feature(
            name=name,
            display_name=display_name,
            description=description,
            required_role=required_role,
            is_system_feature=level == FeatureLevel.SYSTEM,
            feature_level=level,
            sub_features=[
                SubFeature(name=sub_name, display_name=sub_display, description=sub_description,
                           actions=list(actions), position=position)
                for position, (sub_name, sub_display, sub_description, actions) in enumerate(sub_features)
            ],
        ))
        created += 1
        log.info(f"Created feature: {name}")

    await db.commit()

    result = await db.execute(select(Feature).order_by(Feature.name))
    features = list(result.scalars().all())
    log.info(f"Created {created} features ({len(features)} in catalog)")
    return features


async def seed_superadmin(db: AsyncSession, features: list[Feature]) -> User | None:
    """
    Create the bootstrap SUPERADMIN with grants for the whole catalog.

    Skipped when a SUPERADMIN already exists or SUPERADMIN_PASSWORD is unset.
    """
    result = await db.execute(select(User).where(User.role == UserRole.SUPERADMIN))
    existing = result.scalars().first()
    if existing is not None:
        log.debug(f"SUPERADMIN {existing.email} already exists, skipping")
        return existing

    if not config.SUPERADMIN_PASSWORD:
        log.warning("SUPERADMIN_PASSWORD is not set; skipping SUPERADMIN creation")
        return None

    superadmin = User(
        email=config.SUPERADMIN_EMAIL.strip().lower(),
        password_hash=hash_password(config.SUPERADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        role=UserRole.SUPERADMIN,
        organization_id=None,
        permissions=[
            {
                "feature": feature.name,
                "sub_features": [sub.name for sub in feature.sub_features],
                "actions": ALL_ACTIONS,
            }
            for feature in features
        ],
        is_active=True,
    )
    db.add(superadmin)
    await db.commit()
    await db.refresh(superadmin)

    log.info(f"Created SUPERADMIN: {superadmin.email}")
    return superadmin


async def main():
    """Main function to seed the catalog and the SUPERADMIN."""
    log.info("Starting seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            features = await seed_features(db)
            await seed_superadmin(db, features)
            log.info("Seeding completed successfully!")

        except Exception as e:
            log.error(f"Error seeding data: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
