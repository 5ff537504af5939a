"""
Pytest fixtures shared by the service and API tests.

Provides:
- A fresh SQLite file database per test (async engine + session)
- Factories for organizations and users
- A seeded tenant and a get_db override for HTTP tests
"""
import asyncio
import os

# Must be set before app modules read their configuration
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import pytest
import pytest_asyncio
from typing import Optional

from app.core.database.engine import build_engine, build_sessionmaker, init_db
from app.features.catalog.models import Feature
from app.features.organizations.models import Organization, OrganizationFeature, default_settings, slugify
from app.features.permissions.roles import FeatureLevel, UserRole
from app.features.users.auth import hash_password
from app.features.users.models import User

from helpers import TEST_PASSWORD, grant, toggle


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path}/test.db"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    async with build_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def make_org(db):
    """Factory: persist an organization with the given toggles."""
    async def _make(name: str = "Acme Corp", features=()) -> Organization:
        organization = Organization(
            name=name,
            slug=slugify(name),
            settings=default_settings(),
            features=[
                OrganizationFeature(
                    name=feature["name"],
                    is_enabled=feature["is_enabled"],
                    sub_features=feature["sub_features"],
                    position=position,
                )
                for position, feature in enumerate(features)
            ],
        )
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        return organization

    return _make


@pytest.fixture
def make_user(db):
    """Factory: persist a user with the given role, organization and grants."""
    async def _make(
        email: str,
        role: UserRole = UserRole.USER,
        organization: Optional[Organization] = None,
        permissions=(),
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(TEST_PASSWORD),
            first_name="Test",
            last_name=role.value.title(),
            role=role,
            organization_id=organization.id if organization is not None else None,
            permissions=list(permissions),
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


# ============================================================================
# HTTP fixtures (sync, for TestClient)
# ============================================================================

@pytest.fixture
def sessionmaker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/api.db")
    asyncio.run(init_db(engine))
    yield build_sessionmaker(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def override_get_db(sessionmaker):
    """Replacement for app.core.database.engine.get_db bound to the test database."""
    async def _get_db():
        async with sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _get_db


@pytest.fixture
def seed(sessionmaker):
    """
    Persist a small tenant: one organization with promotion.email enabled and
    promotion.video disabled, plus one user per role. Returns ids by name.
    """
    async def _seed():
        async with sessionmaker() as db:
            org = Organization(
                name="Acme",
                slug="acme",
                settings=default_settings(),
                features=[
                    OrganizationFeature(name="promotion", is_enabled=True, position=0,
                                        sub_features=toggle("promotion", email=True, video=False)["sub_features"]),
                ],
            )
            db.add(org)
            db.add(Feature(name="promotion", display_name="Promotion", feature_level=FeatureLevel.ORGANIZATION,
                           required_role=UserRole.ORGADMIN))
            db.add(Feature(name="system_management", display_name="System", feature_level=FeatureLevel.SYSTEM,
                           required_role=UserRole.SUPERADMIN))
            await db.flush()

            users = {
                "superadmin": User(email="root@x.com", role=UserRole.SUPERADMIN),
                "admin": User(email="admin@x.com", role=UserRole.ADMIN,
                              permissions=[grant("system_management", ["feature_management"], ["read", "write"])]),
                "orgadmin": User(email="boss@x.com", role=UserRole.ORGADMIN, organization_id=org.id),
                "user": User(email="user@x.com", role=UserRole.USER, organization_id=org.id,
                             permissions=[grant("promotion", ["email", "video"], ["read"])]),
            }
            for user in users.values():
                user.password_hash = hash_password(TEST_PASSWORD)
                db.add(user)
            await db.commit()

            ids = {name: user.id for name, user in users.items()}
            ids["org"] = org.id
            return ids

    return asyncio.run(_seed())
