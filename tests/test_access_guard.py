"""
HTTP tests for the require_access route guard, mounted on a small app of its own.
"""
from typing import Annotated

import pytest
from fastapi import APIRouter, Depends, FastAPI
from fastapi.testclient import TestClient

from app.core.database.engine import get_db
from app.core.errors import AccessDeniedError, AppError
from app.features.permissions.dependencies import raise_for_decision, require_access
from app.features.permissions.engine import authorize
from app.features.permissions.roles import PermissionAction, UserRole
from app.features.users.models import User
from app.main import app_error_handler

from helpers import auth


router = APIRouter()


@router.get("/promotions/email")
async def read_email_promotions(
    user: Annotated[User, Depends(require_access("promotion", PermissionAction.READ, "email"))]
):
    return {"user": user.id}


@router.get("/promotions/video")
async def read_video_promotions(
    user: Annotated[User, Depends(require_access("promotion", PermissionAction.READ, "video"))]
):
    return {"user": user.id}


@router.get("/promotions/manage")
async def manage_promotions(
    user: Annotated[User, Depends(
        require_access("promotion", PermissionAction.READ, "email", minimum_role=UserRole.ORGADMIN)
    )]
):
    return {"user": user.id}


guarded_app = FastAPI()
guarded_app.add_exception_handler(AppError, app_error_handler)
guarded_app.include_router(router)


@pytest.fixture
def client(override_get_db):
    guarded_app.dependency_overrides[get_db] = override_get_db
    with TestClient(guarded_app) as test_client:
        yield test_client
    guarded_app.dependency_overrides.clear()


def test_granted_and_enabled_is_allowed(client, seed):
    response = client.get("/promotions/email", headers=auth(seed["user"]))

    assert response.status_code == 200
    assert response.json() == {"user": seed["user"]}


def test_disabled_sub_feature_is_forbidden(client, seed):
    response = client.get("/promotions/video", headers=auth(seed["user"]))

    assert response.status_code == 403
    assert response.json() == {
        "error": "organization has disabled this feature",
        "reason": "organization has disabled this feature",
        "category": "organization_feature_disabled",
    }


def test_missing_grant_is_forbidden(client, seed):
    response = client.get("/promotions/email", headers=auth(seed["admin"]))

    assert response.status_code == 403
    assert response.json()["reason"] == "no permission record for feature"
    assert response.json()["category"] == "insufficient_permission"


def test_anonymous_is_unauthorized(client, seed):
    response = client.get("/promotions/email")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_minimum_role_is_checked_before_grants(client, seed):
    # USER holds the grant but ranks below ORGADMIN
    response = client.get("/promotions/manage", headers=auth(seed["user"]))

    assert response.status_code == 403
    assert response.json()["category"] == "insufficient_role"


def test_minimum_role_does_not_replace_grants(client, seed):
    response = client.get("/promotions/manage", headers=auth(seed["orgadmin"]))

    assert response.status_code == 403
    assert response.json()["category"] == "insufficient_permission"


def test_superadmin_passes_every_guard(client, seed):
    for path in ("/promotions/email", "/promotions/video", "/promotions/manage"):
        assert client.get(path, headers=auth(seed["superadmin"])).status_code == 200


def test_unauthenticated_decision_maps_to_401():
    with pytest.raises(AccessDeniedError) as exc_info:
        raise_for_decision(authorize(None, "promotion", PermissionAction.READ))

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}
    assert exc_info.value.to_dict()["category"] == "unauthenticated"
