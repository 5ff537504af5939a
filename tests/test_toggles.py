from app.features.organizations.models import slugify
from app.features.organizations.toggles import is_enabled

from helpers import make_toggles, toggle


def test_missing_feature_is_disabled():
    assert not is_enabled(make_toggles(), "promotion")


def test_enabled_feature():
    assert is_enabled(make_toggles(toggle("promotion")), "promotion")


def test_disabled_feature_hides_enabled_sub_features():
    organization = make_toggles(toggle("promotion", enabled=False, email=True))

    assert not is_enabled(organization, "promotion", "email")


def test_sub_feature_must_exist_and_be_enabled():
    organization = make_toggles(toggle("promotion", email=True, video=False))

    assert is_enabled(organization, "promotion", "email")
    assert not is_enabled(organization, "promotion", "video")
    assert not is_enabled(organization, "promotion", "qr_code")


def test_no_organization():
    assert not is_enabled(None, "promotion")


def test_slugify():
    assert slugify("TechCorp  Solutions") == "techcorp-solutions"
    assert slugify("Acme, Inc.") == "acme-inc"
