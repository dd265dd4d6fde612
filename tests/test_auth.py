"""Tests for status API credentials and tokens."""

from dataclasses import replace
from datetime import timedelta

import pytest

from afkguard.auth import StatusAuth, hash_password, password_context


@pytest.fixture
def auth(minimal_settings):
    return StatusAuth(replace(minimal_settings, dashboard_username="admin", dashboard_password="testpass"))


def test_password_hashing():
    hashed = hash_password("s3cret")

    assert hashed != "s3cret"
    assert password_context.verify("s3cret", hashed)
    assert not password_context.verify("wrong", hashed)


def test_plain_text_password(auth):
    assert auth.check_credentials("admin", "testpass")
    assert not auth.check_credentials("admin", "nope")
    assert not auth.check_credentials("root", "testpass")


def test_hashed_password(minimal_settings):
    auth = StatusAuth(
        replace(minimal_settings, dashboard_username="admin", dashboard_password=hash_password("testpass"))
    )

    assert auth.check_credentials("admin", "testpass")
    assert not auth.check_credentials("admin", "testpass2")


def test_login_disabled_without_credentials(minimal_settings):
    auth = StatusAuth(minimal_settings)

    assert not auth.enabled
    assert not auth.check_credentials("admin", "")


def test_token_round_trip(auth, minimal_settings):
    token = auth.issue_token("admin")

    assert auth.decode(token)["sub"] == "admin"
    other = StatusAuth(replace(minimal_settings, dashboard_secret_key="other-key"))
    assert other.decode(token) is None


def test_expired_token_is_rejected(auth):
    token = auth.issue_token("admin", lifetime=timedelta(seconds=-1))
    assert auth.decode(token) is None
