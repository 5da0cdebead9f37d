"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import uuid
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("GATEWAY_RATE_LIMIT", "0")
os.environ.setdefault("PORTAL_HOSTS", "merchant.firststeps.test=merchant,accounting.firststeps.test=accounting")
os.environ.setdefault("SITE_URL", "https://firststeps.test")

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import clear_auth_cache
from tests.fakes import FakeSupabase


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_service_supabase] = lambda: db
    clear_auth_cache()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    clear_auth_cache()


@pytest.fixture
def make_user(db):
    """Seed a profile plus a valid bearer token; returns (profile_row, headers)."""
    def _make_user(role="user", username=None, top_up_balance=0, withdrawable_balance=0, **extra):
        user_id = str(uuid.uuid4())
        username = username or f"{role}_{user_id[:8]}"
        token = f"token-{user_id}"
        db.auth.add_user(user_id, f"{username}@users.firststeps.app", token=token)
        profile = db.seed(
            "profiles",
            id=user_id,
            username=username,
            first_name=extra.pop("first_name", username.title()),
            last_name=extra.pop("last_name", "Tester"),
            role=role,
            balance=top_up_balance + withdrawable_balance,
            top_up_balance=top_up_balance,
            withdrawable_balance=withdrawable_balance,
            referral_code=extra.pop("referral_code", username.upper()),
            **extra,
        )
        return profile, {"Authorization": f"Bearer {token}"}
    return _make_user
