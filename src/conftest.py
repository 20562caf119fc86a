"""
This conftest.py provides fixtures shared by all app tests.
"""

import typing as t

import pytest
from django.contrib.auth.models import AbstractBaseUser
from django.core.cache import cache
from django.test.client import Client
from ninja_jwt.tokens import RefreshToken


@pytest.fixture(autouse=True)
def reset_throttling(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test with an empty throttle history and a generous issue limit."""
    cache.clear()
    monkeypatch.setattr("common.throttling.PassIssueThrottle.rate", "1000/min")


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture
def user(django_user_model: t.Any) -> AbstractBaseUser:
    """A regular user."""
    return django_user_model.objects.create_user(  # type: ignore[no-any-return]
        username="stamp_user",
        email="stamp_user@example.com",
        password="pass",
    )


@pytest.fixture
def other_user(django_user_model: t.Any) -> AbstractBaseUser:
    """A second user who owns nothing of the first user's."""
    return django_user_model.objects.create_user(  # type: ignore[no-any-return]
        username="other_user",
        email="other_user@example.com",
        password="pass",
    )


def jwt_client(user: AbstractBaseUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def user_client(user: AbstractBaseUser) -> Client:
    """API client authenticated as ``user``."""
    return jwt_client(user)


@pytest.fixture
def other_user_client(other_user: AbstractBaseUser) -> Client:
    """API client authenticated as ``other_user``."""
    return jwt_client(other_user)
