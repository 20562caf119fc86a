"""Test fixtures for wallet app tests.

Push delivery and pass building are external collaborators; the fixtures
here replace them with the recording fakes from ``wallet.tests.fakes`` and
install a ``WalletService`` wired to them as the module singleton, so the
controllers and tasks use it too.
"""

import typing as t
from collections.abc import Generator

import pytest
from django.contrib.auth.models import AbstractBaseUser
from django.test.client import Client

import wallet.service
from wallet.directory import DeviceDirectory
from wallet.models import WalletPass
from wallet.registry import PassRegistry
from wallet.service import WalletService
from wallet.tests.fakes import FakePassBuilder, FakePushTransport

PASS_TYPE_ID = "pass.com.example.test"


@pytest.fixture(autouse=True)
def apple_wallet_configured(settings: t.Any) -> None:
    """Configure wallet settings for tests."""
    settings.APPLE_WALLET_PASS_TYPE_ID = PASS_TYPE_ID
    settings.APPLE_WALLET_TEAM_ID = "TEAM123"
    settings.APPLE_WALLET_CERT_PATH = "/path/cert.pem"
    settings.APPLE_WALLET_KEY_PATH = "/path/key.pem"
    settings.WALLET_PASS_BUILDER = "wallet.tests.fakes.FakePassBuilder"


@pytest.fixture(autouse=True)
def reset_wallet_service() -> Generator[None, None, None]:
    """Make sure no test sees a service singleton built by another."""
    wallet.service._wallet_service = None
    yield
    wallet.service._wallet_service = None


@pytest.fixture
def registry() -> PassRegistry:
    return PassRegistry()


@pytest.fixture
def directory() -> DeviceDirectory:
    return DeviceDirectory()


@pytest.fixture
def push_transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def pass_builder() -> FakePassBuilder:
    return FakePassBuilder()


@pytest.fixture
def service(
    registry: PassRegistry,
    directory: DeviceDirectory,
    push_transport: FakePushTransport,
    pass_builder: FakePassBuilder,
) -> WalletService:
    """A WalletService wired to the fakes and installed as the singleton."""
    svc = WalletService(
        registry=registry,
        directory=directory,
        push_client=push_transport,
        pass_builder=pass_builder,
    )
    wallet.service._wallet_service = svc
    return svc


@pytest.fixture
def wallet_pass(registry: PassRegistry, user: AbstractBaseUser) -> WalletPass:
    """Pass S1 with secret tok1, owned by ``user``."""
    return registry.create("S1", "tok1", owner=user, payload={"stamps": 3})


@pytest.fixture
def device_client() -> Client:
    """Client authenticated the way the wallet app authenticates for pass S1."""
    return Client(HTTP_AUTHORIZATION="ApplePass tok1")
