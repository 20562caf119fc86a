"""Tests for wallet/service.py."""

import typing as t
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth.models import AbstractBaseUser
from django.core.exceptions import ValidationError
from django.utils.http import http_date
from freezegun import freeze_time

from wallet.exceptions import (
    PassBuildError,
    PassNotFoundError,
    PushTransportError,
    UnauthorizedPassError,
    WalletNotConfiguredError,
)
from wallet.markers import format_marker
from wallet.models import WalletPass, WalletPassRegistration, WalletPassUpdateLog
from wallet.registry import PassRegistry
from wallet.service import WalletService, get_wallet_service
from wallet.tests.conftest import PASS_TYPE_ID
from wallet.tests.fakes import FakePassBuilder, FakePushTransport

pytestmark = pytest.mark.django_db


def _log_types(wallet_pass: WalletPass) -> list[str]:
    return list(wallet_pass.update_logs.order_by("created_at").values_list("update_type", flat=True))


class TestIssuePass:
    def test_creates_pass_for_owner(self, service: WalletService, user: AbstractBaseUser) -> None:
        wallet_pass, created = service.issue_pass(user, {"stamps": 0})

        assert created is True
        assert wallet_pass.owner == user
        assert wallet_pass.pass_type_id == PASS_TYPE_ID
        assert wallet_pass.payload == {"stamps": 0}
        assert wallet_pass.marker > 0
        assert _log_types(wallet_pass) == [WalletPassUpdateLog.UpdateType.PASS_ISSUED]

    def test_returns_existing_active_pass(self, service: WalletService, wallet_pass: WalletPass) -> None:
        issued, created = service.issue_pass(wallet_pass.owner)

        assert created is False
        assert issued == wallet_pass

    def test_voided_pass_is_replaced(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.registry.void("S1")

        issued, created = service.issue_pass(wallet_pass.owner)

        assert created is True
        assert issued.serial_number != "S1"

    def test_owner_cannot_hold_two_active_passes(
        self, registry: PassRegistry, wallet_pass: WalletPass, user: AbstractBaseUser
    ) -> None:
        with pytest.raises(ValidationError):
            registry.create("S2", "tok2", owner=user)

        assert WalletPass.objects.filter(owner=user, is_voided=False).count() == 1

    def test_concurrent_issue_returns_winning_pass(self, service: WalletService, wallet_pass: WalletPass) -> None:
        with patch.object(service, "_active_pass", side_effect=[None, wallet_pass]):
            issued, created = service.issue_pass(wallet_pass.owner)

        assert created is False
        assert issued == wallet_pass
        assert WalletPass.objects.count() == 1

    def test_not_configured(self, service: WalletService, user: AbstractBaseUser, settings: t.Any) -> None:
        settings.APPLE_WALLET_PASS_TYPE_ID = ""

        with pytest.raises(WalletNotConfiguredError):
            service.issue_pass(user)


class TestAuthenticate:
    def test_valid(self, service: WalletService, wallet_pass: WalletPass) -> None:
        assert service.authenticate(PASS_TYPE_ID, "S1", "tok1") == wallet_pass

    @pytest.mark.parametrize("token", ["wrong", "", None])
    def test_bad_secret(self, service: WalletService, wallet_pass: WalletPass, token: str | None) -> None:
        with pytest.raises(UnauthorizedPassError):
            service.authenticate(PASS_TYPE_ID, "S1", token)

    def test_pass_type_mismatch(self, service: WalletService, wallet_pass: WalletPass) -> None:
        with pytest.raises(UnauthorizedPassError):
            service.authenticate("pass.com.example.other", "S1", "tok1")

    def test_unknown_serial(self, service: WalletService) -> None:
        with pytest.raises(UnauthorizedPassError):
            service.authenticate(PASS_TYPE_ID, "missing", "tok1")


class TestDeviceRegistration:
    def test_register_logs_once(self, service: WalletService, wallet_pass: WalletPass) -> None:
        assert service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1") is True
        assert service.register_device("D1", PASS_TYPE_ID, "S1", "addr2", "tok1") is False

        assert _log_types(wallet_pass) == [WalletPassUpdateLog.UpdateType.DEVICE_REGISTERED]
        assert WalletPassRegistration.objects.get().push_token == "addr2"

    def test_register_unauthorized(self, service: WalletService, wallet_pass: WalletPass) -> None:
        with pytest.raises(UnauthorizedPassError):
            service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "nope")

        assert not WalletPassRegistration.objects.exists()

    def test_unregister(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        assert service.unregister_device("D1", PASS_TYPE_ID, "S1", "tok1") is True
        assert service.unregister_device("D1", PASS_TYPE_ID, "S1", "tok1") is False
        assert WalletPassUpdateLog.UpdateType.DEVICE_UNREGISTERED in _log_types(wallet_pass)

    def test_unregister_unauthorized(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        with pytest.raises(UnauthorizedPassError):
            service.unregister_device("D1", PASS_TYPE_ID, "S1", "nope")

        assert WalletPassRegistration.objects.exists()


class TestGetUpdatedPasses:
    def test_no_registrations(self, service: WalletService, wallet_pass: WalletPass) -> None:
        assert service.get_updated_passes("D1", PASS_TYPE_ID) == ([], None)

    def test_without_tag_returns_everything(
        self, service: WalletService, registry: PassRegistry, wallet_pass: WalletPass
    ) -> None:
        second = registry.create("S2", "tok2")
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")
        service.register_device("D1", PASS_TYPE_ID, "S2", "addr1", "tok2")

        serials, tag = service.get_updated_passes("D1", PASS_TYPE_ID)

        assert sorted(serials) == ["S1", "S2"]
        assert tag == format_marker(max(wallet_pass.marker, second.marker))

    def test_malformed_tag_returns_everything(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        serials, _ = service.get_updated_passes("D1", PASS_TYPE_ID, "yesterday")

        assert serials == ["S1"]

    def test_touch_then_poll_round_trip(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")
        before = format_marker(wallet_pass.marker)

        with patch("wallet.tasks.send_wallet_update_notifications.delay"):
            marker = service.touch_pass("S1")

        serials, tag = service.get_updated_passes("D1", PASS_TYPE_ID, before)
        assert serials == ["S1"]
        assert tag == format_marker(marker)

        serials, tag_again = service.get_updated_passes("D1", PASS_TYPE_ID, tag)
        assert serials == []
        assert tag_again == tag

    def test_other_pass_type_is_ignored(self, service: WalletService, wallet_pass: WalletPass) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        assert service.get_updated_passes("D1", "pass.com.example.other") == ([], None)


class TestGetPassForDevice:
    def test_returns_built_pass(
        self, service: WalletService, pass_builder: FakePassBuilder, wallet_pass: WalletPass
    ) -> None:
        result = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")

        assert result.content == f"PKPASS:S1:{wallet_pass.marker}".encode()
        assert result.last_modified.endswith("GMT")
        assert result.etag == f'"{wallet_pass.marker}"'
        assert pass_builder.built == ["S1"]
        assert WalletPassUpdateLog.UpdateType.PASS_FETCHED in _log_types(wallet_pass)

    def test_matching_etag_is_not_modified(
        self, service: WalletService, pass_builder: FakePassBuilder, wallet_pass: WalletPass
    ) -> None:
        first = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")

        again = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_none_match=first.etag)

        assert again.not_modified
        assert again.last_modified == first.last_modified
        assert pass_builder.built == ["S1"]

    def test_weak_etag_matches(self, service: WalletService, wallet_pass: WalletPass) -> None:
        first = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")

        again = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_none_match=f"W/{first.etag}")

        assert again.not_modified

    def test_if_modified_since_later_than_change_is_not_modified(
        self, service: WalletService, wallet_pass: WalletPass
    ) -> None:
        later = http_date(wallet_pass.marker // 1_000_000 + 1)

        result = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_modified_since=later)

        assert result.not_modified

    def test_if_modified_since_equal_to_change_is_modified(
        self, service: WalletService, wallet_pass: WalletPass
    ) -> None:
        first = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")

        again = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_modified_since=first.last_modified)

        assert again.content is not None

    def test_second_change_within_same_second_is_served(
        self, service: WalletService, registry: PassRegistry, wallet_pass: WalletPass
    ) -> None:
        with freeze_time("2030-01-01 00:00:00.100000"):
            registry.touch("S1")
            first = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")
        with freeze_time("2030-01-01 00:00:00.900000"):
            registry.touch("S1")
            by_date = service.get_pass_for_device(
                PASS_TYPE_ID, "S1", "tok1", if_modified_since=first.last_modified
            )
            by_etag = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_none_match=first.etag)

        wallet_pass.refresh_from_db()
        expected = f"PKPASS:S1:{wallet_pass.marker}".encode()
        assert by_date.content == expected
        assert by_etag.content == expected

    def test_garbage_if_modified_since_is_ignored(self, service: WalletService, wallet_pass: WalletPass) -> None:
        result = service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1", if_modified_since="not a date")

        assert result.content is not None

    def test_unknown_serial(self, service: WalletService) -> None:
        with pytest.raises(PassNotFoundError):
            service.get_pass_for_device(PASS_TYPE_ID, "missing", "tok1")

    def test_bad_secret(self, service: WalletService, wallet_pass: WalletPass) -> None:
        with pytest.raises(UnauthorizedPassError):
            service.get_pass_for_device(PASS_TYPE_ID, "S1", "nope")

    def test_builder_failure(self, registry: PassRegistry, wallet_pass: WalletPass) -> None:
        service = WalletService(registry=registry, pass_builder=FakePassBuilder(fail=True))

        with pytest.raises(PassBuildError):
            service.get_pass_for_device(PASS_TYPE_ID, "S1", "tok1")

    def test_foreign_builder_exception_is_wrapped(self, registry: PassRegistry, wallet_pass: WalletPass) -> None:
        builder = MagicMock()
        builder.build.side_effect = RuntimeError("zip failed")
        service = WalletService(registry=registry, pass_builder=builder)

        with pytest.raises(PassBuildError, match="zip failed"):
            service.build_pass(wallet_pass)


class TestPassChanges:
    def test_update_pass_stores_payload_and_schedules_wakeup(
        self, service: WalletService, wallet_pass: WalletPass, django_capture_on_commit_callbacks: t.Any
    ) -> None:
        with patch("wallet.tasks.send_wallet_update_notifications.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                marker = service.update_pass("S1", {"stamps": 4})

        wallet_pass.refresh_from_db()
        assert wallet_pass.payload == {"stamps": 4}
        assert wallet_pass.marker == marker
        mock_delay.assert_called_once_with("S1")
        assert WalletPassUpdateLog.UpdateType.PASS_TOUCHED in _log_types(wallet_pass)

    def test_wakeup_waits_for_commit(
        self, service: WalletService, wallet_pass: WalletPass, django_capture_on_commit_callbacks: t.Any
    ) -> None:
        with patch("wallet.tasks.send_wallet_update_notifications.delay") as mock_delay:
            with django_capture_on_commit_callbacks() as callbacks:
                service.touch_pass("S1")
                mock_delay.assert_not_called()

        assert len(callbacks) == 1

    def test_void_pass(self, service: WalletService, wallet_pass: WalletPass) -> None:
        with patch("wallet.tasks.send_wallet_update_notifications.delay"):
            marker = service.void_pass("S1")

        wallet_pass.refresh_from_db()
        assert wallet_pass.is_voided is True
        assert wallet_pass.marker == marker

    def test_touch_unknown(self, service: WalletService) -> None:
        with pytest.raises(PassNotFoundError):
            service.touch_pass("missing")


class TestSendUpdateNotifications:
    def test_sends_and_logs(
        self, service: WalletService, push_transport: FakePushTransport, wallet_pass: WalletPass
    ) -> None:
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        report = service.send_update_notifications("S1")

        assert report.delivered == ["addr1"]
        assert push_transport.sent == ["addr1"]
        log = wallet_pass.update_logs.get(update_type=WalletPassUpdateLog.UpdateType.PUSH_SENT)
        assert log.details == {"count": 1}

    def test_failures_and_pruning_are_logged(self, registry: PassRegistry, wallet_pass: WalletPass) -> None:
        transport = FakePushTransport(
            failures={
                "dead": PushTransportError("gone", status_code=410, reason="Unregistered"),
                "flaky": PushTransportError("busy", status_code=503, reason="ServiceUnavailable"),
            }
        )
        service = WalletService(registry=registry, push_client=transport)
        service.register_device("D1", PASS_TYPE_ID, "S1", "dead", "tok1")
        service.register_device("D2", PASS_TYPE_ID, "S1", "flaky", "tok1")

        report = service.send_update_notifications("S1")

        assert report.delivered == []
        assert report.pruned == ["dead"]
        failed = wallet_pass.update_logs.get(update_type=WalletPassUpdateLog.UpdateType.PUSH_FAILED)
        assert failed.details == {"count": 2, "reasons": ["ServiceUnavailable", "Unregistered"]}
        assert wallet_pass.update_logs.filter(update_type=WalletPassUpdateLog.UpdateType.REGISTRATION_PRUNED).exists()
        assert list(WalletPassRegistration.objects.values_list("push_token", flat=True)) == ["flaky"]

    def test_skips_when_push_not_configured(self, registry: PassRegistry, wallet_pass: WalletPass) -> None:
        transport = FakePushTransport(configured=False)
        service = WalletService(registry=registry, push_client=transport)
        service.register_device("D1", PASS_TYPE_ID, "S1", "addr1", "tok1")

        report = service.send_update_notifications("S1")

        assert report.attempted == 0
        assert transport.sent == []

    def test_no_registrations(
        self, service: WalletService, push_transport: FakePushTransport, wallet_pass: WalletPass
    ) -> None:
        report = service.send_update_notifications("S1")

        assert report.attempted == 0
        assert not wallet_pass.update_logs.filter(update_type=WalletPassUpdateLog.UpdateType.PUSH_SENT).exists()


def test_get_wallet_service_is_singleton() -> None:
    assert get_wallet_service() is get_wallet_service()
