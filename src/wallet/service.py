"""Wallet service for pass issuing, device registration and updates.

This module provides the service layer used by the controllers, tasks and
admin actions. It composes the pass registry, the device directory and the
update notifier with the external collaborators (push client, artifact
builder) and records the audit trail.
"""

import typing as t
from dataclasses import dataclass

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.http import http_date, parse_etags, parse_http_date_safe, quote_etag

from wallet.apple.push import ApplePushNotificationClient
from wallet.builders import load_pass_builder
from wallet.directory import DeviceDirectory
from wallet.exceptions import (
    PassAlreadyExistsError,
    PassBuildError,
    UnauthorizedPassError,
    WalletNotConfiguredError,
)
from wallet.markers import format_marker, parse_marker
from wallet.models import WalletPass, WalletPassUpdateLog, generate_serial_number
from wallet.notifier import Decision, NotificationReport, UpdateNotifier, decide
from wallet.protocols import PassArtifactBuilder, PushTransport
from wallet.registry import PassRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PassFetchResult:
    """A pass fetched by a device. ``content`` is None when not modified."""

    content: bytes | None
    last_modified: str
    etag: str

    @property
    def not_modified(self) -> bool:
        return self.content is None


class WalletService:
    """Service for managing wallet passes.

    This service provides a unified interface for:
    - Issuing passes to users and building their artifacts
    - Registering/unregistering devices for pass updates
    - Answering device polls for changed passes
    - Recording pass changes and waking registered devices
    """

    def __init__(
        self,
        registry: PassRegistry | None = None,
        directory: DeviceDirectory | None = None,
        push_client: PushTransport | None = None,
        pass_builder: PassArtifactBuilder | None = None,
    ) -> None:
        self.registry = registry or PassRegistry()
        self.directory = directory or DeviceDirectory()
        self._push_client = push_client
        self._pass_builder = pass_builder

    @property
    def push_client(self) -> PushTransport:
        """Get the push client, creating the APNs client if needed."""
        if self._push_client is None:
            self._push_client = ApplePushNotificationClient()
        return self._push_client

    @property
    def pass_builder(self) -> PassArtifactBuilder:
        """Get the configured pass builder.

        Raises:
            WalletNotConfiguredError: If no builder is configured.
        """
        if self._pass_builder is None:
            self._pass_builder = load_pass_builder()
        return self._pass_builder

    @property
    def notifier(self) -> UpdateNotifier:
        return UpdateNotifier(self.directory, self.push_client)

    def is_pass_type_supported(self, pass_type_id: str) -> bool:
        return bool(settings.APPLE_WALLET_PASS_TYPE_ID) and pass_type_id == settings.APPLE_WALLET_PASS_TYPE_ID

    # -------------------------------------------------------------------------
    # Issuing
    # -------------------------------------------------------------------------

    def issue_pass(self, owner: t.Any, payload: dict[str, t.Any] | None = None) -> tuple[WalletPass, bool]:
        """Return the owner's active pass, creating one on first request.

        An owner has at most one active pass per pass type. When a concurrent
        request wins the race, its pass is returned.

        Returns:
            Tuple of (pass, created).

        Raises:
            WalletNotConfiguredError: If no Pass Type ID is configured.
        """
        if not settings.APPLE_WALLET_PASS_TYPE_ID:
            raise WalletNotConfiguredError("Wallet pass type is not configured")

        existing = self._active_pass(owner)
        if existing is not None:
            return existing, False

        try:
            wallet_pass = self.registry.create(generate_serial_number(), owner=owner, payload=payload)
        except (PassAlreadyExistsError, ValidationError):
            existing = self._active_pass(owner)
            if existing is None:
                raise
            logger.info("wallet_pass_issue_race_lost", serial=existing.serial_number)
            return existing, False

        self._log(WalletPassUpdateLog.UpdateType.PASS_ISSUED, wallet_pass)
        return wallet_pass, True

    def _active_pass(self, owner: t.Any) -> WalletPass | None:
        return WalletPass.objects.filter(
            owner=owner,
            pass_type_id=settings.APPLE_WALLET_PASS_TYPE_ID,
            is_voided=False,
        ).first()

    def build_pass(self, wallet_pass: WalletPass) -> bytes:
        """Build the pass artifact.

        Raises:
            WalletNotConfiguredError: If no builder is configured.
            PassBuildError: If the builder fails.
        """
        builder = self.pass_builder
        try:
            return builder.build(wallet_pass)
        except PassBuildError:
            logger.error("pass_build_failed", serial=wallet_pass.serial_number, exc_info=True)
            raise
        except Exception as e:
            # Third-party builders raise their own exception types.
            logger.error("pass_build_failed", serial=wallet_pass.serial_number, exc_info=True)
            raise PassBuildError(f"Failed to build pass: {e}") from e

    # -------------------------------------------------------------------------
    # Device web service
    # -------------------------------------------------------------------------

    def authenticate(self, pass_type_id: str, serial_number: str, auth_token: str | None) -> WalletPass:
        """Check the pass secret and pass type of a device request.

        Raises:
            UnauthorizedPassError: If the secret or pass type does not match.
        """
        if not self.registry.verify_secret(serial_number, auth_token):
            raise UnauthorizedPassError("Invalid authentication token")
        wallet_pass = self.registry.get(serial_number)
        if wallet_pass.pass_type_id != pass_type_id:
            raise UnauthorizedPassError("Pass type mismatch")
        return wallet_pass

    def register_device(
        self,
        device_library_id: str,
        pass_type_id: str,
        serial_number: str,
        push_token: str,
        auth_token: str | None,
    ) -> bool:
        """Register a device to receive pass updates.

        Returns:
            True if registration was created, False if it already existed.

        Raises:
            UnauthorizedPassError: If the request is not authorized for the pass.
        """
        wallet_pass = self.authenticate(pass_type_id, serial_number, auth_token)
        created = self.directory.register(device_library_id, serial_number, push_token)
        if created:
            self._log(WalletPassUpdateLog.UpdateType.DEVICE_REGISTERED, wallet_pass, device_library_id)
        return created

    def unregister_device(
        self,
        device_library_id: str,
        pass_type_id: str,
        serial_number: str,
        auth_token: str | None,
    ) -> bool:
        """Unregister a device from pass updates.

        Returns:
            True if a registration was removed, False if there was none.

        Raises:
            UnauthorizedPassError: If the request is not authorized for the pass.
        """
        wallet_pass = self.authenticate(pass_type_id, serial_number, auth_token)
        removed = self.directory.unregister(device_library_id, serial_number)
        if removed:
            self._log(WalletPassUpdateLog.UpdateType.DEVICE_UNREGISTERED, wallet_pass, device_library_id)
        return removed

    def get_updated_passes(
        self,
        device_library_id: str,
        pass_type_id: str,
        passes_updated_since: str | None = None,
    ) -> tuple[list[str], str | None]:
        """Get the serial numbers of passes changed since a marker tag.

        A missing or malformed tag returns every registered pass.

        Returns:
            Tuple of (changed serial numbers, tag for the next poll). The tag
            is None when the device has no passes of this type.
        """
        passes = self.directory.list_passes_for_device(device_library_id, pass_type_id)
        if not passes:
            return [], None

        since = parse_marker(passes_updated_since)
        changed = [p.serial_number for p in passes if decide(since, p.marker) is Decision.CHANGED]
        last_updated = format_marker(max(p.marker for p in passes))

        logger.debug(
            "wallet_poll",
            device_id=device_library_id[:20],
            registered=len(passes),
            changed=len(changed),
        )
        return changed, last_updated

    def get_pass_for_device(
        self,
        pass_type_id: str,
        serial_number: str,
        auth_token: str | None,
        if_modified_since: str | None = None,
        if_none_match: str | None = None,
    ) -> PassFetchResult:
        """Get a pass for a device callback request.

        Conditional requests are answered from the pass marker. An ``ETag``
        matching the current marker is not modified. ``If-Modified-Since``
        only has whole-second resolution, so it counts as not modified only
        when it is strictly later than the second of the last change.

        Raises:
            PassNotFoundError: If the serial number is unknown.
            UnauthorizedPassError: If the request is not authorized for the pass.
            WalletNotConfiguredError: If no builder is configured.
            PassBuildError: If the builder fails.
        """
        self.registry.get(serial_number)
        wallet_pass = self.authenticate(pass_type_id, serial_number, auth_token)

        modified_at = wallet_pass.marker // 1_000_000
        last_modified = http_date(modified_at)
        etag = quote_etag(format_marker(wallet_pass.marker))

        if if_none_match:
            if etag in [e.removeprefix("W/") for e in parse_etags(if_none_match)]:
                return PassFetchResult(None, last_modified, etag)
        elif if_modified_since:
            client_time = parse_http_date_safe(if_modified_since)
            if client_time is not None and client_time > modified_at:
                return PassFetchResult(None, last_modified, etag)

        pkpass = self.build_pass(wallet_pass)
        self._log(WalletPassUpdateLog.UpdateType.PASS_FETCHED, wallet_pass, details={"size": len(pkpass)})
        return PassFetchResult(pkpass, last_modified, etag)

    # -------------------------------------------------------------------------
    # Pass changes
    # -------------------------------------------------------------------------

    def update_pass(self, serial_number: str, payload: dict[str, t.Any]) -> int:
        """Store new pass content and schedule wake-ups.

        The wake-up task is queued after the transaction commits, so a device
        never polls before the new marker is visible.

        Returns:
            The new marker.
        """
        marker = self.registry.update_payload(serial_number, payload)
        self._after_change(serial_number, marker)
        return marker

    def touch_pass(self, serial_number: str) -> int:
        """Mark a pass changed without new content and schedule wake-ups."""
        marker = self.registry.touch(serial_number)
        self._after_change(serial_number, marker)
        return marker

    def void_pass(self, serial_number: str) -> int:
        """Void a pass and schedule wake-ups so devices fetch the voided pass."""
        marker = self.registry.void(serial_number)
        self._after_change(serial_number, marker, voided=True)
        return marker

    def send_update_notifications(self, serial_number: str) -> NotificationReport:
        """Wake every device registered for a pass.

        Returns:
            The fan-out report; empty when push is not configured.
        """
        if not self.push_client.is_configured():
            logger.warning("push_not_configured_skipping_notifications", serial=serial_number)
            return NotificationReport(serial_number=serial_number)

        report = self.notifier.notify_all(serial_number)

        wallet_pass = WalletPass.objects.filter(serial_number=serial_number).first()
        if report.delivered:
            self._log(WalletPassUpdateLog.UpdateType.PUSH_SENT, wallet_pass, details={"count": len(report.delivered)})
        if report.failed:
            self._log(
                WalletPassUpdateLog.UpdateType.PUSH_FAILED,
                wallet_pass,
                details={"count": len(report.failed), "reasons": sorted(set(report.failed.values()))},
            )
        if report.pruned:
            self._log(
                WalletPassUpdateLog.UpdateType.REGISTRATION_PRUNED,
                wallet_pass,
                details={"count": len(report.pruned)},
            )
        return report

    def _after_change(self, serial_number: str, marker: int, **details: t.Any) -> None:
        wallet_pass = WalletPass.objects.filter(serial_number=serial_number).first()
        self._log(WalletPassUpdateLog.UpdateType.PASS_TOUCHED, wallet_pass, details={"marker": marker, **details})

        def send_update_notifications() -> None:
            from wallet.tasks import send_wallet_update_notifications

            send_wallet_update_notifications.delay(serial_number)

        transaction.on_commit(send_update_notifications)

    def _log(
        self,
        update_type: str,
        wallet_pass: WalletPass | None,
        device_library_id: str = "",
        details: dict[str, t.Any] | None = None,
    ) -> None:
        WalletPassUpdateLog.objects.create(
            wallet_pass=wallet_pass,
            device_library_id=device_library_id[:255],
            update_type=update_type,
            details=details or {},
        )


# Module-level singleton instance
_wallet_service: WalletService | None = None


def get_wallet_service() -> WalletService:
    """Get the wallet service singleton."""
    global _wallet_service
    if _wallet_service is None:
        _wallet_service = WalletService()
    return _wallet_service
