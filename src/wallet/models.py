"""Models for wallet passes and device registrations.

A ``WalletPass`` is the server-side record of a pass handed to a user: its
serial number, the shared secret the wallet app presents on every callback,
and a freshness marker bumped whenever the pass content changes. Devices
register for updates of a pass with a push token; registrations are keyed
by the (device, pass) pair.
"""

import secrets
import uuid

from django.conf import settings
from django.db import models

from common.models import TimeStampedModel

AUTH_TOKEN_LENGTH = 32


def generate_auth_token() -> str:
    """Generate a secure authentication token for pass validation."""
    return secrets.token_urlsafe(AUTH_TOKEN_LENGTH)


def generate_serial_number() -> str:
    """Generate a new pass serial number."""
    return str(uuid.uuid4())


def default_pass_type_id() -> str:
    return settings.APPLE_WALLET_PASS_TYPE_ID


class WalletPass(TimeStampedModel):
    """A pass issued to a user.

    The ``marker`` is a 64-bit integer (microseconds since the epoch) that
    only ever increases. Devices echo the largest marker they have seen back
    to us as ``passesUpdatedSince``.
    """

    serial_number = models.CharField(
        max_length=64,
        unique=True,
        default=generate_serial_number,
        help_text="Serial number unique across all passes.",
    )
    pass_type_id = models.CharField(
        max_length=255,
        default=default_pass_type_id,
        db_index=True,
        help_text="Pass Type ID the pass was issued under.",
    )
    auth_token = models.CharField(
        max_length=64,
        default=generate_auth_token,
        editable=False,
        help_text="Shared secret the wallet app sends with every request for this pass.",
    )
    marker = models.BigIntegerField(
        default=0,
        db_index=True,
        help_text="Freshness marker, bumped on every content change.",
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Pass content handed to the artifact builder.",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet_passes",
        null=True,
        blank=True,
    )
    is_voided = models.BooleanField(default=False, db_index=True)

    class Meta:
        verbose_name = "Wallet Pass"
        verbose_name_plural = "Wallet Passes"
        indexes = [
            models.Index(fields=["owner", "pass_type_id"], name="wallet_pass_owner_type_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "pass_type_id"],
                condition=models.Q(is_voided=False),
                name="unique_active_pass_per_owner",
            )
        ]

    def __str__(self) -> str:
        return f"Pass {self.serial_number}"

    @property
    def web_service_url(self) -> str:
        """Base URL the wallet app calls back for this pass."""
        return str(settings.WALLET_WEB_SERVICE_URL)


class WalletPassRegistration(TimeStampedModel):
    """A device's interest in updates for one pass.

    A device may register several passes, and a pass may be registered on
    several devices (phone and watch), but each (device, pass) pair holds
    exactly one push token.
    """

    device_library_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Unique identifier provided by the wallet app for this device.",
    )
    wallet_pass = models.ForeignKey(
        WalletPass,
        on_delete=models.CASCADE,
        related_name="registrations",
    )
    push_token = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Token used to send push notifications to this device.",
    )

    class Meta:
        verbose_name = "Wallet Pass Registration"
        verbose_name_plural = "Wallet Pass Registrations"
        constraints = [
            models.UniqueConstraint(
                fields=["device_library_id", "wallet_pass"],
                name="unique_device_pass_registration",
            )
        ]

    def __str__(self) -> str:
        return f"Registration: {self.wallet_pass} on {self.device_library_id[:8]}..."

    @property
    def serial_number(self) -> str:
        return self.wallet_pass.serial_number


class WalletPassUpdateLog(TimeStampedModel):
    """Log of pass updates for debugging and auditing.

    Tracks when passes were updated and notifications sent, useful for
    debugging issues with pass updates not being received.
    """

    class UpdateType(models.TextChoices):
        """Types of pass update events."""

        PASS_ISSUED = "issued", "Pass Issued"
        PASS_TOUCHED = "touched", "Pass Content Changed"
        PASS_FETCHED = "fetched", "Pass Fetched by Device"
        PUSH_SENT = "push_sent", "Push Notification Sent"
        PUSH_FAILED = "push_failed", "Push Notification Failed"
        DEVICE_REGISTERED = "registered", "Device Registered"
        DEVICE_UNREGISTERED = "unregistered", "Device Unregistered"
        REGISTRATION_PRUNED = "pruned", "Registration Pruned"

    wallet_pass = models.ForeignKey(
        WalletPass,
        on_delete=models.CASCADE,
        related_name="update_logs",
        null=True,
        blank=True,
    )
    device_library_id = models.CharField(max_length=255, blank=True, default="")
    update_type = models.CharField(
        max_length=20,
        choices=UpdateType.choices,
        db_index=True,
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional details about the update event.",
    )

    class Meta:
        verbose_name = "Wallet Pass Update Log"
        verbose_name_plural = "Wallet Pass Update Logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["wallet_pass", "-created_at"], name="wallet_log_pass_created_idx"),
            models.Index(fields=["update_type", "-created_at"], name="wallet_log_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_update_type_display()} - {self.created_at}"
