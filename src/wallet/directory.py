"""Device directory: which devices want updates for which passes."""

import structlog
from django.db import transaction

from wallet.exceptions import PassNotFoundError
from wallet.models import WalletPass, WalletPassRegistration

logger = structlog.get_logger(__name__)


class DeviceDirectory:
    """Durable store of (device, pass) registrations and their push tokens."""

    def register(self, device_library_id: str, serial_number: str, push_token: str) -> bool:
        """Register a device for updates of a pass, or replace its push token.

        Returns:
            True if the registration was created, False if it already existed.

        Raises:
            PassNotFoundError: If no pass has this serial number.
        """
        wallet_pass = WalletPass.objects.filter(serial_number=serial_number).first()
        if wallet_pass is None:
            raise PassNotFoundError(serial_number)

        with transaction.atomic():
            _, created = WalletPassRegistration.objects.update_or_create(
                device_library_id=device_library_id,
                wallet_pass=wallet_pass,
                defaults={"push_token": push_token},
            )

        logger.info(
            "device_registered" if created else "device_registration_updated",
            serial=serial_number,
            device_id=device_library_id[:20],
        )
        return created

    def unregister(self, device_library_id: str, serial_number: str) -> bool:
        """Remove a registration.

        Unknown pairs are ignored.

        Returns:
            True if a registration was removed.
        """
        deleted_count, _ = WalletPassRegistration.objects.filter(
            device_library_id=device_library_id,
            wallet_pass__serial_number=serial_number,
        ).delete()

        if deleted_count:
            logger.info("device_unregistered", serial=serial_number, device_id=device_library_id[:20])

        return deleted_count > 0

    def list_addresses_for_serial(self, serial_number: str) -> list[str]:
        """Return the distinct push tokens registered for a pass."""
        tokens = (
            WalletPassRegistration.objects.filter(wallet_pass__serial_number=serial_number)
            .order_by("push_token")
            .values_list("push_token", flat=True)
            .distinct()
        )
        return list(tokens)

    def list_passes_for_device(self, device_library_id: str, pass_type_id: str) -> list[WalletPass]:
        """Return the passes of one pass type registered on a device."""
        return list(
            WalletPass.objects.filter(
                registrations__device_library_id=device_library_id,
                pass_type_id=pass_type_id,
            )
            .order_by("serial_number")
        )

    def remove_address(self, push_token: str) -> int:
        """Delete every registration using a push token.

        Returns:
            Number of registrations removed.
        """
        deleted_count, _ = WalletPassRegistration.objects.filter(push_token=push_token).delete()
        if deleted_count:
            logger.info("push_token_pruned", push_token=push_token[:20] + "...", registrations=deleted_count)
        return deleted_count
