"""Pass registry: serial numbers, shared secrets and freshness markers."""

import typing as t

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.crypto import constant_time_compare

from wallet.exceptions import PassAlreadyExistsError, PassNotFoundError
from wallet.markers import next_marker, now_marker
from wallet.models import WalletPass, generate_auth_token

logger = structlog.get_logger(__name__)


class PassRegistry:
    """Durable store of passes keyed by serial number.

    Every mutation touches a single row. ``touch`` locks the row so
    concurrent bumps of the same pass serialize and each one gets its own
    strictly larger marker.
    """

    def create(
        self,
        serial_number: str,
        secret: str | None = None,
        *,
        pass_type_id: str | None = None,
        owner: t.Any = None,
        payload: dict[str, t.Any] | None = None,
    ) -> WalletPass:
        """Create a pass.

        Args:
            serial_number: Serial number, unique across all passes.
            secret: Shared secret; generated when omitted.
            pass_type_id: Pass Type ID; defaults to the configured one.
            owner: The user the pass belongs to.
            payload: Initial pass content.

        Returns:
            The new pass.

        Raises:
            PassAlreadyExistsError: If the serial number is taken.
        """
        if WalletPass.objects.filter(serial_number=serial_number).exists():
            raise PassAlreadyExistsError(serial_number)

        fields: dict[str, t.Any] = {
            "serial_number": serial_number,
            "auth_token": secret or generate_auth_token(),
            "marker": now_marker(),
            "payload": payload or {},
            "owner": owner,
        }
        if pass_type_id:
            fields["pass_type_id"] = pass_type_id

        try:
            with transaction.atomic():
                wallet_pass = WalletPass.objects.create(**fields)
        except IntegrityError as e:
            raise PassAlreadyExistsError(serial_number) from e

        logger.info("wallet_pass_created", serial=serial_number, pass_type_id=wallet_pass.pass_type_id)
        return wallet_pass

    def get(self, serial_number: str) -> WalletPass:
        """Return the pass for a serial number.

        Raises:
            PassNotFoundError: If no such pass exists.
        """
        try:
            return WalletPass.objects.get(serial_number=serial_number)
        except WalletPass.DoesNotExist:
            raise PassNotFoundError(serial_number)

    def touch(self, serial_number: str) -> int:
        """Bump the freshness marker of a pass.

        Returns:
            The new marker, strictly greater than the previous one.

        Raises:
            PassNotFoundError: If no such pass exists.
        """
        return self._update(serial_number)

    def update_payload(self, serial_number: str, payload: dict[str, t.Any]) -> int:
        """Replace the pass content and bump its marker in one transaction."""
        return self._update(serial_number, payload=payload)

    def void(self, serial_number: str) -> int:
        """Mark a pass voided and bump its marker so devices refetch it."""
        return self._update(serial_number, is_voided=True)

    def verify_secret(self, serial_number: str, presented: str | None) -> bool:
        """Check a presented secret against the pass's shared secret.

        Unknown serial numbers and empty secrets never verify.
        """
        if not presented:
            return False
        stored = WalletPass.objects.filter(serial_number=serial_number).values_list("auth_token", flat=True).first()
        if stored is None:
            return False
        return constant_time_compare(stored, presented)

    def _update(self, serial_number: str, **fields: t.Any) -> int:
        with transaction.atomic():
            current = (
                WalletPass.objects.select_for_update()
                .filter(serial_number=serial_number)
                .values_list("marker", flat=True)
                .first()
            )
            if current is None:
                raise PassNotFoundError(serial_number)

            marker = next_marker(current)
            WalletPass.objects.filter(serial_number=serial_number).update(
                marker=marker,
                updated_at=timezone.now(),
                **fields,
            )

        logger.info("wallet_pass_touched", serial=serial_number, marker=marker, fields=sorted(fields))
        return marker
