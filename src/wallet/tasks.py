"""Celery tasks for wallet pass operations.

Wake-ups run here, off the request path. They are not retried: the pass
marker stays raised, so the next poll or the next change delivers the
update anyway.
"""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = structlog.get_logger(__name__)


@shared_task(name="wallet.send_update_notifications")
def send_wallet_update_notifications(serial_number: str) -> dict[str, int]:
    """Send wallet pass update notifications for one pass.

    Args:
        serial_number: Serial number of the pass that changed.

    Returns:
        Dictionary with delivered, failed and pruned counts.
    """
    from wallet.service import get_wallet_service

    logger.info("sending_wallet_update_notifications", serial=serial_number)

    report = get_wallet_service().send_update_notifications(serial_number)

    return {
        "notifications_sent": len(report.delivered),
        "failed": len(report.failed),
        "pruned": len(report.pruned),
    }


@shared_task(name="wallet.cleanup_stale_registrations")
def cleanup_stale_registrations() -> dict[str, int]:
    """Remove registrations for passes voided longer than the retention window.

    Returns:
        Dictionary with 'deleted' count.
    """
    from wallet.models import WalletPassRegistration

    cutoff = timezone.now() - timedelta(days=settings.WALLET_REGISTRATION_RETENTION_DAYS)
    stale = WalletPassRegistration.objects.filter(
        wallet_pass__is_voided=True,
        wallet_pass__updated_at__lt=cutoff,
    )

    count, _ = stale.delete()
    if count > 0:
        logger.info("wallet_registrations_cleaned", deleted=count)

    return {"deleted": count}
