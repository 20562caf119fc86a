"""Update notifier.

Two independent operations: ``decide`` tells a polling device whether a
pass changed since the marker it last saw, and ``UpdateNotifier.notify_all``
wakes every device registered for a pass. A failed wake-up never touches
the marker, so the next poll (or the next business event) still converges.
"""

import enum
from dataclasses import dataclass, field

import structlog

from wallet.directory import DeviceDirectory
from wallet.exceptions import PushTransportError
from wallet.protocols import PushTransport

logger = structlog.get_logger(__name__)


class Decision(enum.Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"


def decide(last_seen: int | None, current: int) -> Decision:
    """Compare a device's last-seen marker with the pass's current marker.

    Ordering is strict: equal markers are unchanged. A device without a
    marker has never synced and gets every pass.
    """
    if last_seen is None or current > last_seen:
        return Decision.CHANGED
    return Decision.UNCHANGED


@dataclass
class NotificationReport:
    """Outcome of one fan-out."""

    serial_number: str
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    pruned: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class UpdateNotifier:
    """Sends content-empty wake-ups to the devices registered for a pass."""

    def __init__(self, directory: DeviceDirectory, transport: PushTransport) -> None:
        self.directory = directory
        self.transport = transport

    def notify_all(self, serial_number: str) -> NotificationReport:
        """Wake every device registered for a pass.

        Best effort and at most once per call: a failure for one address is
        logged and the loop moves on. Addresses the push gateway reports as
        permanently invalid are removed from the directory.
        """
        report = NotificationReport(serial_number=serial_number)

        for push_token in self.directory.list_addresses_for_serial(serial_number):
            try:
                self.transport.send_update_notification(push_token)
            except PushTransportError as e:
                report.failed[push_token] = e.reason or str(e)
                logger.warning(
                    "wallet_wakeup_failed",
                    serial=serial_number,
                    push_token=push_token[:20] + "...",
                    status=e.status_code,
                    reason=e.reason,
                )
                if e.is_permanent:
                    self.directory.remove_address(push_token)
                    report.pruned.append(push_token)
            except Exception as e:
                # Third-party transports raise their own exception types.
                report.failed[push_token] = type(e).__name__
                logger.exception("wallet_wakeup_error", serial=serial_number, push_token=push_token[:20] + "...")
            else:
                report.delivered.append(push_token)

        logger.info(
            "wallet_wakeups_complete",
            serial=serial_number,
            total=report.attempted,
            successful=len(report.delivered),
            failed=len(report.failed),
            pruned=len(report.pruned),
        )
        return report
