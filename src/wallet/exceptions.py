"""Exceptions raised by the wallet app."""


class WalletError(Exception):
    """Base exception for wallet errors."""


class PassNotFoundError(WalletError):
    """Raised when no pass exists for a serial number."""

    def __init__(self, serial_number: str) -> None:
        super().__init__(f"Pass not found: {serial_number}")
        self.serial_number = serial_number


class PassAlreadyExistsError(WalletError):
    """Raised when creating a pass whose serial number is taken."""

    def __init__(self, serial_number: str) -> None:
        super().__init__(f"Pass already exists: {serial_number}")
        self.serial_number = serial_number


class UnauthorizedPassError(WalletError):
    """Raised when the presented pass secret does not match."""


class WalletNotConfiguredError(WalletError):
    """Raised when a wallet collaborator has no configuration."""


class PassTransportError(WalletError):
    """Raised when an external collaborator (push gateway, pass builder) fails."""


class PassBuildError(PassTransportError):
    """Raised when the pass artifact builder fails."""


class PushTransportError(PassTransportError):
    """Raised when a push notification cannot be delivered.

    Attributes:
        status_code: HTTP status code from the push gateway, if available.
        reason: Error reason from the push gateway, if available.
    """

    # Reasons meaning the token will never work again.
    PERMANENT_REASONS = frozenset({"BadDeviceToken", "Unregistered", "DeviceTokenNotForTopic"})

    def __init__(self, message: str, status_code: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason

    @property
    def is_permanent(self) -> bool:
        """Whether the address is permanently invalid and should be dropped."""
        return self.status_code == 410 or self.reason in self.PERMANENT_REASONS
