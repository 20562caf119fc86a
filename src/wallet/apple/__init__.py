"""Apple Wallet integration."""

from wallet.apple.push import ApplePushNotificationClient

__all__ = ["ApplePushNotificationClient"]
