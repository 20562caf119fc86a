"""Wallet pass configuration.

See: https://developer.apple.com/documentation/walletpasses
"""

from decouple import config

APPLE_WALLET_PASS_TYPE_ID: str = config("APPLE_WALLET_PASS_TYPE_ID", default="")
APPLE_WALLET_TEAM_ID: str = config("APPLE_WALLET_TEAM_ID", default="")
APPLE_WALLET_CERT_PATH: str = config("APPLE_WALLET_CERT_PATH", default="")
APPLE_WALLET_KEY_PATH: str = config("APPLE_WALLET_KEY_PATH", default="")
APPLE_WALLET_KEY_PASSWORD: str = config("APPLE_WALLET_KEY_PASSWORD", default="")
APPLE_WALLET_PUSH_SANDBOX: bool = config("APPLE_WALLET_PUSH_SANDBOX", default=False, cast=bool)

# Dotted path to the class that turns a WalletPass into a signed artifact.
WALLET_PASS_BUILDER: str = config("WALLET_PASS_BUILDER", default="")
WALLET_WEB_SERVICE_URL: str = config("WALLET_WEB_SERVICE_URL", default="http://localhost:8000/api/wallet")
WALLET_REGISTRATION_RETENTION_DAYS: int = config("WALLET_REGISTRATION_RETENTION_DAYS", default=30, cast=int)
