"""Apple Push Notification service client for Wallet pass updates.

When a pass changes we send an empty push notification to each registered
device; the device then asks our web service which passes changed and
downloads them.

Apple requires:
- HTTP/2 connection to api.push.apple.com (production) or api.sandbox.push.apple.com
- Authentication via Pass Type ID certificate (same cert used to sign passes)
- Empty JSON payload for wallet pass updates
- Topic header set to the Pass Type ID
"""

import ssl
from pathlib import Path

import httpx
import structlog
from django.conf import settings

from wallet.exceptions import PushTransportError

logger = structlog.get_logger(__name__)


# APNs endpoints
APNS_PRODUCTION_HOST = "api.push.apple.com"
APNS_SANDBOX_HOST = "api.sandbox.push.apple.com"
APNS_PORT = 443


class ApplePushError(PushTransportError):
    """Raised when APNs rejects a notification or cannot be reached."""


class ApplePushNotificationClient:
    """Client for sending Apple Push Notifications for wallet pass updates.

    Talks HTTP/2 to APNs with the Pass Type ID certificate and sends an empty
    payload to trigger the device to fetch the updated pass.
    """

    def __init__(
        self,
        cert_path: str | None = None,
        key_path: str | None = None,
        key_password: str | None = None,
        pass_type_id: str | None = None,
        use_sandbox: bool | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the push notification client.

        Args:
            cert_path: Path to Pass Type ID certificate (PEM format).
            key_path: Path to private key (PEM format).
            key_password: Password for private key if encrypted.
            pass_type_id: The Pass Type ID (e.g., pass.com.example.loyalty).
            use_sandbox: Whether to use sandbox APNs (usually False for wallet).
            transport: Optional httpx transport, replaces the TLS client setup.
        """
        self.cert_path = cert_path or settings.APPLE_WALLET_CERT_PATH
        self.key_path = key_path or settings.APPLE_WALLET_KEY_PATH
        self.key_password = key_password or settings.APPLE_WALLET_KEY_PASSWORD
        self.pass_type_id = pass_type_id or settings.APPLE_WALLET_PASS_TYPE_ID
        self.use_sandbox = settings.APPLE_WALLET_PUSH_SANDBOX if use_sandbox is None else use_sandbox

        self._host = APNS_SANDBOX_HOST if self.use_sandbox else APNS_PRODUCTION_HOST
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_ssl_context(self) -> ssl.SSLContext:
        """Create SSL context with client certificate authentication.

        Raises:
            ApplePushError: If certificates cannot be loaded.
        """
        cert_path = Path(self.cert_path)
        key_path = Path(self.key_path)

        if not cert_path.exists():
            raise ApplePushError(f"Certificate not found: {self.cert_path}")
        if not key_path.exists():
            raise ApplePushError(f"Key not found: {self.key_path}")

        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.minimum_version = ssl.TLSVersion.TLSv1_2
            context.load_cert_chain(
                certfile=str(cert_path),
                keyfile=str(key_path),
                password=self.key_password if self.key_password else None,
            )
            # Load default CA certificates for verifying Apple's server
            context.load_default_certs()
        except ssl.SSLError as e:
            raise ApplePushError(f"SSL configuration failed: {e}") from e

        return context

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP/2 client."""
        if self._client is None:
            if self._transport is not None:
                self._client = httpx.Client(transport=self._transport, timeout=httpx.Timeout(30.0, connect=10.0))
            else:
                self._client = httpx.Client(
                    http2=True,
                    verify=self._get_ssl_context(),
                    timeout=httpx.Timeout(30.0, connect=10.0),
                )
        return self._client

    def send_update_notification(self, push_token: str) -> bool:
        """Send a push notification to trigger pass update.

        Args:
            push_token: The device push token from registration.

        Returns:
            True if notification was sent successfully.

        Raises:
            ApplePushError: If the notification fails to send.
        """
        url = f"https://{self._host}:{APNS_PORT}/3/device/{push_token}"

        headers = {
            "apns-topic": self.pass_type_id,
            "apns-push-type": "background",
            "apns-priority": "5",  # Low priority for background updates
        }

        try:
            client = self._get_client()
            response = client.post(url, content="{}", headers=headers)
        except httpx.InvalidURL as e:
            # Token cannot form a request path.
            logger.warning("push_token_malformed", error=str(e))
            raise ApplePushError(f"Malformed push token: {e}", reason="BadDeviceToken") from e
        except httpx.HTTPError as e:
            logger.error(
                "push_notification_request_error",
                push_token=push_token[:20] + "...",
                error=str(e),
            )
            raise ApplePushError(f"Request failed: {e}") from e

        if response.status_code == 200:
            logger.info(
                "push_notification_sent",
                push_token=push_token[:20] + "...",
                status=response.status_code,
            )
            return True

        reason = None
        try:
            body = response.json()
        except ValueError:
            logger.debug("push_error_body_not_json", status=response.status_code)
        else:
            if isinstance(body, dict):
                reason = body.get("reason")

        logger.warning(
            "push_notification_failed",
            push_token=push_token[:20] + "...",
            status=response.status_code,
            reason=reason,
            body=response.text[:200],
        )

        raise ApplePushError(
            f"APNs returned status {response.status_code}",
            status_code=response.status_code,
            reason=reason,
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ApplePushNotificationClient":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def is_configured(self) -> bool:
        """Check if push notifications are properly configured."""
        return bool(self.cert_path and self.key_path and self.pass_type_id)
