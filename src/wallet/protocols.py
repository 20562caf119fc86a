"""Protocols for the external collaborators of the wallet app.

Pass artifact construction (archive, manifest, signature) and push delivery
happen outside this project; these protocols are the seams they plug into.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from wallet.models import WalletPass


class PassArtifactBuilder(Protocol):
    """Builds the signed pass file a device downloads."""

    content_type: str
    file_extension: str

    def build(self, wallet_pass: "WalletPass") -> bytes:
        """Build the pass file for the given pass.

        Args:
            wallet_pass: The pass, including serial, secret and payload.

        Returns:
            The pass file as bytes (e.g., .pkpass for Apple).

        Raises:
            PassBuildError: If the artifact cannot be built.
        """
        ...


class PushTransport(Protocol):
    """Delivers content-empty wake-ups to devices."""

    def send_update_notification(self, push_token: str) -> bool:
        """Send one wake-up.

        Raises:
            PushTransportError: If the push gateway rejects or cannot be reached.
        """
        ...

    def is_configured(self) -> bool:
        """Whether the transport has the credentials it needs."""
        ...
