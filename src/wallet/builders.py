"""Loading of the configured pass artifact builder."""

from django.conf import settings
from django.utils.module_loading import import_string

from wallet.exceptions import WalletNotConfiguredError
from wallet.protocols import PassArtifactBuilder


def load_pass_builder(dotted_path: str | None = None) -> PassArtifactBuilder:
    """Instantiate the pass builder named by ``WALLET_PASS_BUILDER``.

    Raises:
        WalletNotConfiguredError: If no builder is configured or the path
            does not resolve.
    """
    path = dotted_path if dotted_path is not None else settings.WALLET_PASS_BUILDER
    if not path:
        raise WalletNotConfiguredError("No pass builder configured")
    try:
        builder_class = import_string(path)
    except ImportError as e:
        raise WalletNotConfiguredError(f"Cannot import pass builder {path!r}") from e
    return builder_class()  # type: ignore[no-any-return]
