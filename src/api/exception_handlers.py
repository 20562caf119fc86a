"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from wallet.exceptions import (
    PassAlreadyExistsError,
    PassNotFoundError,
    PassTransportError,
    UnauthorizedPassError,
    WalletNotConfiguredError,
)

logger = structlog.get_logger(__name__)

SENSITIVE_KEYS = {"password", "token", "pushtoken", "x-api-key", "authorization", "authentication"}


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    data = {"detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    json_payload = None
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            json_payload = obfuscate(orjson.loads(request.body))
        except (orjson.JSONDecodeError, AttributeError):
            json_payload = None
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        exc_info=True,
        stack_info=True,
        request_method=request.method,
        request_path=request.path,
        request_headers=obfuscate(dict(request.headers)),
        json_payload=json_payload,
    )
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.error("VALIDATION_ERROR", exc_info=True, stack_info=True)
    error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    return Response(status=400, data={"errors": error_dict})


def handle_pass_not_found_error(request: HttpRequest, exc: PassNotFoundError | t.Type[PassNotFoundError]) -> Response:
    """Handle an unknown pass serial number."""
    return Response(status=404, data={"detail": "Pass not found."})


def handle_unauthorized_pass_error(
    request: HttpRequest, exc: UnauthorizedPassError | t.Type[UnauthorizedPassError]
) -> Response:
    """Handle a pass secret mismatch without leaking which check failed."""
    return Response(status=401, data={"detail": "Unauthorized."})


def handle_pass_already_exists_error(
    request: HttpRequest, exc: PassAlreadyExistsError | t.Type[PassAlreadyExistsError]
) -> Response:
    """Handle a duplicate pass serial number."""
    return Response(status=409, data={"detail": "Pass already exists."})


def handle_wallet_not_configured_error(
    request: HttpRequest, exc: WalletNotConfiguredError | t.Type[WalletNotConfiguredError]
) -> Response:
    """Handle a missing wallet configuration."""
    logger.error("WALLET_NOT_CONFIGURED", error=str(exc))
    return Response(status=503, data={"detail": "Wallet passes are not configured."})


def handle_pass_transport_error(
    request: HttpRequest, exc: PassTransportError | t.Type[PassTransportError]
) -> Response:
    """Handle a failed call to an external wallet collaborator."""
    logger.error("WALLET_TRANSPORT_FAILURE", error=str(exc))
    return Response(status=502, data={"detail": "Upstream wallet service failed."})


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
