"""Django Ninja controllers for wallet pass API endpoints.

This module provides two sets of endpoints:

1. Wallet Web Service API (at /api/wallet/v1/...)
   - Device registration/unregistration
   - Changed-pass polling and pass retrieval
   - Error logging
   These are called by the wallet app on the device, not by our frontend.

2. User-facing API (at /api/passes/...)
   - Issue, list and download passes
"""

import typing as t

import structlog
from django.http import HttpRequest, HttpResponse
from ninja import Router
from ninja_extra import api_controller, route
from ninja_extra.controllers.base import ControllerBase
from ninja_jwt.authentication import JWTAuth

from common.throttling import PassIssueThrottle
from wallet.exceptions import (
    PassBuildError,
    PassNotFoundError,
    UnauthorizedPassError,
    WalletNotConfiguredError,
)
from wallet.models import WalletPass
from wallet.schemas import (
    DeviceRegistrationPayload,
    IssuePassPayload,
    LogPayload,
    SerialNumbersResponse,
    WalletPassSchema,
)
from wallet.service import WalletService, get_wallet_service

logger = structlog.get_logger(__name__)

AUTH_SCHEME = "ApplePass"

# Router for wallet web service callbacks (no JWT - uses the pass auth token)
apple_router = Router(tags=["Wallet Web Service"])


def _get_auth_token(request: HttpRequest) -> str | None:
    """Extract the pass secret from the Authorization header.

    The wallet app sends: Authorization: ApplePass <authenticationToken>
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme == AUTH_SCHEME and token.strip():
        return token.strip()
    return None


def _pass_response(content: bytes, content_type: str) -> HttpResponse:
    return HttpResponse(content, content_type=content_type, status=200)


# -----------------------------------------------------------------------------
# Wallet Web Service Endpoints
# https://developer.apple.com/documentation/walletpasses/adding-a-web-service-to-update-passes
# -----------------------------------------------------------------------------


@apple_router.post(
    "/v1/devices/{device_library_id}/registrations/{pass_type_id}/{serial_number}",
    response={200: None, 201: None, 401: None},
    url_name="wallet_register_device",
)
def register_device(
    request: HttpRequest,
    device_library_id: str,
    pass_type_id: str,
    serial_number: str,
    payload: DeviceRegistrationPayload,
) -> HttpResponse:
    """Register a device to receive push notifications for a pass.

    Returns:
        200: Registration already existed (push token replaced)
        201: Registration created
        401: Invalid authorization
    """
    auth_token = _get_auth_token(request)
    if not auth_token:
        logger.warning("missing_auth_token", device=device_library_id[:20])
        return HttpResponse(status=401)

    try:
        created = get_wallet_service().register_device(
            device_library_id=device_library_id,
            pass_type_id=pass_type_id,
            serial_number=serial_number,
            push_token=payload.pushToken,
            auth_token=auth_token,
        )
    except (UnauthorizedPassError, PassNotFoundError) as e:
        logger.warning("device_registration_failed", serial=serial_number, error=str(e))
        return HttpResponse(status=401)

    return HttpResponse(status=201 if created else 200)


@apple_router.delete(
    "/v1/devices/{device_library_id}/registrations/{pass_type_id}/{serial_number}",
    response={200: None, 401: None},
    url_name="wallet_unregister_device",
)
def unregister_device(
    request: HttpRequest,
    device_library_id: str,
    pass_type_id: str,
    serial_number: str,
) -> HttpResponse:
    """Unregister a device from receiving updates for a pass.

    Returns:
        200: Unregistered (or was not registered)
        401: Invalid authorization
    """
    auth_token = _get_auth_token(request)
    if not auth_token:
        return HttpResponse(status=401)

    try:
        get_wallet_service().unregister_device(
            device_library_id=device_library_id,
            pass_type_id=pass_type_id,
            serial_number=serial_number,
            auth_token=auth_token,
        )
    except (UnauthorizedPassError, PassNotFoundError) as e:
        logger.warning("device_unregistration_failed", serial=serial_number, error=str(e))
        return HttpResponse(status=401)

    return HttpResponse(status=200)


@apple_router.get(
    "/v1/devices/{device_library_id}/registrations/{pass_type_id}",
    response={200: SerialNumbersResponse, 204: None},
    url_name="wallet_get_serial_numbers",
)
def get_serial_numbers(
    request: HttpRequest,
    device_library_id: str,
    pass_type_id: str,
    passesUpdatedSince: str | None = None,
) -> HttpResponse | SerialNumbersResponse:
    """Get serial numbers of passes that changed since the given tag.

    Called by the device after receiving a push notification.

    Returns:
        200: JSON with serialNumbers array and lastUpdated tag
        204: No passes need updating
    """
    serial_numbers, last_updated = get_wallet_service().get_updated_passes(
        device_library_id=device_library_id,
        pass_type_id=pass_type_id,
        passes_updated_since=passesUpdatedSince,
    )

    if not serial_numbers or last_updated is None:
        return HttpResponse(status=204)

    return SerialNumbersResponse(serialNumbers=serial_numbers, lastUpdated=last_updated)


@apple_router.get(
    "/v1/passes/{pass_type_id}/{serial_number}",
    url_name="wallet_get_pass",
)
def get_latest_pass(
    request: HttpRequest,
    pass_type_id: str,
    serial_number: str,
) -> HttpResponse:
    """Get the latest version of a pass.

    Returns:
        200: The pass file
        304: Pass unchanged (matching If-None-Match, or If-Modified-Since
             later than the last change)
        401: Invalid authorization
        404: Unknown serial number
        500: The pass could not be built
        503: No pass builder configured
    """
    auth_token = _get_auth_token(request)
    if not auth_token:
        return HttpResponse(status=401)

    service = get_wallet_service()
    try:
        result = service.get_pass_for_device(
            pass_type_id=pass_type_id,
            serial_number=serial_number,
            auth_token=auth_token,
            if_modified_since=request.headers.get("If-Modified-Since"),
            if_none_match=request.headers.get("If-None-Match"),
        )
    except PassNotFoundError:
        return HttpResponse(status=404)
    except UnauthorizedPassError as e:
        logger.warning("get_pass_unauthorized", serial=serial_number, error=str(e))
        return HttpResponse(status=401)
    except WalletNotConfiguredError:
        logger.error("pass_builder_not_configured")
        return HttpResponse(status=503)
    except PassBuildError:
        return HttpResponse(status=500)

    if result.content is None:
        response = HttpResponse(status=304)
    else:
        response = _pass_response(result.content, service.pass_builder.content_type)
    response["Last-Modified"] = result.last_modified
    response["ETag"] = result.etag
    return response


@apple_router.post(
    "/v1/log",
    response={200: None},
    url_name="wallet_log",
)
def log_errors(request: HttpRequest, payload: LogPayload) -> HttpResponse:
    """Receive error logs from devices.

    Returns:
        200: Always (logs are best-effort)
    """
    for log_message in payload.logs:
        logger.info("wallet_device_log", message=log_message)

    return HttpResponse(status=200)


# -----------------------------------------------------------------------------
# User-facing API Endpoints
# -----------------------------------------------------------------------------


@api_controller("/passes", tags=["Wallet Passes"], auth=JWTAuth())
class WalletPassController(ControllerBase):
    """Controller for user-facing wallet pass endpoints."""

    def __init__(self) -> None:
        super().__init__()
        self._service: WalletService | None = None

    @property
    def service(self) -> WalletService:
        if self._service is None:
            self._service = get_wallet_service()
        return self._service

    def user(self) -> t.Any:
        return self.context.request.user  # type: ignore[union-attr]

    @route.post(
        "/",
        url_name="issue_wallet_pass",
        summary="Issue a wallet pass",
        response={200: WalletPassSchema, 201: WalletPassSchema},
        throttle=PassIssueThrottle(),
    )
    def issue_pass(self, payload: IssuePassPayload) -> tuple[int, WalletPass]:
        """Issue the current user's pass, or return the one they already have."""
        wallet_pass, created = self.service.issue_pass(self.user(), payload.payload or None)
        return (201 if created else 200), wallet_pass

    @route.get("/", url_name="list_wallet_passes", response=list[WalletPassSchema])
    def list_passes(self) -> list[WalletPass]:
        return list(WalletPass.objects.filter(owner=self.user()).order_by("-created_at"))

    @route.get(
        "/{serial_number}/download",
        url_name="download_wallet_pass",
        summary="Download a wallet pass",
        response={200: None, 404: None, 500: None, 503: None},
    )
    def download_pass(self, serial_number: str) -> HttpResponse:
        """Download the pass file for one of the current user's passes.

        Returns:
            200: The pass file
            404: Pass not found or not owned by user
            500: The pass could not be built
            503: No pass builder configured
        """
        wallet_pass = WalletPass.objects.filter(serial_number=serial_number, owner=self.user()).first()
        if wallet_pass is None:
            return HttpResponse(status=404)

        try:
            pkpass = self.service.build_pass(wallet_pass)
        except WalletNotConfiguredError:
            return HttpResponse("Wallet passes are not configured", status=503, content_type="text/plain")
        except PassBuildError:
            return HttpResponse("Failed to generate pass", status=500, content_type="text/plain")

        builder = self.service.pass_builder
        response = _pass_response(pkpass, builder.content_type)
        response["Content-Disposition"] = f'attachment; filename="{wallet_pass.serial_number}.{builder.file_extension}"'
        return response
