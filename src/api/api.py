from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI
from ninja_jwt.controller import NinjaJWTDefaultController

from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from wallet.controllers import WalletPassController, apple_router
from wallet.exceptions import (
    PassAlreadyExistsError,
    PassNotFoundError,
    PassTransportError,
    UnauthorizedPassError,
    WalletNotConfiguredError,
)

from .exception_handlers import (
    handle_django_validation_error,
    handle_general_exception,
    handle_pass_already_exists_error,
    handle_pass_not_found_error,
    handle_pass_transport_error,
    handle_unauthorized_pass_error,
    handle_wallet_not_configured_error,
)

api = NinjaExtraAPI(
    title="Stampbook Backend API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Stampbook API {settings.VERSION}",
    app_name=f"stampbook-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version."""
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API."""
    return 200, ResponseOk()


api.register_controllers(
    NinjaJWTDefaultController,
    WalletPassController,
)

# Wallet web service callbacks; the pass's webServiceURL points here.
api.add_router("/wallet", apple_router)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    PassNotFoundError: handle_pass_not_found_error,
    UnauthorizedPassError: handle_unauthorized_pass_error,
    PassAlreadyExistsError: handle_pass_already_exists_error,
    WalletNotConfiguredError: handle_wallet_not_configured_error,
    PassTransportError: handle_pass_transport_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)  # type: ignore[arg-type]
