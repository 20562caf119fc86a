"""Django admin configuration for wallet pass models."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from unfold.admin import ModelAdmin

from wallet.models import WalletPass, WalletPassRegistration, WalletPassUpdateLog
from wallet.service import get_wallet_service


@admin.register(WalletPass)
class WalletPassAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for wallet passes."""

    list_display = ["serial_number", "owner", "pass_type_id", "marker", "is_voided", "registration_count", "updated_at"]
    list_filter = ["pass_type_id", "is_voided", "created_at"]
    search_fields = ["serial_number", "owner__username", "owner__email"]
    # Payload and voiding change only through the service, which bumps the marker.
    readonly_fields = [
        "serial_number",
        "auth_token",
        "marker",
        "payload",
        "is_voided",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["owner"]
    ordering = ["-updated_at"]
    actions = ["push_update", "void_passes"]

    @admin.display(description="Registrations")
    def registration_count(self, obj: WalletPass) -> int:
        """Count of device registrations for this pass."""
        return obj.registrations.count()

    @admin.action(description="Mark changed and wake registered devices")
    def push_update(self, request: HttpRequest, queryset: QuerySet[WalletPass]) -> None:
        service = get_wallet_service()
        count = 0
        for serial_number in queryset.values_list("serial_number", flat=True):
            service.touch_pass(serial_number)
            count += 1
        self.message_user(request, f"Queued update notifications for {count} pass(es).", messages.SUCCESS)

    @admin.action(description="Void and wake registered devices")
    def void_passes(self, request: HttpRequest, queryset: QuerySet[WalletPass]) -> None:
        service = get_wallet_service()
        count = 0
        for serial_number in queryset.filter(is_voided=False).values_list("serial_number", flat=True):
            service.void_pass(serial_number)
            count += 1
        self.message_user(request, f"Voided {count} pass(es).", messages.SUCCESS)


@admin.register(WalletPassRegistration)
class WalletPassRegistrationAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for wallet pass registrations."""

    list_display = ["wallet_pass", "device_short", "created_at", "updated_at"]
    list_filter = ["created_at"]
    search_fields = ["wallet_pass__serial_number", "device_library_id"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["wallet_pass"]
    ordering = ["-created_at"]

    @admin.display(description="Device")
    def device_short(self, obj: WalletPassRegistration) -> str:
        """Show truncated device ID."""
        return f"{obj.device_library_id[:12]}..."


@admin.register(WalletPassUpdateLog)
class WalletPassUpdateLogAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for wallet pass update logs."""

    list_display = ["update_type", "wallet_pass", "device_short", "created_at"]
    list_filter = ["update_type", "created_at"]
    search_fields = ["wallet_pass__serial_number", "device_library_id"]
    readonly_fields = ["wallet_pass", "device_library_id", "update_type", "details", "created_at", "updated_at"]
    ordering = ["-created_at"]

    @admin.display(description="Device")
    def device_short(self, obj: WalletPassUpdateLog) -> str:
        """Show truncated device ID."""
        if obj.device_library_id:
            return f"{obj.device_library_id[:12]}..."
        return "-"

    def has_add_permission(self, request: object) -> bool:
        """Prevent manual creation of logs."""
        return False

    def has_change_permission(self, request: object, obj: object = None) -> bool:
        """Prevent modification of logs."""
        return False
