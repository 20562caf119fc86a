"""Django Unfold admin configuration."""

from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _

from .base import VERSION

UNFOLD = {
    "SITE_TITLE": f"Stampbook v{VERSION} Admin",
    "SITE_HEADER": f"Stampbook v{VERSION} Administration",
    "SITE_URL": "/",
    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": [
            {
                "title": _("Dashboard"),
                "separator": False,
                "items": [
                    {
                        "title": _("Dashboard"),
                        "icon": "home",
                        "link": reverse_lazy("admin:index"),
                    },
                ],
            },
            {
                "title": _("Wallet"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {
                        "title": _("Passes"),
                        "icon": "wallet",
                        "link": reverse_lazy("admin:wallet_walletpass_changelist"),
                    },
                    {
                        "title": _("Registrations"),
                        "icon": "devices",
                        "link": reverse_lazy("admin:wallet_walletpassregistration_changelist"),
                    },
                    {
                        "title": _("Update Logs"),
                        "icon": "history",
                        "link": reverse_lazy("admin:wallet_walletpassupdatelog_changelist"),
                    },
                ],
            },
            {
                "title": _("Users"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {
                        "title": _("Users"),
                        "icon": "person",
                        "link": reverse_lazy("admin:auth_user_changelist"),
                    },
                ],
            },
        ],
    },
}
