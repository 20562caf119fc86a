"""URL configuration for the stampbook project.

The public API (user-facing endpoints and the wallet web service) lives
under ``/api/``; the admin is mounted at ``settings.ADMIN_URL``.
"""

from django.conf import settings
from django.contrib import admin
from django.urls import path

from api.api import api

admin.site.site_header = f"{settings.SITE_NAME} v{settings.VERSION} Admin"
admin.site.index_title = f"Welcome to {settings.SITE_NAME} v{settings.VERSION} Admin"
admin.site.site_title = f"{settings.SITE_NAME} v{settings.VERSION} Admin"

urlpatterns = [
    path("api/", api.urls),
]

if settings.ADMIN_URL:  # pragma: no cover
    urlpatterns.insert(0, path(settings.ADMIN_URL, admin.site.urls))
