"""WSGI config for the stampbook project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "stampbook.settings")

application = get_wsgi_application()
