"""
WSGI config for the billing backend.

Fallback for traditional WSGI servers (gunicorn); exposes `application`.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
