"""WSGI config for the Stagepass project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "stagepass.settings")

application = get_wsgi_application()
