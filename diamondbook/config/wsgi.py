"""
WSGI config for the DiamondBook backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'diamondbook.config.settings')

application = get_wsgi_application()
