"""
WSGI config for ShopHub project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ShopHub.settings')

application = get_wsgi_application()
