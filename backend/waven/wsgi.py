"""
WSGI config for waven project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'waven.settings')
application = get_wsgi_application()
