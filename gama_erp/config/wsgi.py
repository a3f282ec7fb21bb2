"""
WSGI config for the Gama ERP business-rules service.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'gama_erp.config.settings')

application = get_wsgi_application()
