# gourmet_haven/wsgi.py

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'gourmet_haven.settings')

application = get_wsgi_application()
