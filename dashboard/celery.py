"""
Celery application for the dashboard project.

Only post-commit side work runs here (settlement advice PDFs); no wallet
state transition is ever executed by a worker.
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dashboard.settings')

app = Celery('dashboard')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
