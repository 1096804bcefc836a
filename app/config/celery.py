"""
Celery application.

Tasks are auto-discovered from installed apps (media/tasks.py holds the
upload-target cleanup). Periodic schedules are stored in the database by
django-celery-beat; the cleanup schedule is created by a media migration.

Running:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("relay")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
