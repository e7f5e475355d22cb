"""
MediKlinik — Celery Application

Workers and beat load Django settings from DJANGO_SETTINGS_MODULE and
discover ``tasks.py`` in every installed app. Periodic schedules live in
the database (django-celery-beat); ``CELERY_BEAT_SCHEDULE`` entries are
synced into it when beat starts.

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('mediklinik')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
