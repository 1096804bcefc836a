"""
Add the Celery Beat schedule for upload target cleanup.
"""

from django.db import migrations

TASK_NAME = "media.cleanup_expired_upload_targets"


def create_periodic_tasks(apps, schema_editor):
    """Expire unused upload targets every 15 minutes."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule_15min, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "media.tasks.cleanup_expired_upload_targets",
            "interval": schedule_15min,
            "description": "Expire unused upload targets and delete their bytes",
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("media", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
