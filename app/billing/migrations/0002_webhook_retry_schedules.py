"""
Add celery-beat schedules for webhook retries.

Creates two periodic tasks:
    - process_due_webhook_retries every minute
    - recover_stuck_webhooks every 10 minutes
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Process Due Webhook Retries",
        "task": "billing.tasks.process_due_webhook_retries",
        "every": 1,
        "description": (
            "Queues retries for failed webhook events whose backoff has elapsed."
        ),
    },
    {
        "name": "Recover Stuck Webhooks",
        "task": "billing.tasks.recover_stuck_webhooks",
        "every": 10,
        "description": (
            "Marks webhook events stuck in 'received' as failed and schedules a retry."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
