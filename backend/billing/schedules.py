import json

from django_celery_beat.models import (
    CrontabSchedule,
    PeriodicTask,
)


def _get_or_create_crontab(minute, hour, day_of_week='*'):
    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute=minute,
        hour=hour,
        day_of_week=day_of_week,
        day_of_month='*',
        month_of_year='*',
    )
    return schedule


def setup_billing_schedules():
    """
    Create or update Celery Beat schedules
    for subscription housekeeping.
    """

    #  Expiry sweep: every hour on the hour
    hourly_schedule = _get_or_create_crontab(
        minute='0',
        hour='*',
    )

    PeriodicTask.objects.update_or_create(
        name='Expire Overdue Subscriptions',
        defaults={
            'task': 'billing.tasks.expire_overdue_subscriptions_task',
            'crontab': hourly_schedule,
            'args': json.dumps([]),
            'enabled': True,
        }
    )

    #  Trial expiry warning: daily at 8am
    daily_schedule = _get_or_create_crontab(
        minute='0',
        hour='8',
    )

    PeriodicTask.objects.update_or_create(
        name='Trial Expiry Warning',
        defaults={
            'task': 'billing.tasks.notify_expiring_trials_task',
            'crontab': daily_schedule,
            'args': json.dumps([]),
            'enabled': True,
        }
    )
