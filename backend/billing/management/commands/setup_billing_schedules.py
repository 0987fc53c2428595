from django.core.management.base import BaseCommand
from billing.schedules import setup_billing_schedules


class Command(BaseCommand):
    help = "Setup Celery Beat schedules for subscription expiry and trial warnings"

    def handle(self, *args, **options):
        setup_billing_schedules()
        self.stdout.write(
            self.style.SUCCESS("Billing schedules set up successfully.")
        )
