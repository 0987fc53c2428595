import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from billing.models import Subscription, SubscriptionStatus
from billing.services.subscriptions import expire_overdue_subscriptions

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Expire overdue subscriptions and report subscription status counts."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many subscriptions would expire.",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        self.stdout.write(self.style.MIGRATE_HEADING(f"Running subscription check at {now}"))
        logger.info("Starting subscription check.")

        overdue_trials = Subscription.objects.filter(
            status=SubscriptionStatus.ACTIVE_TRIAL, trial_end_date__lt=now
        ).count()
        overdue_paid = Subscription.objects.filter(
            status=SubscriptionStatus.ACTIVE_PAID, current_period_end__lt=now
        ).count()

        if options["dry_run"]:
            expired_count = 0
        else:
            expired_count = expire_overdue_subscriptions(now)

        counts = {
            status: Subscription.objects.filter(status=status).count()
            for status in SubscriptionStatus.values
        }

        summary = (
            f"\nSubscription Audit Summary:\n"
            f"   - Overdue trials: {overdue_trials}\n"
            f"   - Overdue paid periods: {overdue_paid}\n"
            f"   - Expired now: {expired_count}\n"
            + "".join(f"   - {status}: {count}\n" for status, count in counts.items())
        )
        self.stdout.write(self.style.SUCCESS(summary))
        logger.info(summary)
