import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from access.catalog import SYSTEM_ROLES, feature_definitions
from access.models import Feature, Role, RoleFeature
from billing.services.subscriptions import get_platform_settings

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Seed the feature catalog, the system roles and the platform settings."

    @transaction.atomic
    def handle(self, *args, **options):
        created = 0
        for definition in feature_definitions():
            slug = definition.pop("slug")
            _, was_created = Feature.objects.update_or_create(slug=slug, defaults=definition)
            created += int(was_created)
        self.stdout.write(f"Features: {created} created, {Feature.objects.count()} total")

        for definition in SYSTEM_ROLES:
            role, _ = Role.objects.update_or_create(
                name=definition["name"],
                type=definition["type"],
                defaults={
                    "description": definition["description"],
                    "hierarchy_level": definition["hierarchy_level"],
                    "is_system_role": True,
                },
            )
            granted = 0
            for feature in Feature.objects.filter(role_type=role.type):
                _, was_created = RoleFeature.objects.get_or_create(
                    role=role,
                    feature=feature,
                    defaults={"actions": [] if feature.is_page_level else list(feature.default_actions)},
                )
                granted += int(was_created)
            self.stdout.write(f"Role '{role.name}': {granted} new grant(s)")

        platform_settings = get_platform_settings()
        self.stdout.write(f"Platform settings: {platform_settings}")

        logger.info("Access catalog seeded")
        self.stdout.write(self.style.SUCCESS("Access catalog seeded successfully."))
