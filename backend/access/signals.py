from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Feature, RoleAssignment, RoleFeature
from .session import invalidate_feature_permissions, invalidate_role_permissions, invalidate_user_permissions

# Cached permission sets are dropped on every write to these models, admin included.


@receiver(post_save, sender=RoleFeature)
@receiver(post_delete, sender=RoleFeature)
def drop_cached_permissions_for_grant(sender, instance, **kwargs):
    invalidate_role_permissions([instance.role_id])


@receiver(post_save, sender=RoleAssignment)
@receiver(post_delete, sender=RoleAssignment)
def drop_cached_permissions_for_assignment(sender, instance, **kwargs):
    invalidate_user_permissions([instance.user_id])


@receiver(post_save, sender=Feature)
def drop_cached_permissions_for_feature(sender, instance, created, **kwargs):
    if not created:
        invalidate_feature_permissions(instance.pk)
