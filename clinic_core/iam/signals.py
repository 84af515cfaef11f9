# clinic_core/iam/signals.py
from django.db.models import F
from django.db.models.signals import post_delete
from django.dispatch import receiver

from clinic_core.iam.models import MembershipRole, Role


@receiver(post_delete, sender=MembershipRole)
def membership_role_post_delete(sender, instance: MembershipRole, **kwargs):
    # Fires for remove_role and for cascades (user or membership deleted).
    Role.objects.filter(id=instance.role_id, user_count__gt=0).update(user_count=F("user_count") - 1)
