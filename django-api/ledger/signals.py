"""Django signals for cache invalidation."""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from ledger.cache import bump_classes_generation, invalidate_packages_list
from ledger.models import ClassSession, ClassType, Package


@receiver([post_save, post_delete], sender=ClassSession)
def invalidate_class_cache(sender, instance, **kwargs):
    """Drop every cached schedule window when a class is saved or deleted."""
    bump_classes_generation()


@receiver([post_save, post_delete], sender=ClassType)
def invalidate_class_type_cache(sender, instance, **kwargs):
    bump_classes_generation()


@receiver([post_save, post_delete], sender=Package)
def invalidate_package_cache(sender, instance, **kwargs):
    """Drop the cached catalog when a package is saved or deleted."""
    invalidate_packages_list()
