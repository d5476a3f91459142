"""Tests for cache behavior.

Run with: pytest tests/test_cache.py -v
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from ledger import models
from ledger.cache import CLASSES_GENERATION_KEY, PACKAGES_LIST_KEY, classes_generation


def _class_row(**kwargs) -> models.ClassSession:
    starts_at = timezone.now() + timedelta(days=1)
    return models.ClassSession.objects.create(
        title="Sunrise Vinyasa",
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=1),
        capacity=10,
        **kwargs,
    )


def _package_row(**kwargs) -> models.Package:
    return models.Package.objects.create(
        name=kwargs.pop("name", "10 Class Pass"),
        type=models.Package.Type.CREDIT,
        credits=10,
        duration_days=30,
        price=Decimal("3000"),
        **kwargs,
    )


@pytest.mark.django_db
class TestCacheInvalidation:
    """Tests for cache invalidation on model changes."""

    def test_class_save_bumps_generation(self):
        """Saving a class moves the schedule cache to a new generation."""
        before = classes_generation()
        _class_row()
        assert classes_generation() == before + 1

    def test_class_type_save_bumps_generation(self):
        before = classes_generation()
        models.ClassType.objects.create(name="Yin")
        assert classes_generation() == before + 1

    def test_class_delete_bumps_generation(self):
        row = _class_row()
        before = classes_generation()
        row.delete()
        assert classes_generation() == before + 1

    def test_generation_survives_cache_eviction(self):
        cache.delete(CLASSES_GENERATION_KEY)
        _class_row()
        assert classes_generation() == 1

    def test_package_save_invalidates_list_cache(self):
        """Saving a package drops the packages:list cache key."""
        cache.set(PACKAGES_LIST_KEY, ["stale"])
        _package_row()
        assert cache.get(PACKAGES_LIST_KEY) is None


@pytest.mark.django_db
class TestCachedEndpoints:
    def test_package_list_served_from_cache(self, api_client: APIClient):
        _package_row(name="First")
        api_client.get("/api/packages")
        assert cache.get(PACKAGES_LIST_KEY) is not None

        models.Package.objects.filter(name="First").update(name="Renamed")

        # .update() bypasses signals, so the cached copy is still served.
        response = api_client.get("/api/packages")
        assert [p["name"] for p in response.json()] == ["First"]

    def test_class_list_cached_when_enabled(self, api_client: APIClient, settings):
        settings.LEDGER = {**settings.LEDGER, "CLASS_LIST_CACHE_SECONDS": 60}
        row = _class_row()
        api_client.get("/api/classes")

        models.ClassSession.objects.filter(pk=row.pk).update(title="Renamed")
        cached = api_client.get("/api/classes")
        assert cached.json()[0]["title"] == "Sunrise Vinyasa"

        row.refresh_from_db()
        row.save()
        fresh = api_client.get("/api/classes")
        assert fresh.json()[0]["title"] == "Renamed"

    def test_class_list_not_cached_by_default(self, api_client: APIClient):
        row = _class_row()
        api_client.get("/api/classes")

        models.ClassSession.objects.filter(pk=row.pk).update(booked_count=4)

        response = api_client.get("/api/classes")
        assert response.json()[0]["booked_count"] == 4
