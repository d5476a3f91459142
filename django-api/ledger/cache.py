"""Cache keys for the public read endpoints.

The class schedule is keyed under a generation counter so a single bump
invalidates every cached query window at once.
"""

from django.core.cache import cache

CLASSES_GENERATION_KEY = "classes:generation"
PACKAGES_LIST_KEY = "packages:list"


def classes_generation() -> int:
    return cache.get(CLASSES_GENERATION_KEY, 0)


def bump_classes_generation() -> None:
    try:
        cache.incr(CLASSES_GENERATION_KEY)
    except ValueError:
        cache.set(CLASSES_GENERATION_KEY, 1, timeout=None)


def classes_list_key(*parts: object) -> str:
    query = ":".join("" if p is None else str(p) for p in parts)
    return f"classes:list:{classes_generation()}:{query}"


def invalidate_packages_list() -> None:
    cache.delete(PACKAGES_LIST_KEY)
