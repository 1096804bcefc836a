"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_constants.py, client tests, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_consumers.py",
        "test_authentication.py",
        "test_signals.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_constants.py",
        "test_exceptions.py",
        "test_upload_queue.py",
        "test_timeline.py",
        "test_liveness.py",
        "test_outbox.py",
        "test_api.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def clear_cache():
    """
    Clear the cache around every test.

    Presence and typing state live in the cache; leftovers from one test
    would leak into the next.
    """
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()
