"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User model and display-name rules
- test_services.py: IdentityService upsert tests
- test_authentication.py: Bearer token authentication tests
- test_views.py: API endpoint tests

Usage:
    pytest authentication/tests/
"""
