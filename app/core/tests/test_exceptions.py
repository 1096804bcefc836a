"""
Tests for the exception hierarchy and api_exception_handler.
"""

from rest_framework import exceptions as drf_exceptions

from core.exceptions import BaseApplicationError, ExternalServiceError, api_exception_handler


class TestApplicationErrors:
    def test_status_codes(self):
        assert BaseApplicationError("x").status_code == 400
        assert ExternalServiceError("x").status_code == 502
        assert ExternalServiceError("x").error_code == "UPSTREAM_ERROR"

    def test_to_dict(self):
        error = ExternalServiceError(
            "Could not store the upload", error_code="STORAGE_UNAVAILABLE", details={"backend": "s3"}
        )

        assert error.to_dict() == {
            "error": "Could not store the upload",
            "error_code": "STORAGE_UNAVAILABLE",
            "details": {"backend": "s3"},
        }
        assert str(error) == "[STORAGE_UNAVAILABLE] Could not store the upload"


class TestApiExceptionHandler:
    def test_application_error_is_rendered(self):
        response = api_exception_handler(ExternalServiceError("Storage unavailable"), {"view": None})

        assert response.status_code == 502
        assert response.data == {"error": "Storage unavailable", "error_code": "UPSTREAM_ERROR"}

    def test_authentication_failures_are_uniform(self):
        """
        Why it matters: Missing and invalid tokens look the same to the caller.
        """
        for exc in (drf_exceptions.NotAuthenticated(), drf_exceptions.AuthenticationFailed("bad signature")):
            response = api_exception_handler(exc, {"view": None})

            assert response.status_code == 401
            assert response.data == {"error": "Sign in required.", "error_code": "UNAUTHENTICATED"}

    def test_other_errors_fall_through_to_drf(self):
        response = api_exception_handler(drf_exceptions.ValidationError({"body": ["Required."]}), {"view": None})

        assert response.status_code == 400
        assert response.data == {"body": ["Required."]}
