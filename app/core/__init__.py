"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling
    - FailureKind: Failure taxonomy with HTTP status mapping

Exceptions (import from core.exceptions):
    - BaseApplicationError, ExternalServiceError
    - api_exception_handler: DRF exception handler

Constants (import from core.constants):
    - SIGN_IN_REQUIRED: Shared 401 message
"""
