"""
Core Application - Infrastructure & Base Classes

This app contains the infrastructure shared by the settlement and payout
apps. It holds no money-handling logic of its own:

- Generic, reusable base classes
- Clear extension points for domain apps
- Infrastructure concerns separated from business logic

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic locking version counter

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - PermissionDeniedError: Authorization failures
    - ConflictError: State conflicts (concurrent modification, etc.)
    - ExternalServiceError: Third-party service failures

Protocols (import from core.protocols):
    - CacheBackend: Generic cache interface
"""
