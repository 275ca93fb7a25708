"""
Domain Exceptions for Planwright.

Custom exceptions surfaced by repositories and presentation models:
- Missing instances
- Name uniqueness
- Field validation
- Concurrent modification
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InstanceNotFoundError(DomainError):
    """Raised when an entity cannot be found."""

    def __init__(self, entity_type: str, key):
        message = f"{entity_type} with key '{key}' not found"
        super().__init__(message, code="INSTANCE_NOT_FOUND")
        self.entity_type = entity_type
        self.key = key


class DuplicateNameError(DomainError):
    """Raised when a name that must be unique is already taken."""

    def __init__(self, entity_type: str, name: str):
        message = f"{entity_type} named '{name}' already exists"
        super().__init__(message, code="DUPLICATE_NAME")
        self.entity_type = entity_type
        self.name = name


class ValidationError(DomainError):
    """Raised when data validation fails."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Validation failed for '{field}': {message}", code="VALIDATION_ERROR")
        self.field = field


class ConcurrencyError(DomainError):
    """Raised when optimistic locking fails (version mismatch)."""

    def __init__(self, entity_type: str, entity_id: str):
        message = (
            f"Concurrent modification detected for {entity_type} '{entity_id}'. "
            f"Please refresh and try again."
        )
        super().__init__(message, code="CONCURRENCY_ERROR")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvariantViolationError(DomainError):
    """Raised when a computed invariant does not hold."""

    def __init__(self, invariant_name: str, expected: str, actual: str):
        message = (
            f"Invariant '{invariant_name}' violated. "
            f"Expected: {expected}, Actual: {actual}"
        )
        super().__init__(message, code="INVARIANT_VIOLATION")
        self.invariant_name = invariant_name
        self.expected = expected
        self.actual = actual
