"""
Custom exception classes for the Pet Adoption Board application.
"""


class AdoptionBoardError(Exception):
    """Base exception for all Pet Adoption Board errors."""
    pass


class ValidationError(AdoptionBoardError):
    """Raised when input validation fails."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ContentPolicyError(ValidationError):
    """Raised when free text contains selling-related terms."""

    def __init__(self, field: str, terms: list):
        self.terms = list(terms)
        super().__init__(field, f"Please remove selling-related terms: {', '.join(self.terms)}")


class ConfirmationRequiredError(AdoptionBoardError):
    """Raised when a destructive action is attempted without confirmation."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"{action} requires explicit confirmation")


class NotFoundError(AdoptionBoardError):
    """Raised when a requested entity does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class PermissionDeniedError(AdoptionBoardError):
    """Raised when the acting user does not own the entity being mutated."""
    pass


class AuthenticationError(AdoptionBoardError):
    """Raised when sign-in fails or an identity is required."""
    pass


class StorageError(AdoptionBoardError):
    """Raised when GCS operations fail."""
    pass


class UploadError(StorageError):
    """Raised when any upload of a submission batch fails."""
    pass


class StorageCleanupError(StorageError):
    """Reported (never raised out of the parent operation) when an orphan delete fails."""

    def __init__(self, reference: str, reason: str = ""):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Failed to delete {reference}" + (f": {reason}" if reason else ""))


class ServiceUnavailableError(AdoptionBoardError):
    """Raised when required service clients are not initialized."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"{service_name} service is not available")
