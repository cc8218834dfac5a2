"""
Visionary Custom Exceptions

Custom exception classes for error handling throughout the Visionary storyboard studio.
"""


class VisionaryError(Exception):
    """Base exception for all Visionary errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(VisionaryError):
    """Raised when there's an issue with configuration."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


class FeatureDisabledError(ConfigurationError):
    """Raised when an operation belongs to a feature switched off in config."""

    def __init__(self, feature: str):
        super().__init__(f"Feature disabled: '{feature}'", {"feature": feature})


# =============================================================================
# SHOT LIFECYCLE ERRORS
# =============================================================================

class ShotError(VisionaryError):
    """Base exception for shot lifecycle errors."""
    pass


class ShotNotFoundError(ShotError):
    """Raised when a shot id is not present in the active script."""

    def __init__(self, shot_id: str):
        super().__init__(f"Shot not found: '{shot_id}'", {"shot_id": shot_id})


class PreconditionFailed(ShotError):
    """Raised when a shot lacks an artifact the operation depends on."""

    def __init__(self, shot_id: str, operation: str, reason: str):
        message = f"Cannot {operation} shot '{shot_id}': {reason}"
        super().__init__(message, {"shot_id": shot_id, "operation": operation})


class OperationInFlightError(ShotError):
    """Raised when a second request targets a shot that is already busy."""

    def __init__(self, shot_id: str, operation: str, status: str):
        message = f"Shot '{shot_id}' is already {status}; {operation} rejected"
        super().__init__(
            message,
            {"shot_id": shot_id, "operation": operation, "status": status}
        )


# =============================================================================
# GENERATION SERVICE ERRORS
# =============================================================================

class GenerationFailure(VisionaryError):
    """Raised when a Generation Service call fails or returns no artifact."""
    pass


class ContentBlockedError(GenerationFailure):
    """Raised when the provider's safety filters reject a request."""

    def __init__(self, reason: str):
        super().__init__(f"Content blocked: {reason}", {"reason": reason})
        self.is_content_block = True


class TimeoutExceeded(GenerationFailure):
    """Raised when a long-running job exceeds its polling budget."""

    def __init__(self, operation: str, attempts: int):
        message = f"{operation} timed out after {attempts} poll attempts"
        super().__init__(message, {"operation": operation, "attempts": attempts})


class AuthorizationMissing(VisionaryError):
    """Raised when the Generation Service has no valid credential.

    This is project-wide: every generation entry point stays closed until the
    credential is restored.
    """
    pass


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(VisionaryError):
    """Base exception for durable storage errors."""
    pass


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the storage capacity."""

    def __init__(self, key: str, required_bytes: int, quota_bytes: int):
        message = f"Storage quota exceeded writing '{key}': {required_bytes} > {quota_bytes} bytes"
        super().__init__(
            message,
            {"key": key, "required_bytes": required_bytes, "quota_bytes": quota_bytes}
        )


class StorageCorruptError(StorageError):
    """Raised when a stored blob cannot be decoded."""
    pass


# =============================================================================
# ROSTER ERRORS
# =============================================================================

class RosterError(VisionaryError):
    """Base exception for character/item roster errors."""
    pass


class UnknownFieldError(RosterError):
    """Raised when an update names a field outside the editable set."""

    def __init__(self, entity: str, field_name: str):
        message = f"'{field_name}' is not an editable {entity} field"
        super().__init__(message, {"entity": entity, "field": field_name})


class AssetNotFoundError(RosterError):
    """Raised when a character or item id cannot be resolved."""

    def __init__(self, kind: str, asset_id: str):
        super().__init__(f"{kind} not found: '{asset_id}'", {"kind": kind, "id": asset_id})


class NoActiveScriptError(VisionaryError):
    """Raised when an operation needs a loaded script and none is active."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: no script is loaded", {"operation": operation})
