"""Core modules for shootops - centralized error definitions and codes."""

from shootops.core.errorcodes import (
    DEFAULT_CLASSIFIER,
    ErrorClassifier,
    ErrorWithCodes,
    extract_error_codes,
    is_user_error,
)
from shootops.core.errors import (
    BlockedError,
    ConfigurationError,
    ExitCode,
    MissingExtensionsError,
    MultiError,
    ProviderError,
    ShootOpsError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    # Errors
    "ExitCode",
    "ShootOpsError",
    "ConfigurationError",
    "ProviderError",
    "ValidationError",
    "BlockedError",
    "MissingExtensionsError",
    "MultiError",
    "main_with_error_handling",
    "format_error_message",
    # Error codes
    "DEFAULT_CLASSIFIER",
    "ErrorClassifier",
    "ErrorWithCodes",
    "extract_error_codes",
    "is_user_error",
]
