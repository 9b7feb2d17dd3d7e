# Storefront harness exception hierarchy
# Structured error handling with classification and recovery strategies

from .base import (
    StorefrontTestError,
    NavigationError,
    NoResultsError,
    ActionError,
    BrowserSessionError,
    ConfigurationError,
    ValidationError,
    ErrorClassification,
    ErrorContext,
)

from .classification import (
    classify_error,
    get_recovery_strategy,
    create_error_context,
    convert_to_framework_exception,
    RecoveryStrategy,
)

from .logging import (
    StructuredErrorLogger,
    JSONFormatter,
    log_error_with_context,
    get_error_correlation_id,
    configure_error_logging,
)

__all__ = [
    # Base exceptions
    "StorefrontTestError",
    "NavigationError",
    "NoResultsError",
    "ActionError",
    "BrowserSessionError",
    "ConfigurationError",
    "ValidationError",

    # Error classification
    "ErrorClassification",
    "ErrorContext",
    "classify_error",
    "get_recovery_strategy",
    "create_error_context",
    "convert_to_framework_exception",
    "RecoveryStrategy",

    # Structured logging
    "StructuredErrorLogger",
    "JSONFormatter",
    "log_error_with_context",
    "get_error_correlation_id",
    "configure_error_logging",
]
