import traceback
import uuid
from typing import Dict, Any, Optional
from enum import Enum

from .base import (
    StorefrontTestError,
    ActionError,
    BrowserSessionError,
    ConfigurationError,
    NavigationError,
    NoResultsError,
    ValidationError,
    ErrorClassification,
    ErrorContext,
)


class RecoveryStrategy(Enum):
    # What the workflow does after an error of a given kind
    SKIP_PRODUCT = "skip_product"
    SKIP_SEARCH_TERM = "skip_search_term"
    SESSION_RESTART = "session_restart"
    FAIL_FAST = "fail_fast"


def create_error_context(
    correlation_id: Optional[str] = None,
    component: str = "",
    operation: str = "",
    **metadata
) -> ErrorContext:
    # Factory function to create error context with correlation ID
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())[:8]

    stack = traceback.format_exc()
    return ErrorContext(
        correlation_id=correlation_id,
        component=component,
        operation=operation,
        metadata=metadata,
        stack_trace=stack if stack.strip() != "NoneType: None" else None
    )


def classify_error(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> ErrorClassification:
    # Classification based on exception type and message
    if isinstance(exception, StorefrontTestError):
        return exception.classification

    if _is_timeout_error(exception):
        return ErrorClassification.RETRYABLE

    if _is_network_error(exception):
        return ErrorClassification.TRANSIENT

    if isinstance(exception, (KeyError, FileNotFoundError)):
        return ErrorClassification.CONFIGURATION

    if isinstance(exception, AssertionError):
        return ErrorClassification.VALIDATION

    return ErrorClassification.TERMINAL


def get_recovery_strategy(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> RecoveryStrategy:
    # Map an error onto the workflow's recovery behaviour
    context = context or {}
    strict = context.get("strict", False)

    if isinstance(exception, ActionError):
        return RecoveryStrategy.SKIP_PRODUCT

    if isinstance(exception, (NavigationError, NoResultsError)):
        return RecoveryStrategy.FAIL_FAST if strict else RecoveryStrategy.SKIP_SEARCH_TERM

    if isinstance(exception, BrowserSessionError):
        return RecoveryStrategy.SESSION_RESTART

    if isinstance(exception, (ConfigurationError, ValidationError)):
        return RecoveryStrategy.FAIL_FAST

    classification = classify_error(exception, context)
    if classification == ErrorClassification.RETRYABLE:
        return RecoveryStrategy.SKIP_PRODUCT
    if classification == ErrorClassification.TRANSIENT and not strict:
        return RecoveryStrategy.SKIP_SEARCH_TERM

    return RecoveryStrategy.FAIL_FAST


def convert_to_framework_exception(
    exception: Exception,
    context: Optional[ErrorContext] = None,
    component: str = "Unknown",
    operation: str = "Unknown"
) -> StorefrontTestError:
    # Wrap standard exceptions so they log with a classification
    if isinstance(exception, StorefrontTestError):
        return exception

    if context is None:
        context = create_error_context(
            component=component,
            operation=operation
        )

    return StorefrontTestError(
        message=str(exception),
        error_context=context,
        classification=classify_error(exception),
        cause=exception
    )


def _is_timeout_error(exception: Exception) -> bool:
    # Playwright's TimeoutError and asyncio timeouts both carry "timeout" in the type name
    exception_type = type(exception).__name__.lower()
    return "timeout" in exception_type or "timeout" in str(exception).lower()


def _is_network_error(exception: Exception) -> bool:
    error_str = str(exception).lower()
    exception_types = ("connectionerror", "httperror", "urlerror")

    network_indicators = [
        "net::err", "connection", "dns", "socket", "ssl", "certificate", "proxy"
    ]

    return (any(exc_type in type(exception).__name__.lower() for exc_type in exception_types) or
            any(indicator in error_str for indicator in network_indicators))
