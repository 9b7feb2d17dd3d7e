import json
import time
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field


class ErrorClassification(Enum):
    # Classification system for error types and recovery strategies
    RETRYABLE = "retryable"          # Local failure, the batch moves on
    TERMINAL = "terminal"            # Should fail fast
    CONFIGURATION = "configuration"  # Fixture/environment related
    TRANSIENT = "transient"          # Temporary network/site issues
    VALIDATION = "validation"        # Expectation failures


@dataclass
class ErrorContext:
    # Preserves error context for debugging
    correlation_id: str
    timestamp: float = field(default_factory=time.time)
    component: str = ""
    operation: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None
    recovery_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        # Convert to dictionary for JSON logging
        return {
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "metadata": self.metadata,
            "stack_trace": self.stack_trace,
            "recovery_suggestions": self.recovery_suggestions,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, indent=2)


class StorefrontTestError(Exception):
    # Base exception for all harness errors
    # Carries structured error information and recovery guidance

    def __init__(
        self,
        message: str,
        error_context: Optional[ErrorContext] = None,
        classification: ErrorClassification = ErrorClassification.TERMINAL,
        cause: Optional[Exception] = None,
        recovery_suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_context = error_context or ErrorContext(correlation_id="unknown")
        self.classification = classification
        self.cause = cause
        self.recovery_suggestions = recovery_suggestions or []

        if recovery_suggestions:
            self.error_context.recovery_suggestions.extend(recovery_suggestions)

    def is_local(self) -> bool:
        # Local failures are logged and skipped rather than failing the run
        return self.classification in (
            ErrorClassification.RETRYABLE,
            ErrorClassification.TRANSIENT
        )

    def get_actionable_message(self) -> str:
        # Error message with recovery suggestions
        base_message = f"{self.message}"

        if self.recovery_suggestions:
            suggestions = "\n".join(f"  - {suggestion}" for suggestion in self.recovery_suggestions)
            base_message += f"\n\nRecovery suggestions:\n{suggestions}"

        if self.error_context.correlation_id != "unknown":
            base_message += f"\nCorrelation ID: {self.error_context.correlation_id}"

        return base_message

    def __str__(self) -> str:
        return self.get_actionable_message()


class NavigationError(StorefrontTestError):
    # Raised when the storefront cannot be reached or a result page does not load

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        search_term: Optional[str] = None,
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.url = url
        self.search_term = search_term

        recovery_suggestions = [
            "Check that the storefront is reachable from this machine",
            "Increase navigation timeouts (unset PLAYWRIGHT_FAST)",
        ]
        if url:
            recovery_suggestions.insert(0, f"Open {url} manually and confirm it renders")

        if error_context:
            error_context.component = error_context.component or "Navigation"
            if url:
                error_context.metadata["url"] = url
            if search_term:
                error_context.metadata["search_term"] = search_term

        super().__init__(
            message=f"Navigation Error: {message}",
            error_context=error_context,
            classification=ErrorClassification.TRANSIENT,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )


class NoResultsError(StorefrontTestError):
    # Search produced zero candidate products

    def __init__(
        self,
        keyword: str,
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.keyword = keyword

        recovery_suggestions = [
            f"Search the storefront for '{keyword}' manually",
            "Use a search term from the known working keyword list",
        ]

        if error_context:
            error_context.component = error_context.component or "Search Validation"
            error_context.metadata["keyword"] = keyword

        super().__init__(
            message=f"No products found for '{keyword}' (expected at least 1)",
            error_context=error_context,
            classification=ErrorClassification.VALIDATION,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )


class ActionError(StorefrontTestError):
    # An add/configure action failed or its confirmation timed out
    # Always handled per product by the orchestrator

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        product_name: Optional[str] = None,
        price: Optional[Decimal] = None,
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.action = action
        self.product_name = product_name
        self.price = price

        recovery_suggestions = [
            "Check the selectors for the add-to-cart controls",
            "Check the add-to-cart network response in the trace",
        ]
        if "timeout" in message.lower() or "timed out" in message.lower():
            recovery_suggestions.insert(0, "Increase the confirmation timeout")

        if error_context:
            error_context.component = error_context.component or "Cart Action"
            error_context.metadata.update({
                "action": action,
                "product_name": product_name,
                "price": str(price) if price is not None else None,
            })

        super().__init__(
            message=f"Action Error ({action or 'unknown'}): {message}",
            error_context=error_context,
            classification=ErrorClassification.RETRYABLE,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )


class BrowserSessionError(StorefrontTestError):
    # Browser could not be launched or its context could not be created

    def __init__(
        self,
        message: str,
        browser_type: Optional[str] = None,
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.browser_type = browser_type

        recovery_suggestions = [
            "Run 'playwright install chromium'",
            "Check browser process and memory usage",
        ]

        if "timeout" in message.lower():
            recovery_suggestions.insert(0, "Increase timeout values for browser operations")

        if error_context:
            error_context.component = "Browser Session"
            if browser_type:
                error_context.metadata["browser_type"] = browser_type

        super().__init__(
            message=f"Browser Session Error: {message}",
            error_context=error_context,
            classification=ErrorClassification.TERMINAL,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )


class ConfigurationError(StorefrontTestError):
    # Fixture or environment issues - terminal, should fail fast

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
        expected_format: Optional[str] = None,
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.config_key = config_key
        self.config_file = config_file
        self.expected_format = expected_format

        recovery_suggestions = [
            "Review environment variables and the fixtures file",
            "Check .env file exists and contains required values",
        ]

        if config_key:
            recovery_suggestions.insert(0, f"Set required configuration: {config_key}")

        if config_file:
            recovery_suggestions.insert(0, f"Check configuration file: {config_file}")

        if expected_format:
            recovery_suggestions.insert(0, f"Expected format: {expected_format}")

        if error_context:
            error_context.component = "Configuration"
            if config_key:
                error_context.metadata["config_key"] = config_key
            if config_file:
                error_context.metadata["config_file"] = config_file

        super().__init__(
            message=f"Configuration Error: {message}",
            error_context=error_context,
            classification=ErrorClassification.CONFIGURATION,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )


class ValidationError(StorefrontTestError):
    # Strict validation failures - terminal, the scenario step fails

    def __init__(
        self,
        message: str,
        expected_value: Optional[str] = None,
        actual_value: Optional[str] = None,
        validation_type: str = "content",
        error_context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.expected_value = expected_value
        self.actual_value = actual_value
        self.validation_type = validation_type

        recovery_suggestions = [
            "Review test expectations and fixture data",
            "Check if the storefront content has changed",
        ]

        if expected_value and actual_value:
            recovery_suggestions.insert(0,
                f"Expected: '{expected_value}' but got: '{actual_value}'")

        if error_context:
            error_context.component = error_context.component or "Validation"
            error_context.operation = validation_type
            error_context.metadata.update({
                "expected_value": expected_value,
                "actual_value": actual_value,
                "validation_type": validation_type,
            })

        super().__init__(
            message=f"Validation Error ({validation_type}): {message}",
            error_context=error_context,
            classification=ErrorClassification.VALIDATION,
            cause=cause,
            recovery_suggestions=recovery_suggestions
        )
