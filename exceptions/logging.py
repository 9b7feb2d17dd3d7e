import json
import logging
import time
import uuid
from typing import Dict, Any, Optional

from .base import StorefrontTestError, ErrorContext
from .classification import (
    classify_error,
    convert_to_framework_exception,
    create_error_context,
    get_recovery_strategy,
)


class StructuredErrorLogger:
    # JSON-structured error logger with correlation ID tracking

    def __init__(self, logger_name: str = __name__):
        self.logger = logging.getLogger(logger_name)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def log_error(
        self,
        exception: Exception,
        context: Optional[ErrorContext] = None,
        level: str = "error",
        additional_fields: Optional[Dict[str, Any]] = None
    ) -> str:
        # Log error as a JSON record and return its correlation ID
        correlation_id = get_error_correlation_id()

        if context is None:
            if isinstance(exception, StorefrontTestError):
                context = exception.error_context
            else:
                context = create_error_context(correlation_id=correlation_id)

        if not context.correlation_id or context.correlation_id == "unknown":
            context.correlation_id = correlation_id

        framework_exception = convert_to_framework_exception(exception, context)
        strategy_context = (additional_fields or {}).get("recovery_context")

        log_entry = {
            "timestamp": time.time(),
            "level": level.upper(),
            "correlation_id": context.correlation_id,
            "error": {
                "type": type(exception).__name__,
                "message": str(exception),
                "classification": classify_error(exception).value,
                "is_local": framework_exception.is_local(),
                "recovery_strategy": get_recovery_strategy(exception, strategy_context).value,
                "recovery_suggestions": framework_exception.recovery_suggestions
            },
            "context": context.to_dict(),
        }

        if additional_fields:
            log_entry.update(
                {k: v for k, v in additional_fields.items() if k != "recovery_context"}
            )

        if exception.__cause__:
            log_entry["error"]["cause"] = {
                "type": type(exception.__cause__).__name__,
                "message": str(exception.__cause__)
            }

        log_method = getattr(self.logger, level.lower(), self.logger.error)
        log_method(json.dumps(log_entry, default=str, indent=2))

        return context.correlation_id


class JSONFormatter(logging.Formatter):
    # JSON formatter for structured logging

    def format(self, record: logging.LogRecord) -> str:
        # Messages that already are JSON objects pass through
        try:
            message = json.loads(record.getMessage())
            if isinstance(message, dict):
                return json.dumps(message, default=str)
        except (json.JSONDecodeError, TypeError):
            pass

        log_entry = {
            "timestamp": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


_structured_logger = StructuredErrorLogger("storefront.errors")


def log_error_with_context(
    exception: Exception,
    context: Optional[ErrorContext] = None,
    level: str = "error",
    **additional_fields
) -> str:
    # Convenience function to log error with context
    return _structured_logger.log_error(
        exception=exception,
        context=context,
        level=level,
        additional_fields=additional_fields
    )


def get_error_correlation_id() -> str:
    # Generate unique correlation ID for error tracking
    return str(uuid.uuid4())[:8]


def configure_error_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[str] = None
):
    # Configure the error logger's handlers
    logger = logging.getLogger("storefront.errors")
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    if format_type.lower() == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        if format_type.lower() == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
        logger.addHandler(file_handler)
