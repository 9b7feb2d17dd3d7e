# validation/core.py
"""
Result types shared by the storefront checks.

Search checks and cart reconciliation report through these types rather than raising:
a failed check is data that ends up in the run summary.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone


class ValidationStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ValidationType(Enum):
    SEARCH_KEYWORD = "search_keyword"
    CART_LINE_ITEM = "cart_line_item"
    CART_TOTAL = "cart_total"


@dataclass
class ValidationContext:
    # Identifiers that tie a result back to its log records
    validation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    validation_type: ValidationType = ValidationType.SEARCH_KEYWORD
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    """
    Outcome of a single check.

    ``outcome`` is the check-specific verdict (for example ``KEYWORD_ABSENT``);
    ``status`` is the pass/fail view of it.
    """
    status: ValidationStatus
    validation_type: ValidationType
    context: ValidationContext

    outcome: Optional[Enum] = None
    expected_value: Any = None
    actual_value: Any = None
    message: str = ""

    details: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def is_successful(self) -> bool:
        return self.status == ValidationStatus.PASSED

    def add_detail(self, key: str, value: Any) -> None:
        self.details[key] = value

    def add_warning(self, warning_message: str) -> None:
        self.warnings.append(warning_message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validation_id": self.context.validation_id,
            "correlation_id": self.context.correlation_id,
            "status": self.status.value,
            "outcome": self.outcome.value if self.outcome is not None else None,
            "validation_type": self.validation_type.value,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
            "message": self.message,
            "details": self.details,
            "warnings": self.warnings,
            "timestamp": self.context.timestamp.isoformat(),
            "metadata": self.context.metadata
        }


class ValidationStrategy(ABC):
    """
    Base class for the harness checks.

    Checks are pure: they read the values they are given and never touch the page.
    """

    validation_type = ValidationType.SEARCH_KEYWORD

    def __init__(self, name: str):
        self.name = name

    def create_context(
        self,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ValidationContext:
        context = ValidationContext(
            correlation_id=correlation_id,
            validation_type=self.validation_type
        )
        if metadata:
            context.metadata.update(metadata)
        return context

    def create_result(
        self,
        status: ValidationStatus,
        context: ValidationContext,
        outcome: Optional[Enum] = None,
        expected: Any = None,
        actual: Any = None,
        message: str = ""
    ) -> ValidationResult:
        return ValidationResult(
            status=status,
            validation_type=self.validation_type,
            context=context,
            outcome=outcome,
            expected_value=expected,
            actual_value=actual,
            message=message
        )

    @abstractmethod
    def validate(self, expected: Any, actual: Any, context: Optional[ValidationContext] = None) -> Any:
        """Run the check."""
