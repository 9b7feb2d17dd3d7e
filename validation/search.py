# validation/search.py
"""
Search keyword validation.

Checks that a search keyword shows up in the names of the products the search returned.
The best-effort check only reports; ``require_results`` is the strict variant used by
structured scenario steps.
"""

import logging
from enum import Enum
from typing import Optional, Sequence

from exceptions import NoResultsError, ValidationError, create_error_context

from .core import (
    ValidationContext,
    ValidationResult,
    ValidationStatus,
    ValidationStrategy,
    ValidationType,
)

logger = logging.getLogger(__name__)


class SearchOutcome(Enum):
    KEYWORD_FOUND = "keyword_found"
    KEYWORD_ABSENT = "keyword_absent"
    NO_PRODUCTS = "no_products"


class SearchValidator(ValidationStrategy):
    """Case-insensitive keyword presence in product names."""

    validation_type = ValidationType.SEARCH_KEYWORD

    def __init__(self):
        super().__init__("SearchValidator")

    def check(
        self,
        keyword: str,
        names: Sequence[str],
        context: Optional[ValidationContext] = None
    ) -> ValidationResult:
        if not keyword:
            raise ValueError("Search keyword must be a non-empty string")

        if context is None:
            context = self.create_context(metadata={"keyword": keyword})

        names = [name for name in names if name]
        if not names:
            logger.info(f"No products found for \"{keyword}\" - skipping price rules")
            result = self.create_result(
                ValidationStatus.SKIPPED,
                context,
                outcome=SearchOutcome.NO_PRODUCTS,
                expected=keyword,
                actual=[],
                message=f"No products found for '{keyword}'",
            )
            result.add_detail("product_count", 0)
            return result

        needle = keyword.lower()
        matching = [name for name in names if needle in name.lower()]
        if matching:
            logger.info(f"Keyword \"{keyword}\" found in {len(matching)} of {len(names)} products")
            result = self.create_result(
                ValidationStatus.PASSED,
                context,
                outcome=SearchOutcome.KEYWORD_FOUND,
                expected=keyword,
                actual=list(names),
                message=f"Keyword '{keyword}' found in {len(matching)} products",
            )
        else:
            logger.warning(
                f"Keyword \"{keyword}\" not found in product names, but {len(names)} products available"
            )
            result = self.create_result(
                ValidationStatus.FAILED,
                context,
                outcome=SearchOutcome.KEYWORD_ABSENT,
                expected=keyword,
                actual=list(names),
                message=f"Keyword '{keyword}' not found in {len(names)} product names",
            )
            result.add_warning(result.message)

        result.add_detail("product_count", len(names))
        result.add_detail("matching_names", matching)
        return result

    def validate(self, expected: str, actual: Sequence[str], context: Optional[ValidationContext] = None) -> ValidationResult:
        return self.check(expected, actual, context)

    def require_results(
        self,
        keyword: str,
        names: Sequence[str],
        require_keyword: bool = False
    ) -> ValidationResult:
        """Strict variant: no products raises NoResultsError; optionally a missing keyword fails too."""
        result = self.check(keyword, names)

        if result.outcome is SearchOutcome.NO_PRODUCTS:
            raise NoResultsError(
                keyword,
                error_context=create_error_context(
                    component="Search Validation",
                    operation="require_results",
                    validation_id=result.context.validation_id,
                ),
            )

        if require_keyword and result.outcome is SearchOutcome.KEYWORD_ABSENT:
            raise ValidationError(
                message=f"Keyword '{keyword}' not found in results",
                expected_value=keyword,
                actual_value=", ".join(result.actual_value),
                validation_type="search_keyword",
                error_context=create_error_context(
                    component="Search Validation",
                    operation="require_keyword",
                    validation_id=result.context.validation_id,
                ),
            )

        return result
