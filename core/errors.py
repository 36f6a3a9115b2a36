"""
Error taxonomy shared by the engine and the Django layer.

Pure Python - NO Django imports.
"""


class errmsg:
    """Human-readable error messages returned to the operator."""

    NO_ITEMS = "Receipt has no items"
    INVALID_ITEMS = "Items must be a list"
    INVALID_WEIGHTS = "Weights must be an object keyed by percentage"
    INVALID_COEFFICIENTS = "Coefficients must be an object keyed by percentage"
    WEIGHT_TOO_LARGE = "Weight must not exceed 1000000 kg"
    COEFFICIENT_TOO_LARGE = "Coefficient must not exceed 1000"
    INVALID_PERCENTAGE = "Percentage must be an integer between 14 and 100"
    COEFFICIENT_NOT_POSITIVE = "Coefficient must be greater than 0"
    RECEIPT_NOT_FOUND = "Receipt not found"
    INVALID_DATE = "Date must be in YYYY-MM-DD format"
    INVALID_JSON = "Request body must be valid JSON"


class ScrapyardError(Exception):
    """Base class for errors surfaced to the caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ScrapyardError):
    """Input rejected by a business rule. Never retried."""


class NotFoundError(ScrapyardError):
    """The referenced receipt does not exist."""


class StoreError(ScrapyardError):
    """The persistence layer failed; no partial effects are visible."""
