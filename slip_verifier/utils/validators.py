"""
Validators Module
-----------------
Input checks shared by the verifier and the command-line entry point.
"""

import os
from decimal import Decimal, InvalidOperation

from slip_verifier.core.image_loader import SUPPORTED_EXTENSIONS


def validate_document_path(path):
    """Check if a path points to an existing slip file with an accepted extension."""
    return os.path.isfile(path) and path.lower().endswith(SUPPORTED_EXTENSIONS)


def parse_required_amount(value):
    """
    Convert a required amount to a positive, finite Decimal.

    Args:
        value (str | int | float | Decimal): Amount owed.

    Returns:
        Decimal: The parsed amount.

    Raises:
        ValueError: If the value is not a number, not finite, or not positive.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid required amount: {value!r}")
    try:
        amount = Decimal(str(value).strip().replace(',', ''))
    except InvalidOperation:
        raise ValueError(f"Invalid required amount: {value!r}") from None

    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Required amount must be a positive number, got {value!r}")
    return amount
