"""
Field validators for organizations and equipment.
"""

import re
from decimal import Decimal

from django.core.exceptions import ValidationError


def validate_phone_number(value):
    """
    Validate phone number format.

    Accepts international formats with optional country code, spaces, dashes
    and parentheses. Requires at least 10 digits.

    Valid formats:
    - +1-234-567-8900
    - +44 20 7946 0958
    - 234-567-8900

    Raises:
        ValidationError: If phone number format is invalid
    """
    if not value:
        return

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise ValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 10:
        raise ValidationError(
            'Phone number must contain at least 10 digits.',
            code='phone_too_short'
        )

    if len(set(digits)) == 1:
        raise ValidationError(
            'Phone number cannot be all the same digit.',
            code='invalid_phone_pattern'
        )


def validate_non_negative_amount(value):
    """Reject negative money amounts (rates, deposits, totals)."""
    if value is None:
        return

    if Decimal(str(value)) < 0:
        raise ValidationError(
            f'Amount cannot be negative. Got {value}.',
            code='negative_amount'
        )


def validate_external_id(value):
    """
    Validate an identity provider subject identifier.

    Identifiers are opaque but must not contain whitespace.
    """
    if value is None:
        return

    if not value.strip() or re.search(r'\s', value):
        raise ValidationError(
            'External identifier cannot be blank or contain whitespace.',
            code='invalid_external_id'
        )
