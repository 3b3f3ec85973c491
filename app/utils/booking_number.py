"""Booking and tracking reference generation utilities."""

import random
import string
from datetime import UTC, datetime

_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_id() -> str:
    """Generate a booking identifier.

    Returns:
        str: Booking id like 'BK-20240115-A3B7K9M2'
    """
    date_part = datetime.now(UTC).strftime("%Y%m%d")
    random_part = "".join(random.choices(_ALPHABET, k=8))
    return f"BK-{date_part}-{random_part}"


def generate_tracking_id() -> str:
    """Generate a public tracking reference shared with the customer.

    Returns:
        str: Tracking id like 'TRK-K9M2X4P7Q1'
    """
    random_part = "".join(random.choices(_ALPHABET, k=10))
    return f"TRK-{random_part}"
