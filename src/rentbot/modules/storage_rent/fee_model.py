"""
Fee Model
=========
Pure integer arithmetic mapping a box's encoded size to its rent fee and
minimum acceptable value. No rounding, no floats.
"""


def rent_fee(encoded_size: int, fee_per_byte: int) -> int:
    """Storage rent owed by a box of `encoded_size` bytes."""
    return encoded_size * fee_per_byte


def min_acceptable_value(encoded_size: int, min_value_per_byte: int) -> int:
    """Smallest value the recreated box may carry."""
    return encoded_size * min_value_per_byte


def is_eligible_by_value(box_value: int, rent: int, min_value: int) -> bool:
    """
    A box is claimable only if it can pay its rent and still hold the minimum value.

    Monotonic in `box_value`: once true, any larger value stays true.
    """
    return box_value >= rent + min_value


def required_value(encoded_size: int, fee_per_byte: int, min_value_per_byte: int) -> int:
    return rent_fee(encoded_size, fee_per_byte) + min_acceptable_value(encoded_size, min_value_per_byte)
