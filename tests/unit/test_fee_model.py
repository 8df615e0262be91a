"""
Fee Model Unit Tests
====================
Rent pricing is plain integer arithmetic on the encoded box size.
"""

import pytest


class TestRentPricing:
    """Rent fee and minimum value from encoded size."""

    def test_reference_box_pricing(self):
        """105-byte box at 1,250,000/byte owes 131,250,000 and must keep 37,800."""
        from rentbot.modules.storage_rent.fee_model import (
            is_eligible_by_value,
            min_acceptable_value,
            rent_fee,
        )

        rent = rent_fee(105, 1_250_000)
        minimum = min_acceptable_value(105, 360)

        assert rent == 131_250_000
        assert minimum == 37_800
        assert is_eligible_by_value(500_000_000, rent, minimum) is True

    def test_exact_boundary_is_eligible(self):
        """value == rent + minimum is accepted, one less is not."""
        from rentbot.modules.storage_rent.fee_model import is_eligible_by_value

        assert is_eligible_by_value(1_037_800, 1_000_000, 37_800) is True
        assert is_eligible_by_value(1_037_799, 1_000_000, 37_800) is False

    def test_required_value_combines_both_terms(self):
        from rentbot.modules.storage_rent.fee_model import required_value

        assert required_value(105, 1_250_000, 360) == 131_250_000 + 37_800

    def test_large_values_stay_exact(self):
        """Values far beyond 64 bits never lose precision."""
        from rentbot.modules.storage_rent.fee_model import is_eligible_by_value, rent_fee

        huge = 2 ** 80 + 1
        rent = rent_fee(10 ** 12, 1_250_000)

        assert isinstance(rent, int)
        assert is_eligible_by_value(huge, rent, 0) is True
        assert is_eligible_by_value(rent - 1, rent, 0) is False


class TestEligibilityMonotonicity:
    """Raising a box's value never flips eligibility back to false."""

    @pytest.mark.parametrize("size", [1, 49, 105, 4096])
    def test_monotonic_in_value(self, size):
        from rentbot.modules.storage_rent.fee_model import (
            is_eligible_by_value,
            min_acceptable_value,
            rent_fee,
        )

        rent = rent_fee(size, 1_250_000)
        minimum = min_acceptable_value(size, 360)
        threshold = rent + minimum

        seen_true = False
        for value in range(threshold - 50, threshold + 50):
            eligible = is_eligible_by_value(value, rent, minimum)
            if seen_true:
                assert eligible, f"Eligibility flipped back at value {value}"
            seen_true = seen_true or eligible

        assert seen_true
