"""Tests for ps_common.cents: integer money utilities."""

import pytest

from src.ps_common.cents import cents_to_display, validate_amount
from src.ps_common.errors import InvalidAmountError


class TestValidateAmount:
    def test_zero_and_positive_pass(self) -> None:
        validate_amount("total_cost", 0)
        validate_amount("total_cost", 255)

    def test_negative_raises(self) -> None:
        with pytest.raises(InvalidAmountError) as exc_info:
            validate_amount("additional_cost", -1)
        assert exc_info.value.code == 1003
        assert "additional_cost" in exc_info.value.message


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(255) == "$2.55"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_fee(self) -> None:
        assert cents_to_display(5) == "$0.05"

    def test_thousands_separator(self) -> None:
        assert cents_to_display(123456) == "$1,234.56"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"
