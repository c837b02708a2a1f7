import re
from datetime import datetime, time
from decimal import Decimal

import pytest

from church_admin.application.ports.ledger_store import TransactionType
from church_admin.exceptions import ValidationError
from church_admin.utils import (
    format_currency,
    generate_booking_code,
    generate_reference_number,
    is_valid_email,
    is_valid_phone,
    month_bounds,
    parse_hhmm,
    to_decimal,
    transaction_type_label,
)


def test_parse_hhmm():
    assert parse_hhmm("07:30") == time(7, 30)
    assert parse_hhmm("23:59") == time(23, 59)
    for bad in ("7:30", "24:00", "12:60", "", "noon"):
        with pytest.raises(ValidationError):
            parse_hhmm(bad)


def test_to_decimal_keeps_shortest_float_digits():
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")
    assert to_decimal(5) == Decimal("5")


@pytest.mark.parametrize("value", ["10", True, None, float("nan"), float("inf")])
def test_to_decimal_rejects_non_numbers(value):
    with pytest.raises(ValidationError):
        to_decimal(value)


def test_format_currency():
    assert format_currency(Decimal("1234.5")) == "R$ 1.234,50"
    assert format_currency(-3) == "-R$ 3,00"


def test_generated_codes():
    assert re.fullmatch(r"ASS-\d{6}-[A-Z0-9]{6}", generate_booking_code())
    assert re.fullmatch(r"TRANSF-\d+-\d{3}", generate_reference_number("TRANSF"))


def test_contact_validation():
    assert is_valid_email("tesouraria@igreja.org.br")
    assert not is_valid_email("tesouraria@igreja")
    assert is_valid_phone("(11) 3333-4444")
    assert is_valid_phone("11999998888")
    assert not is_valid_phone("99999")


def test_month_bounds_wraps_december():
    assert month_bounds(2024, 2) == (datetime(2024, 2, 1), datetime(2024, 3, 1))
    assert month_bounds(2024, 12) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


def test_labels_fall_back_to_raw_value():
    assert transaction_type_label(TransactionType.TRANSFER_IN) == "Transferência Recebida"
    assert transaction_type_label("other") == "other"
