from decimal import Decimal

import pytest

from core.money import MonetaryAmount, MoneyInput, sanitize_money_text


@pytest.mark.parametrize("n", [0, 1, 99, 100, 1099, 999999])
def test_from_integer_round_trips(n):
    assert MonetaryAmount.from_integer(n).to_integer() == n


@pytest.mark.parametrize(
    "text",
    ["0.00", "0.01", "0.10", "0.99", "1.00", "10.50", "999.99", "1000.00", "1234.56", "99999.99"],
)
def test_integer_round_trip_formats_like_original(text):
    direct = MonetaryAmount(text)
    via_int = MonetaryAmount.from_integer(direct.to_integer())
    assert via_int.format() == direct.format()
    assert via_int == direct


def test_from_integer_is_exact():
    assert MonetaryAmount.from_integer(1025).value == Decimal("10.25")
    assert MonetaryAmount.from_integer(1000).format() == "₱10.00"


def test_format_uses_peso_conventions():
    assert MonetaryAmount("1234.5").format() == "₱1,234.50"
    assert str(MonetaryAmount(1000000)) == "₱1,000,000.00"
    assert MonetaryAmount(-5).format() == "-₱5.00"


def test_format_overrides_apply_to_one_call():
    amount = MonetaryAmount("1234.5")
    assert amount.format(symbol="") == "1,234.50"
    assert amount.format(symbol="PHP ", separator=".", decimal=",") == "PHP 1.234,50"
    assert amount.format() == "₱1,234.50"


def test_parses_formatted_strings():
    assert MonetaryAmount("₱1,234.56").to_integer() == 123456
    assert MonetaryAmount("(5.00)").to_integer() == -500


@pytest.mark.parametrize("garbage", ["abc", "", "12.3.4", float("nan"), float("inf"), None, object()])
def test_garbage_becomes_zero(garbage):
    amount = MonetaryAmount(garbage)
    assert amount.to_integer() == 0
    assert amount.to_number() == 0.0


def test_rounding_is_half_away_from_zero():
    assert MonetaryAmount("1.005").to_integer() == 101
    assert MonetaryAmount("1.004").to_integer() == 100
    assert MonetaryAmount("-1.005").to_integer() == -101
    assert MonetaryAmount(1.005).to_integer() == 101


def test_float_input_has_no_binary_drift():
    assert MonetaryAmount(10.99).to_integer() == 1099
    assert MonetaryAmount(0.1 + 0.2).to_integer() == 30


def test_to_number():
    assert MonetaryAmount("10.25").to_number() == 10.25


def test_arithmetic_returns_new_instances():
    base = MonetaryAmount(10)
    total = base.add(5)
    assert total.format() == "₱15.00"
    assert base.format() == "₱10.00"

    assert base.add(MonetaryAmount("0.10")).to_integer() == 1010
    assert base.subtract(MonetaryAmount("0.01")).to_integer() == 999
    assert base.subtract(12).format() == "-₱2.00"
    assert MonetaryAmount("0.10").multiply(3).to_integer() == 30
    assert base.divide(3).to_integer() == 333


def test_divide_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        MonetaryAmount(10).divide(0)


def _type(field: MoneyInput, text: str) -> str:
    for ch in text:
        field.on_change(field.value + ch)
    return field.value


def test_typing_rejects_third_decimal():
    assert _type(MoneyInput(), "12.345") == "12.34"


def test_typing_strips_non_numeric():
    assert _type(MoneyInput(), "abc12.3abc") == "12.3"


def test_typing_keeps_a_single_period():
    assert _type(MoneyInput(), "12.34.56") == "12.34"
    assert sanitize_money_text("1.2.3") == "1.23"


def test_sanitize_keeps_thousands_separators():
    assert sanitize_money_text("₱1,234.5") == "1,234.5"


def test_blur_formats_and_commits():
    committed = []
    field = MoneyInput(on_commit=committed.append)
    field.on_change("1234.5")
    assert field.on_blur() == "1,234.50"
    assert field.value == "1,234.50"
    assert committed == ["1,234.50"]
    assert field.to_amount().to_integer() == 123450


def test_blur_accepts_existing_separators():
    field = MoneyInput()
    field.on_change("1,000")
    assert field.on_blur() == "1,000.00"


@pytest.mark.parametrize("text", ["", ".", ","])
def test_blur_resets_unparseable_input(text):
    committed = []
    field = MoneyInput(on_commit=committed.append)
    field.on_change(text)
    assert field.on_blur() == ""
    assert committed == []


def test_amounts_wider_than_default_decimal_context():
    big = MonetaryAmount(1e30)
    assert big.to_integer() == 10**32
    assert big.format() == f"₱{10**30:,}.00"

    nines = "9" * 30
    assert MonetaryAmount(nines).add("0.01").to_integer() == (int(nines) * 100) + 1
    assert MonetaryAmount(nines).multiply(nines).to_integer() == int(nines) ** 2 * 100
    assert MonetaryAmount.from_integer(int("1" * 40)).to_integer() == int("1" * 40)


def test_blur_formats_long_digit_runs():
    committed = []
    field = MoneyInput(on_commit=committed.append)
    field.on_change("1" * 30)
    assert field.on_blur() == f"{int('1' * 30):,}.00"
    assert committed == [field.value]
