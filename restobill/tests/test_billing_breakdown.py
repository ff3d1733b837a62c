from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from restobill.app.services.billing_service import (
    ChargeParams,
    compute_breakdown,
    round2,
)


def test_breakdown_example():
    b = compute_breakdown(
        Decimal("300"), ChargeParams(Decimal("5"), Decimal("0"), Decimal("20"))
    )
    assert b.sub_total == Decimal("300.00")
    assert b.tax_amount == Decimal("15.00")
    assert b.discount_amount == Decimal("0.00")
    assert b.final_total == Decimal("335.00")


def test_half_cent_rounds_up():
    b = compute_breakdown(Decimal("0.10"), ChargeParams(tax_rate=Decimal("5")))
    assert b.tax_amount == Decimal("0.01")
    assert b.final_total == Decimal("0.11")


def test_coerce_treats_bad_values_as_zero():
    params = ChargeParams.coerce(
        {
            "taxRate": "abc",
            "discountRate": -10,
            "additionalCharges": None,
            "paymentMethod": "",
        },
        default_payment_method="card",
    )
    assert params.tax_rate == Decimal("0")
    assert params.discount_rate == Decimal("0")
    assert params.additional_charges == Decimal("0")
    assert params.payment_method == "card"


def test_coerce_accepts_snake_case_and_strings():
    params = ChargeParams.coerce(
        {"tax_rate": "12.5", "discount_rate": 10, "additional_charges": "5"}
    )
    assert params.tax_rate == Decimal("12.5")
    assert params.discount_rate == Decimal("10")
    assert params.additional_charges == Decimal("5")
    assert params.payment_method == "cash"


def test_coerce_rejects_booleans_and_infinities():
    params = ChargeParams.coerce({"taxRate": True, "discountRate": "Infinity"})
    assert params.tax_rate == Decimal("0")
    assert params.discount_rate == Decimal("0")


cents = st.integers(min_value=0, max_value=10_000_000).map(
    lambda c: Decimal(c) / Decimal(100)
)
rates = st.integers(min_value=0, max_value=10_000).map(
    lambda r: Decimal(r) / Decimal(100)
)


@given(sub_total=cents, tax=rates, discount=rates, extra=cents)
def test_final_total_matches_stored_components(sub_total, tax, discount, extra):
    """Stored components always add up and stay within a cent of the exact total."""
    b = compute_breakdown(sub_total, ChargeParams(tax, discount, extra))
    assert b.final_total == (
        b.sub_total + b.tax_amount + b.additional_charges - b.discount_amount
    )
    exact = round2(
        sub_total
        + sub_total * tax / Decimal(100)
        + extra
        - sub_total * discount / Decimal(100)
    )
    assert abs(b.final_total - exact) <= Decimal("0.01")
    for amount in (b.tax_amount, b.discount_amount, b.final_total):
        assert amount == round2(amount)


def test_coerce_rounds_rates_to_stored_precision():
    params = ChargeParams.coerce({"taxRate": "12.345", "discountRate": "0.005"})
    assert params.tax_rate == Decimal("12.35")
    assert params.discount_rate == Decimal("0.01")

    b = compute_breakdown(Decimal("1000"), params)
    assert b.tax_amount == Decimal("123.50")
    assert b.discount_amount == Decimal("0.10")
