from datetime import datetime, timezone

import pytest

from property_quote_engine.dictionaries import ADDRESS_PLACEHOLDER
from property_quote_engine.errors import EmptyQuoteError
from property_quote_engine.models.quote import PropertyDetails, QuoteData, ServiceItem
from property_quote_engine.validator import calculate_gst, validate_and_recalculate


def make_quote(services, *, address="7 Banksia Ave, Hobart TAS") -> QuoteData:
    return QuoteData(
        id="Q-TEST",
        property=PropertyDetails(address=address, property_type="residential", condition="good"),
        services=services,
        subtotal=99999,
        gst=1,
        total=5,
        created_at=datetime(2025, 3, 3, tzinfo=timezone.utc),
    )


def test_totals_are_recomputed_from_services():
    services = [
        ServiceItem(description="Patch plaster", quantity=4, unit="square meters", unit_price=62.5, total_price=1),
        ServiceItem(description="Labour", quantity=1.5, unit="hours", unit_price=80, total_price=0),
        ServiceItem(description="Door handles", quantity=3, unit="item", unit_price=19.99, total_price=500),
    ]
    quote = validate_and_recalculate(make_quote(services))

    for item in quote.services:
        assert item.total_price == item.quantity * item.unit_price
    assert quote.subtotal == sum(item.quantity * item.unit_price for item in services)
    assert quote.gst == round(quote.subtotal * 0.10, 2)
    assert quote.total == quote.subtotal + quote.gst


def test_gst_rounds_half_up():
    assert calculate_gst(12.25) == 1.23
    assert calculate_gst(1100.0) == 110.0
    assert calculate_gst(0.0) == 0.0


def test_missing_line_totals_are_filled_in():
    item = ServiceItem.model_validate(
        {"description": "Clean gutters", "quantity": 20, "unit": "linear meters", "unitPrice": 12}
    )
    quote = validate_and_recalculate(make_quote([item]))
    assert quote.services[0].total_price == 240
    assert quote.subtotal == 240
    assert quote.gst == 24.0
    assert quote.total == 264.0


def test_blank_address_gets_placeholder():
    item = ServiceItem(description="Mow lawn", quantity=1, unit="item", unit_price=60)
    quote = validate_and_recalculate(make_quote([item], address="   "))
    assert quote.property.address == ADDRESS_PLACEHOLDER


def test_empty_services_fail():
    with pytest.raises(EmptyQuoteError) as exc_info:
        validate_and_recalculate(make_quote([]))
    assert exc_info.value.retryable is False
