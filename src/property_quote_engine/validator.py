from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from .dictionaries import ADDRESS_PLACEHOLDER, GST_RATE
from .errors import EmptyQuoteError
from .models.quote import QuoteData

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def calculate_gst(subtotal: float) -> float:
    gst = (Decimal(repr(subtotal)) * Decimal(GST_RATE)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return float(gst)


def validate_and_recalculate(quote: QuoteData) -> QuoteData:
    """Recompute every monetary figure on ``quote`` from its service lines.

    Model-supplied totals are never trusted: each line total becomes
    quantity x unit price, and subtotal, GST and total are derived from those.
    The quote is mutated in place and returned.
    """
    if not quote.services:
        raise EmptyQuoteError("No services identified from transcript")

    subtotal = 0.0
    for service in quote.services:
        recomputed = service.quantity * service.unit_price
        if service.total_price != recomputed:
            logger.debug(
                "Corrected service total",
                extra={
                    "quote_id": quote.id,
                    "service_id": service.id,
                    "supplied": service.total_price,
                    "recomputed": recomputed,
                },
            )
        service.total_price = recomputed
        subtotal += recomputed

    quote.subtotal = subtotal
    quote.gst = calculate_gst(subtotal)
    quote.total = quote.subtotal + quote.gst

    if not quote.property.address.strip():
        quote.property = quote.property.model_copy(update={"address": ADDRESS_PLACEHOLDER})

    return quote


__all__ = ["validate_and_recalculate", "calculate_gst"]
