"""
Pricing
=======

Stay pricing from the property's current rates. Channel bookings are priced
the same way; any price quoted by the external platform is ignored.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from pms_core.config import settings
from pms_core.enums import PaymentType
from pms_core.models import Property


@dataclass(frozen=True)
class PriceBreakdown:
    nights: int
    subtotal: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    total: Decimal
    currency: str


def count_nights(check_in: date, check_out: date) -> int:
    # Calendar dates carry no time of day, so the day difference is already whole.
    return (check_out - check_in).days


def calculate_price_breakdown(property: Property, check_in: date, check_out: date) -> PriceBreakdown:
    """
    subtotal = base_price x nights
    total    = subtotal + cleaning_fee + service_fee
    """
    nights = count_nights(check_in, check_out)
    subtotal = Decimal(property.base_price) * nights
    cleaning_fee = Decimal(property.cleaning_fee)
    service_fee = Decimal(property.service_fee)

    return PriceBreakdown(
        nights=nights,
        subtotal=subtotal,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        total=subtotal + cleaning_fee + service_fee,
        currency=property.currency,
    )


def amount_to_pay(total: Decimal, payment_type: PaymentType) -> Decimal:
    if payment_type == PaymentType.FULL:
        return total
    return total * settings.PARTIAL_PAYMENT_RATIO


def loyalty_points_for(total: Decimal) -> int:
    """One point per LOYALTY_POINTS_DIVISOR currency units, rounded down."""
    return int(Decimal(total) // settings.LOYALTY_POINTS_DIVISOR)
