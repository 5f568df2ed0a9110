"""
Indicative visit prices.

BUSINESS RULE: The price is a static lookup by specialty name (no billing or
payment processing). It is copied onto the appointment once, at booking time,
and never recomputed afterwards.
"""
from django.conf import settings


def get_indicative_price_cents(specialty):
    """
    Price in cents for ``specialty`` (a Specialty instance or a name).

    Unknown specialties get SPECIALTY_DEFAULT_PRICE_CENTS; no specialty at all
    means no price.
    """
    if specialty is None:
        return None

    name = specialty if isinstance(specialty, str) else specialty.name
    return settings.SPECIALTY_PRICE_CENTS.get(name, settings.SPECIALTY_DEFAULT_PRICE_CENTS)
