"""
Pricing resolver for checkout.

Resolves the authoritative unit price for a package or fixed departure
from the content backend. Client-submitted prices are never consulted.

Sources:
    Fixed departure:
        GET /api/fixed-departures/slug/{slug}
        A selected departure date may override the base price when the
        matching batch is not sold out and carries a positive price.
    Package (tried in order until one yields a positive price):
        GET /api/all-packages/{slug}
        GET /api/packages/slug/{slug}

Usage:
    from payments.services import PricingResolver

    resolver = PricingResolver(ContentBackendClient(payment_settings))
    result = resolver.resolve(CheckoutType.PACKAGE, "kedarnath-yatra")
    if result.success:
        pricing = result.data  # ResolvedPricing
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

from django.utils.dateparse import parse_date, parse_datetime

from core.services import BaseService, ServiceResult

from payments.exceptions import ContentBackendError, PricingNotFoundError
from payments.state_machines import CheckoutType, PriceType, UnitLabel

if TYPE_CHECKING:
    from payments.adapters import ContentBackendClient


SOLD_OUT_STATUS = "soldout"

# Keys the content backend may wrap a single object in
ENVELOPE_KEYS = ("package", "destination", "data")


@dataclass(frozen=True)
class ResolvedPricing:
    """
    Authoritative pricing for one product.

    Attributes:
        product_id: Content backend id of the package or departure
        price: Unit price in major currency units (always > 0)
        price_type: PriceType value
        title: Display title
        destination: Display destination
    """

    product_id: str
    price: Decimal
    price_type: str
    title: str
    destination: str

    @property
    def is_per_couple(self) -> bool:
        return self.price_type == PriceType.PER_COUPLE

    @property
    def unit_label(self) -> str:
        return UnitLabel.PER_COUPLE if self.is_per_couple else UnitLabel.PER_PERSON


# =============================================================================
# Normalization Helpers
# =============================================================================


def parse_price(value: Any) -> Decimal | None:
    """Return value as a positive Decimal, or None if it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def normalize_date(value: Any) -> str | None:
    """
    Normalize a date or ISO datetime to YYYY-MM-DD.

    Aware datetimes are converted to UTC first. Returns None for anything
    that does not parse.
    """
    if isinstance(value, datetime.datetime):
        parsed_date = value.astimezone(datetime.timezone.utc).date() if value.tzinfo else value.date()
        return parsed_date.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        parsed = parse_datetime(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        return normalize_date(parsed)
    try:
        parsed_date = parse_date(text[:10])
    except ValueError:
        return None
    return parsed_date.isoformat() if parsed_date else None


def unwrap(body: Any) -> dict[str, Any]:
    """Return the product object from a possibly enveloped response body."""
    if not isinstance(body, dict):
        return {}
    for key in ENVELOPE_KEYS:
        inner = body.get(key)
        if isinstance(inner, dict):
            return inner
    return body


def _first(obj: dict[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = obj.get(key)
        if value:
            return str(value)
    return default


# =============================================================================
# Pricing Resolver
# =============================================================================


class PricingResolver(BaseService):
    """
    Resolve authoritative prices from the content backend.

    Failure error codes:
        PRICING_NOT_FOUND: Sources answered but none had a positive price
        PRICING_SOURCE_UNAVAILABLE: Every source failed to answer
    """

    def __init__(self, client: ContentBackendClient):
        self.client = client

    def resolve(
        self,
        checkout_type: str,
        slug: str,
        departure_date: Any = None,
    ) -> ServiceResult[ResolvedPricing]:
        if checkout_type == CheckoutType.FIXED_DEPARTURE:
            sources = [("fixed-departure", lambda: self._from_fixed_departure(slug, departure_date))]
        else:
            sources = [
                ("all-packages", lambda: self._from_package(self.client.get_package_listing, slug, prefer_name=True)),
                ("packages", lambda: self._from_package(self.client.get_package, slug, prefer_name=False)),
            ]
        return self._first_priced(slug, sources)

    def _first_priced(
        self,
        slug: str,
        sources: list[tuple[str, Callable[[], ResolvedPricing | None]]],
    ) -> ServiceResult[ResolvedPricing]:
        logger = self.get_logger()
        answered = False

        for source_name, fetch in sources:
            try:
                pricing = fetch()
            except ContentBackendError as e:
                # 404 is a definite answer; anything else means the source is down
                answered = answered or e.status_code == 404
                logger.warning(
                    "Pricing source %s failed for %s: %s",
                    source_name,
                    slug,
                    e.message,
                    extra={"slug": slug, "source": source_name, "status_code": e.status_code},
                )
                continue
            answered = True
            if pricing is not None:
                logger.info(
                    "Resolved price for %s from %s",
                    slug,
                    source_name,
                    extra={"slug": slug, "source": source_name, "price": str(pricing.price)},
                )
                return ServiceResult.success(pricing)

        if not answered:
            return ServiceResult.from_exception(
                ContentBackendError(
                    "Pricing service is unavailable. Please try again.",
                    error_code="PRICING_SOURCE_UNAVAILABLE",
                )
            )
        return ServiceResult.from_exception(PricingNotFoundError("Unable to verify package pricing"))

    def _from_fixed_departure(self, slug: str, departure_date: Any) -> ResolvedPricing | None:
        departure = unwrap(self.client.get_fixed_departure(slug))
        price = parse_price(departure.get("price"))

        target_date = normalize_date(departure_date)
        batches = departure.get("departures")
        if target_date and isinstance(batches, list):
            for batch in batches:
                if not isinstance(batch, dict) or normalize_date(batch.get("date")) != target_date:
                    continue
                batch_price = parse_price(batch.get("price"))
                if batch.get("status") != SOLD_OUT_STATUS and batch_price is not None:
                    price = batch_price
                break

        if price is None:
            return None
        return ResolvedPricing(
            product_id=_first(departure, "_id", "id"),
            price=price,
            price_type=PriceType.PER_PERSON,
            title=_first(departure, "title", default="Fixed Departure"),
            destination=_first(departure, "destination"),
        )

    def _from_package(
        self,
        fetch: Callable[[str], Any],
        slug: str,
        prefer_name: bool,
    ) -> ResolvedPricing | None:
        package = unwrap(fetch(slug))
        price = parse_price(package.get("price"))
        if price is None:
            return None

        title_keys = ("name", "title") if prefer_name else ("title", "name")
        destination_keys = ("location", "destination") if prefer_name else ("destination", "location")
        price_type = PriceType.PER_COUPLE if package.get("priceType") == PriceType.PER_COUPLE else PriceType.PER_PERSON

        return ResolvedPricing(
            product_id=_first(package, "_id", "id"),
            price=price,
            price_type=price_type,
            title=_first(package, *title_keys, default="Travel Package"),
            destination=_first(package, *destination_keys),
        )
