"""Rate quoting with a deterministic local fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from parcelhub.core.config import PricingSettings
from parcelhub.core.constants import DEFAULT_CURRENCY
from parcelhub.core.money import to_paise
from parcelhub.providers import (
    Address,
    PackageInfo,
    ProviderError,
    ProviderQuote,
    ProviderRegistry,
    ServiceOption,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Pricing:
    """Normalized price breakdown in paise."""

    partner: str
    base_paise: int
    surcharge_paise: int
    tax_paise: int
    total_paise: int
    currency: str = DEFAULT_CURRENCY
    estimated_delivery: Optional[str] = None
    service_type: Optional[str] = None
    service_code: Optional[str] = None
    fallback: bool = False
    fallback_reason: Optional[str] = None
    options: tuple[ServiceOption, ...] = field(default_factory=tuple)

    def to_meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "partner": self.partner,
            "base_paise": self.base_paise,
            "surcharge_paise": self.surcharge_paise,
            "tax_paise": self.tax_paise,
            "total_paise": self.total_paise,
            "currency": self.currency,
            "estimated_delivery": self.estimated_delivery,
            "service_type": self.service_type,
            "service_code": self.service_code,
            "fallback": self.fallback,
        }
        if self.fallback_reason:
            meta["fallback_reason"] = self.fallback_reason
        return meta


class RateQuoter:
    """Prices a shipment through the partner's adapter.

    Any partner failure is absorbed: the caller gets the fallback estimate
    (base + per-kg, no tax) flagged with ``fallback=True``. An unknown
    partner is not a partner failure and still raises.
    """

    def __init__(self, registry: ProviderRegistry, settings: PricingSettings) -> None:
        self.registry = registry
        self.settings = settings

    def fallback(self, partner: str, weight_kg: float, reason: Optional[str] = None) -> Pricing:
        weight = Decimal(str(weight_kg))
        weight_charge = int(
            (Decimal(self.settings.fallback_per_kg_paise) * weight).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        )
        base = self.settings.fallback_base_paise
        return Pricing(
            partner=partner,
            base_paise=base,
            surcharge_paise=weight_charge,
            tax_paise=0,
            total_paise=base + weight_charge,
            estimated_delivery=self.settings.fallback_delivery_window,
            service_type="Standard",
            fallback=True,
            fallback_reason=reason,
        )

    async def quote(
        self,
        partner: str,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> Pricing:
        adapter = self.registry.resolve(partner)
        try:
            quote = await adapter.bounded(
                "quote_rate", adapter.quote_rate(pickup, delivery, package, service_hint)
            )
            return self.normalize(adapter.name, quote)
        except ProviderError as exc:
            logger.warning("[%s] rate quote failed, using fallback estimate: %s", adapter.name, exc)
            return self.fallback(adapter.name, package.weight_kg, reason=exc.code)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            logger.exception("[%s] malformed rate response, using fallback estimate", adapter.name)
            return self.fallback(adapter.name, package.weight_kg, reason=type(exc).__name__)

    @staticmethod
    def normalize(partner: str, quote: ProviderQuote) -> Pricing:
        total = to_paise(quote.total)
        if total <= 0:
            raise ValueError(f"non-positive total {quote.total}")
        base = to_paise(quote.base_rate)
        surcharge = to_paise(quote.additional_charges)
        tax = to_paise(quote.tax)
        # unitemized partner charges are carried as surcharge
        remainder = total - (base + surcharge + tax)
        if remainder > 0:
            surcharge += remainder
        return Pricing(
            partner=partner,
            base_paise=base,
            surcharge_paise=surcharge,
            tax_paise=tax,
            total_paise=total,
            currency=quote.currency,
            estimated_delivery=quote.estimated_delivery,
            service_type=quote.service_type,
            service_code=quote.service_code,
            options=quote.options,
        )
