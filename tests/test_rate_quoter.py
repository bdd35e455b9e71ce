from decimal import Decimal

import pytest

from parcelhub.domain.pricing import RateQuoter
from parcelhub.providers import NoServiceableRoute, ProviderQuote, UnknownProvider

from tests.fakes import outage, sample_address, sample_package


async def test_partner_quote_is_normalized_to_paise(quoter):
    pricing = await quoter.quote("delhivery", sample_address(), sample_address("400001"), sample_package())

    assert not pricing.fallback
    assert pricing.partner == "delhivery"
    assert pricing.base_paise == 10000
    assert pricing.surcharge_paise == 2000
    assert pricing.tax_paise == 2160
    assert pricing.total_paise == 14160
    assert pricing.service_code == "E"


async def test_outage_yields_fallback_estimate(quoter, delhivery):
    delhivery.quote = outage()

    pricing = await quoter.quote("delhivery", sample_address(), sample_address(), sample_package(2.5))

    # 5000 base + 2.5 kg * 1000 per kg
    assert pricing.fallback
    assert pricing.total_paise == 7500
    assert pricing.base_paise == 5000
    assert pricing.surcharge_paise == 2500
    assert pricing.tax_paise == 0
    assert pricing.fallback_reason == "provider_unavailable"
    assert pricing.to_meta()["fallback"] is True


async def test_no_route_also_falls_back(quoter, nimbuspost):
    nimbuspost.quote = NoServiceableRoute("none", partner="nimbuspost", operation="quote_rate")
    pricing = await quoter.quote("nimbuspost", sample_address(), sample_address(), sample_package(1))
    assert pricing.fallback
    assert pricing.total_paise == 6000


async def test_zero_total_from_partner_falls_back(quoter, delhivery):
    delhivery.quote = ProviderQuote(
        base_rate=Decimal(0), additional_charges=Decimal(0), tax=Decimal(0), total=Decimal(0)
    )
    pricing = await quoter.quote("delhivery", sample_address(), sample_address(), sample_package(2))
    assert pricing.fallback
    assert pricing.fallback_reason == "ValueError"


async def test_unknown_partner_is_not_absorbed(quoter):
    with pytest.raises(UnknownProvider):
        await quoter.quote("fedex", sample_address(), sample_address(), sample_package())


def test_unitemized_remainder_is_carried_as_surcharge():
    quote = ProviderQuote(
        base_rate=Decimal("100"),
        additional_charges=Decimal("10"),
        tax=Decimal("18"),
        total=Decimal("135.50"),
    )
    pricing = RateQuoter.normalize("delhivery", quote)
    assert pricing.surcharge_paise == 1000 + 750
    assert pricing.base_paise + pricing.surcharge_paise + pricing.tax_paise == pricing.total_paise


def test_fallback_rounds_fractional_weight(quoter):
    pricing = quoter.fallback("delhivery", 0.3333)
    assert pricing.surcharge_paise == 333
    assert pricing.total_paise == 5333
