from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from parcelhub.core.config import BookingSettings, PricingSettings, TrackingSettings
from parcelhub.domain.pricing import RateQuoter
from parcelhub.domain.wallets import WalletLedger
from parcelhub.infrastructure.database.session import init_db
from parcelhub.providers import ProviderRegistry

from tests.fakes import FakeAdapter


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'parcelhub-test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def delhivery() -> FakeAdapter:
    return FakeAdapter("delhivery")


@pytest.fixture
def nimbuspost() -> FakeAdapter:
    return FakeAdapter("nimbuspost")


@pytest.fixture
async def registry(delhivery, nimbuspost):
    registry = ProviderRegistry([delhivery, nimbuspost])
    yield registry
    await registry.aclose()


@pytest.fixture
def pricing_settings() -> PricingSettings:
    return PricingSettings(fallback_base_paise=5000, fallback_per_kg_paise=1000)


@pytest.fixture
def quoter(registry, pricing_settings) -> RateQuoter:
    return RateQuoter(registry, pricing_settings)


@pytest.fixture
def booking_settings() -> BookingSettings:
    return BookingSettings(max_attempts=3, backoff_seconds=0, poll_interval=0.05, claim_lease_seconds=300)


@pytest.fixture
def tracking_settings() -> TrackingSettings:
    return TrackingSettings(enabled=False, interval=3600, batch_size=50)


@pytest.fixture
def fund(session_factory):
    """Credit an account and commit, returning the new balance."""

    async def _fund(account_id: str, amount_paise: int) -> int:
        async with session_factory() as session:
            transaction = await WalletLedger.with_session(session).credit(account_id, amount_paise, "Opening balance")
            await session.commit()
            return transaction.balance_after_paise

    return _fund
