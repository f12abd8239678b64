from __future__ import annotations

from typing import List

import pytest

from costdelta.pricing.client import PricingClient
from costdelta.storage import InMemoryPriceStore
from tests.fixtures.pricing import FakeClock, FakePriceSource


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_source() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def pricing_client(fake_source, sleeps) -> PricingClient:
    return PricingClient(fake_source, InMemoryPriceStore(), sleep=sleeps.append)
