from __future__ import annotations

import pytest

from backend.tests.fakes import FakePaymentProvider, InMemoryOrganizationRepository


@pytest.fixture
def repository() -> InMemoryOrganizationRepository:
    return InMemoryOrganizationRepository()


@pytest.fixture
def provider() -> FakePaymentProvider:
    return FakePaymentProvider()
