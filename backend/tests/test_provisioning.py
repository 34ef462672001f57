"""Tests for linking organizations to processor customers."""
from __future__ import annotations

import asyncio

import pytest

from backend.app.billing import (
    CustomerProvisioner,
    CustomerProvisioningFailed,
    IdempotencyConflict,
    PaymentProviderError,
    customer_idempotency_key,
)
from backend.tests.fakes import FakePaymentProvider, make_organization


class InFlightCustomerProvider(FakePaymentProvider):
    """Answers requests that arrive while the first one is pending with a conflict."""

    def __init__(self, pending_yields: int = 3) -> None:
        super().__init__()
        self.pending_yields = pending_yields
        self.in_flight = False

    async def create_customer(self, *, name, metadata, idempotency_key) -> str:
        self.customer_calls.append({"name": name, "metadata": metadata, "idempotency_key": idempotency_key})
        if self.in_flight:
            raise IdempotencyConflict(idempotency_key=idempotency_key, reason="request in progress")
        self.in_flight = True
        for _ in range(self.pending_yields):
            await asyncio.sleep(0)
        self.in_flight = False
        return "cus_winner"


def _provisioner(repository, provider, **overrides) -> CustomerProvisioner:
    return CustomerProvisioner(repository=repository, provider=provider, retry_delay=0, **overrides)


def test_existing_customer_is_returned_without_processor_call(repository, provider):
    organization = repository.add(make_organization(external_customer_id="cus_existing"))

    customer_id = asyncio.run(_provisioner(repository, provider).ensure_customer(organization))

    assert customer_id == "cus_existing"
    assert provider.customer_calls == []


def test_new_customer_is_created_and_persisted(repository, provider):
    organization = repository.add(make_organization())

    customer_id = asyncio.run(_provisioner(repository, provider).ensure_customer(organization))

    assert customer_id == "cus_1"
    assert repository.organizations["org-1"].external_customer_id == "cus_1"
    assert provider.customer_calls == [
        {"name": "Sunset Tint", "metadata": {"organizationId": "org-1"}, "idempotency_key": "customer_org-1"}
    ]


def test_idempotency_key_depends_only_on_organization():
    assert customer_idempotency_key("org-42") == "customer_org-42"


def test_concurrent_provisioning_persists_one_customer(repository, provider):
    organization = repository.add(make_organization())
    provisioner = _provisioner(repository, provider)

    async def run_both():
        return await asyncio.gather(
            provisioner.ensure_customer(organization),
            provisioner.ensure_customer(organization),
        )

    first, second = asyncio.run(run_both())

    stored = repository.organizations["org-1"].external_customer_id
    assert first == second == stored
    assert len(provider.customer_calls) == 2
    assert {call["idempotency_key"] for call in provider.customer_calls} == {"customer_org-1"}


def test_second_member_waits_for_in_flight_customer(repository):
    organization = repository.add(make_organization())
    provider = InFlightCustomerProvider()
    provisioner = _provisioner(repository, provider)

    async def run_both():
        return await asyncio.gather(
            provisioner.ensure_customer(organization),
            provisioner.ensure_customer(organization),
        )

    first, second = asyncio.run(run_both())

    assert first == second == "cus_winner"
    assert repository.organizations["org-1"].external_customer_id == "cus_winner"
    assert len({(call["name"], tuple(call["metadata"].items())) for call in provider.customer_calls}) == 1


def test_idempotency_conflict_reads_back_stored_customer(repository, provider):
    organization = repository.add(make_organization())
    repository.replace("org-1", external_customer_id="cus_winner")
    provider.customer_error = IdempotencyConflict(idempotency_key="customer_org-1")

    customer_id = asyncio.run(_provisioner(repository, provider).ensure_customer(organization))

    assert customer_id == "cus_winner"
    assert len(provider.customer_calls) == 1


def test_persistent_idempotency_conflict_is_bounded(repository, provider):
    organization = repository.add(make_organization())
    provider.customer_error = IdempotencyConflict(idempotency_key="customer_org-1")

    with pytest.raises(CustomerProvisioningFailed) as excinfo:
        asyncio.run(_provisioner(repository, provider, max_attempts=3).ensure_customer(organization))

    assert excinfo.value.detail == {"attempts": 3}
    assert len(provider.customer_calls) == 3


def test_processor_failure_is_reported(repository, provider):
    organization = repository.add(make_organization())
    provider.customer_error = PaymentProviderError(message="card network down")

    with pytest.raises(CustomerProvisioningFailed) as excinfo:
        asyncio.run(_provisioner(repository, provider).ensure_customer(organization))

    assert excinfo.value.status_code == 500
    assert repository.organizations["org-1"].external_customer_id is None


def test_max_attempts_must_be_positive(repository, provider):
    with pytest.raises(ValueError):
        CustomerProvisioner(repository=repository, provider=provider, max_attempts=0)
