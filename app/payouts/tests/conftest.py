"""
Pytest fixtures for payouts tests.

Provider and rate client are process-wide singletons; every test starts
from the settings-selected ones and an empty cache.
"""

import uuid

import pytest
from django.core.cache import cache

from payouts.adapters import SandboxPayoutProvider, set_payout_provider
from payouts.services import CryptoPayoutService
from payouts.tests.factories import PayoutMethodFactory


@pytest.fixture(autouse=True)
def reset_payout_collaborators():
    cache.clear()
    yield
    set_payout_provider(None)
    CryptoPayoutService.set_rate_client(None)
    cache.clear()


@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
def sandbox_provider():
    """Sandbox provider installed as the active payout provider."""
    provider = SandboxPayoutProvider()
    set_payout_provider(provider)
    return provider


@pytest.fixture
def mock_provider(mocker):
    """MagicMock installed as the active payout provider."""
    provider = mocker.MagicMock()
    set_payout_provider(provider)
    return provider


@pytest.fixture
def wire_method(db, owner_id):
    """Unverified wire method, the owner's default."""
    return PayoutMethodFactory(owner_id=owner_id, wire=True, is_default=True)


@pytest.fixture
def pending_wire_method(db, owner_id):
    """Wire method submitted to the provider and waiting for micro-deposits."""
    return PayoutMethodFactory(
        owner_id=owner_id,
        wire=True,
        is_default=True,
        verification_status="pending",
        provider_bank_account_id="ba_1",
        provider_account_id="cus_1",
    )

