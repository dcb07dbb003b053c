"""
Pytest fixtures for settlements tests.

Provides:
- Mocked Redis for DistributedLock (autouse)
- A MagicMock notification service (autouse), since the Celery-backed one
  only fires on commit
- Payments in each state, a funded primary account and a ready payout method
"""

import uuid
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from payouts.adapters import SandboxPayoutProvider, set_payout_provider
from payouts.services import CryptoPayoutService
from payouts.tests.factories import PayoutMethodFactory
from settlements.notifications import set_notification_service
from settlements.services import PlatformFeeConfigService
from settlements.state_machines import PaymentStatus
from settlements.tests.factories import FundingAccountFactory, PaymentFactory


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture(autouse=True)
def mock_redis(mocker):
    """
    Mock Redis client for distributed locks.

    Returns a MagicMock whose SET NX always succeeds and whose release
    script reports the key deleted.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1
    mocker.patch("settlements.locks.get_redis_connection", return_value=mock_client)
    return mock_client


@pytest.fixture(autouse=True)
def notification_service(mocker):
    service = mocker.MagicMock()
    set_notification_service(service)
    yield service
    set_notification_service(None)


@pytest.fixture(autouse=True)
def reset_settlement_state():
    PlatformFeeConfigService.clear_cache()
    cache.clear()
    yield
    PlatformFeeConfigService.clear_cache()
    set_payout_provider(None)
    CryptoPayoutService.set_rate_client(None)


@pytest.fixture
def sandbox_provider():
    provider = SandboxPayoutProvider()
    set_payout_provider(provider)
    return provider


@pytest.fixture
def mock_provider(mocker):
    provider = mocker.MagicMock()
    set_payout_provider(provider)
    return provider


# =============================================================================
# Parties
# =============================================================================


@pytest.fixture
def creator_id():
    return uuid.uuid4()


@pytest.fixture
def company_id():
    return uuid.uuid4()


@pytest.fixture
def funding_account(db):
    """Active primary funding account holding 10,000.00."""
    return FundingAccountFactory(is_primary=True, balance=Decimal("10000.00"))


@pytest.fixture
def payout_method(db, creator_id):
    """The creator's default PayPal method, ready for payouts."""
    return PayoutMethodFactory(owner_id=creator_id, is_default=True)


# =============================================================================
# Payments
# =============================================================================


@pytest.fixture
def pending_payment(db, creator_id, company_id):
    return PaymentFactory(creator_id=creator_id, company_id=company_id)


@pytest.fixture
def processing_payment(db, creator_id, company_id):
    return PaymentFactory(
        creator_id=creator_id,
        company_id=company_id,
        status=PaymentStatus.PROCESSING,
        processing_at=timezone.now(),
    )


@pytest.fixture
def completed_payment(db, creator_id, company_id):
    return PaymentFactory(
        creator_id=creator_id,
        company_id=company_id,
        status=PaymentStatus.COMPLETED,
        processing_at=timezone.now(),
        completed_at=timezone.now(),
        provider_transaction_id="PP-test",
    )


@pytest.fixture
def failed_payment(db, creator_id, company_id):
    return PaymentFactory(
        creator_id=creator_id,
        company_id=company_id,
        status=PaymentStatus.FAILED,
        failure_kind="provider_error",
        failure_reason="Destination account closed",
        failed_at=timezone.now(),
    )


@pytest.fixture
def in_flight_payment(db, creator_id, company_id):
    """Processing payment whose provider call has started."""
    return PaymentFactory(
        creator_id=creator_id,
        company_id=company_id,
        status=PaymentStatus.PROCESSING,
        processing_at=timezone.now(),
        payout_started_at=timezone.now(),
    )
