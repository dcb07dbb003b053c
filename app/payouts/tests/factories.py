"""
Factory Boy factories for payouts models.

Usage:
    method = PayoutMethodFactory(owner_id=creator_id, is_default=True)
    wire = PayoutMethodFactory(wire=True, verified=True)
    etransfer = PayoutMethodFactory(etransfer=True, onboarded=True)
"""

import uuid

import factory

from payouts.models import PayoutMethod
from payouts.state_machines import (
    BankVerificationStatus,
    CryptoNetwork,
    OnboardingStatus,
    PayoutMethodType,
)

# Valid ABA routing number (Stripe test bank)
TEST_ROUTING_NUMBER = "110000000"
TEST_ACCOUNT_NUMBER = "000123456789"
TEST_EVM_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


class PayoutMethodFactory(factory.django.DjangoModelFactory):
    """
    Factory for PayoutMethod; builds a PayPal method unless a trait says otherwise.

    Traits:
        wire: Unverified wire/ACH method with valid US bank details
        verified: Wire method the provider has verified
        etransfer: E-transfer method without a provider account
        onboarded: E-transfer method with finished onboarding
        crypto: Polygon wallet
    """

    class Meta:
        model = PayoutMethod

    owner_id = factory.LazyFunction(uuid.uuid4)
    method_type = PayoutMethodType.PAYPAL
    is_default = False
    email = factory.Sequence(lambda n: f"creator{n}@example.com")

    class Params:
        wire = factory.Trait(
            method_type=PayoutMethodType.WIRE,
            email="",
            routing_number=TEST_ROUTING_NUMBER,
            account_number=TEST_ACCOUNT_NUMBER,
            holder_name="Jenny Rosen",
            country="US",
        )
        verified = factory.Trait(
            verification_status=BankVerificationStatus.VERIFIED,
            provider_bank_account_id=factory.Sequence(lambda n: f"ba_test_{n}"),
            provider_account_id=factory.Sequence(lambda n: f"cus_test_{n}"),
            verification_method="microdeposits",
        )
        etransfer = factory.Trait(method_type=PayoutMethodType.ETRANSFER)
        onboarded = factory.Trait(
            provider_account_id=factory.Sequence(lambda n: f"acct_test_{n}"),
            onboarding_status=OnboardingStatus.COMPLETE,
        )
        crypto = factory.Trait(
            method_type=PayoutMethodType.CRYPTO,
            email="",
            wallet_address=TEST_EVM_ADDRESS,
            network=CryptoNetwork.POLYGON,
        )
