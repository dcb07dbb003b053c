"""
Tests for payout provider adapters.

The Stripe SDK is never called: stripe.* entry points are patched and the
tests check request shapes and error translation.
"""

from decimal import Decimal

import pytest
import stripe

from payouts.adapters import (
    BankAccountDetails,
    IdempotencyKeyGenerator,
    SandboxPayoutProvider,
    StripePayoutProvider,
    get_payout_provider,
    set_payout_provider,
)
from payouts.adapters.base import to_minor_units
from payouts.exceptions import (
    PayoutProviderError,
    ProviderInsufficientFundsError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from payouts.tests.factories import PayoutMethodFactory


@pytest.fixture
def bank_details():
    return BankAccountDetails(
        owner_id="owner-1",
        routing_number="110000000",
        account_number="000123456789",
        holder_name="Jenny Rosen",
    )


# =============================================================================
# Shared Helpers
# =============================================================================


class TestIdempotencyKeyGenerator:
    def test_same_inputs_same_key(self):
        first = IdempotencyKeyGenerator.generate("send_payout", "abc", attempt=1)
        second = IdempotencyKeyGenerator.generate("send_payout", "abc", attempt=1)

        assert first == second
        assert first.startswith("send_payout:abc:1:")

    def test_attempt_changes_key(self):
        first = IdempotencyKeyGenerator.generate("send_payout", "abc", attempt=1)
        second = IdempotencyKeyGenerator.generate("send_payout", "abc", attempt=2)

        assert first != second

    def test_minor_units(self):
        assert to_minor_units(Decimal("930.00")) == 93000
        assert to_minor_units(Decimal("0.76")) == 76


class TestProviderSelection:
    def test_sandbox_from_settings(self, settings):
        set_payout_provider(None)
        settings.PAYOUT_PROVIDER = "sandbox"

        assert isinstance(get_payout_provider(), SandboxPayoutProvider)

    def test_stripe_from_settings(self, settings):
        set_payout_provider(None)
        settings.PAYOUT_PROVIDER = "stripe"
        settings.STRIPE_SECRET_KEY = "sk_test_123"

        provider = get_payout_provider()

        assert isinstance(provider, StripePayoutProvider)
        assert provider.api_key == "sk_test_123"

    def test_unknown_provider(self, settings):
        set_payout_provider(None)
        settings.PAYOUT_PROVIDER = "carrier-pigeon"

        with pytest.raises(ValueError):
            get_payout_provider()


# =============================================================================
# Sandbox
# =============================================================================


class TestSandboxPayoutProvider:
    def test_payout_reference_prefix_per_method_type(self):
        provider = SandboxPayoutProvider()

        paypal = provider.send_payout(PayoutMethodFactory.build(), Decimal("10.00"), "CAD", "k1")
        wire = provider.send_payout(PayoutMethodFactory.build(wire=True), Decimal("10.00"), "CAD", "k2")
        crypto = provider.send_payout(PayoutMethodFactory.build(crypto=True), Decimal("10.00"), "CAD", "k3")
        etransfer = provider.send_payout(
            PayoutMethodFactory.build(etransfer=True), Decimal("10.00"), "CAD", "k4"
        )

        assert paypal.transaction_id.startswith("PP-")
        assert wire.transaction_id.startswith("WIRE-")
        assert crypto.transaction_id.startswith("0x")
        assert etransfer.transaction_id.startswith("ET-")

    def test_same_key_returns_same_payout(self):
        provider = SandboxPayoutProvider(balance=Decimal("100.00"))
        method = PayoutMethodFactory.build()

        first = provider.send_payout(method, Decimal("60.00"), "CAD", "key")
        second = provider.send_payout(method, Decimal("60.00"), "CAD", "key")

        assert first.transaction_id == second.transaction_id
        assert provider.balance == Decimal("40.00")
        assert len(provider.payouts) == 1

    def test_balance_too_low(self):
        provider = SandboxPayoutProvider(balance=Decimal("5.00"))

        with pytest.raises(ProviderInsufficientFundsError) as exc_info:
            provider.send_payout(PayoutMethodFactory.build(), Decimal("10.00"), "CAD", "key")

        assert exc_info.value.provider_code == "balance_insufficient"
        assert provider.balance == Decimal("5.00")

    def test_non_positive_amount(self):
        with pytest.raises(PayoutProviderError):
            SandboxPayoutProvider().send_payout(PayoutMethodFactory.build(), Decimal("0"), "CAD", "key")

    def test_bank_account_pending_with_micro_deposits(self, bank_details):
        provider = SandboxPayoutProvider()

        result = provider.create_bank_account(bank_details)

        assert result.verified is False
        assert result.verification_method == "microdeposits"
        assert provider.verify_micro_deposits(result.provider_bank_account_id, (45, 32))
        assert not provider.verify_micro_deposits(result.provider_bank_account_id, (32, 46))

    def test_onboarding_link_keeps_query(self):
        provider = SandboxPayoutProvider()

        link = provider.create_onboarding_link("acct_1", "https://app.example.com/done?tab=payouts", "")

        assert link == "https://app.example.com/done?tab=payouts&sandbox_account=acct_1"


# =============================================================================
# Stripe
# =============================================================================


class TestStripePayoutProvider:
    @pytest.fixture
    def provider(self):
        return StripePayoutProvider(api_key="sk_test_123", timeout=3)

    def test_etransfer_uses_transfer(self, provider, mocker):
        transfer = mocker.MagicMock(id="tr_123")
        transfer.to_dict.return_value = {"id": "tr_123"}
        create = mocker.patch("stripe.Transfer.create", return_value=transfer)
        method = PayoutMethodFactory.build(etransfer=True, onboarded=True, provider_account_id="acct_9")

        result = provider.send_payout(
            method, Decimal("930.00"), "CAD", "send_payout:p:1:abc", metadata={"payment_id": "p"}
        )

        assert result.transaction_id == "tr_123"
        assert result.raw_response == {"id": "tr_123"}
        create.assert_called_once_with(
            amount=93000,
            currency="cad",
            destination="acct_9",
            metadata={"payment_id": "p"},
            idempotency_key="send_payout:p:1:abc",
        )

    def test_wire_uses_payout(self, provider, mocker):
        create = mocker.patch("stripe.Payout.create", return_value=mocker.MagicMock(id="po_1"))
        method = PayoutMethodFactory.build(wire=True, verified=True, provider_bank_account_id="ba_9")

        result = provider.send_payout(method, Decimal("12.34"), "USD", "key")

        assert result.transaction_id == "po_1"
        assert create.call_args.kwargs["destination"] == "ba_9"
        assert create.call_args.kwargs["amount"] == 1234

    def test_paypal_not_supported(self, provider, mocker):
        transfer = mocker.patch("stripe.Transfer.create")

        with pytest.raises(PayoutProviderError) as exc_info:
            provider.send_payout(PayoutMethodFactory.build(), Decimal("10.00"), "CAD", "key")

        assert exc_info.value.provider_code == "unsupported_destination"
        transfer.assert_not_called()

    def test_insufficient_balance(self, provider, mocker):
        mocker.patch(
            "stripe.Transfer.create",
            side_effect=stripe.InvalidRequestError(
                "Insufficient funds in Stripe account", param=None, code="balance_insufficient"
            ),
        )
        method = PayoutMethodFactory.build(etransfer=True, onboarded=True)

        with pytest.raises(ProviderInsufficientFundsError) as exc_info:
            provider.send_payout(method, Decimal("10.00"), "CAD", "key")

        assert exc_info.value.message == "Insufficient funds in Stripe account"

    def test_invalid_request_keeps_stripe_message(self, provider, mocker):
        mocker.patch(
            "stripe.Transfer.create",
            side_effect=stripe.InvalidRequestError("No such destination", param="destination"),
        )
        method = PayoutMethodFactory.build(etransfer=True, onboarded=True)

        with pytest.raises(PayoutProviderError) as exc_info:
            provider.send_payout(method, Decimal("10.00"), "CAD", "key")

        assert exc_info.value.message == "No such destination"
        assert not exc_info.value.is_retryable

    def test_rate_limit_is_retryable(self, provider, mocker):
        mocker.patch("stripe.Transfer.create", side_effect=stripe.RateLimitError("Too many requests"))
        method = PayoutMethodFactory.build(etransfer=True, onboarded=True)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            provider.send_payout(method, Decimal("10.00"), "CAD", "key")

        assert exc_info.value.is_retryable

    def test_timeout(self, provider, mocker):
        mocker.patch(
            "stripe.Payout.create",
            side_effect=stripe.APIConnectionError("Request timed out"),
        )
        method = PayoutMethodFactory.build(wire=True, verified=True)

        with pytest.raises(ProviderTimeoutError):
            provider.send_payout(method, Decimal("10.00"), "CAD", "key")

    def test_authentication_error(self, provider, mocker):
        mocker.patch("stripe.Account.create", side_effect=stripe.AuthenticationError("Invalid API Key"))

        with pytest.raises(PayoutProviderError) as exc_info:
            provider.create_connected_account("owner-1", "creator@example.com")

        assert exc_info.value.provider_code == "authentication_error"

    def test_api_error(self, provider, mocker):
        mocker.patch("stripe.AccountLink.create", side_effect=stripe.APIError("Server error"))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            provider.create_onboarding_link("acct_1", "https://a", "https://b")

        assert exc_info.value.provider_code == "api_error"

    def test_create_bank_account_pending(self, provider, mocker, bank_details):
        mocker.patch("stripe.Customer.create", return_value=mocker.MagicMock(id="cus_1"))
        create_source = mocker.patch(
            "stripe.Customer.create_source",
            return_value=mocker.MagicMock(id="ba_1", status="new"),
        )

        result = provider.create_bank_account(bank_details)

        assert result.provider_bank_account_id == "ba_1"
        assert result.provider_customer_id == "cus_1"
        assert result.verified is False
        source = create_source.call_args.kwargs["source"]
        assert source["routing_number"] == "110000000"
        assert source["currency"] == "cad"

    def test_micro_deposit_mismatch_returns_false(self, provider, mocker):
        client = mocker.MagicMock()
        client.customers.payment_sources.verify.side_effect = stripe.InvalidRequestError(
            "The amounts provided do not match",
            param="amounts",
            code="bank_account_verification_failed",
        )
        mocker.patch.object(provider, "_client", return_value=client)

        assert provider.verify_micro_deposits("ba_1", (10, 20), customer_id="cus_1") is False

    def test_micro_deposits_verified(self, provider, mocker):
        client = mocker.MagicMock()
        client.customers.payment_sources.verify.return_value = mocker.MagicMock(status="verified")
        mocker.patch.object(provider, "_client", return_value=client)

        assert provider.verify_micro_deposits("ba_1", (32, 45), customer_id="cus_1") is True
        client.customers.payment_sources.verify.assert_called_once_with(
            "cus_1", "ba_1", params={"amounts": [32, 45]}
        )

    def test_micro_deposits_need_customer(self, provider):
        with pytest.raises(PayoutProviderError) as exc_info:
            provider.verify_micro_deposits("ba_1", (32, 45))

        assert exc_info.value.provider_code == "missing_customer"
