"""
Tests for PayoutMethodRegistry.

Covers validation per variant, the one-default-per-owner invariant and
e-transfer onboarding through the sandbox provider.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from payouts.exceptions import PayoutErrorCode, ProviderUnavailableError
from payouts.models import PayoutMethod
from payouts.services import PayoutMethodRegistry
from payouts.state_machines import OnboardingStatus, PayoutMethodType
from payouts.tests.factories import TEST_EVM_ADDRESS, PayoutMethodFactory
from settlements.state_machines import PaymentStatus
from settlements.tests.factories import PaymentFactory


def age(method, seconds):
    """Push a method's created_at into the past so ordering is deterministic."""
    PayoutMethod.objects.filter(pk=method.pk).update(
        created_at=timezone.now() - timedelta(seconds=seconds)
    )


# =============================================================================
# Adding Methods
# =============================================================================


class TestAddMethod:
    def test_first_method_becomes_default(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.PAYPAL, email="Creator@Example.com"
        )

        assert result.success
        method = result.data.method
        assert method.is_default is True
        assert method.email == "creator@example.com"
        assert method.is_ready_for_payouts

    def test_concurrent_default_is_stale(self, db, owner_id, mocker):
        rival = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        mocker.patch.object(PayoutMethodRegistry, "_demote_defaults")

        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.PAYPAL, is_default=True, email="b@example.com"
        )

        assert result.error_code == PayoutErrorCode.STALE_STATE
        assert list(PayoutMethod.objects.for_owner(owner_id)) == [rival]

    def test_second_method_is_not_default(self, db, owner_id):
        PayoutMethodRegistry.add_method(owner_id, PayoutMethodType.PAYPAL, email="a@example.com")

        result = PayoutMethodRegistry.add_method(owner_id, PayoutMethodType.PAYPAL, email="b@example.com")

        assert result.data.method.is_default is False
        assert PayoutMethodRegistry.get_default_method(owner_id).email == "a@example.com"

    def test_is_default_demotes_previous(self, db, owner_id):
        first = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.PAYPAL, email="a@example.com"
        ).data.method

        second = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.PAYPAL, is_default=True, email="b@example.com"
        ).data.method

        assert PayoutMethod.objects.get(pk=first.pk).is_default is False
        assert PayoutMethod.objects.get(pk=second.pk).is_default is True
        assert PayoutMethod.objects.filter(owner_id=owner_id, is_default=True).count() == 1

    def test_missing_email(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(owner_id, PayoutMethodType.PAYPAL)

        assert not result.success
        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR
        assert result.errors == {"email": ["This field is required."]}
        assert not PayoutMethod.objects.filter(owner_id=owner_id).exists()

    def test_invalid_email(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(owner_id, PayoutMethodType.ETRANSFER, email="nope")

        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR
        assert "email" in result.errors

    def test_unsupported_type(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(owner_id, "cheque", email="a@example.com")

        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR
        assert "method_type" in result.errors

    def test_field_from_another_variant_rejected(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.PAYPAL, email="a@example.com", wallet_address=TEST_EVM_ADDRESS
        )

        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR
        assert "wallet_address" in result.errors

    def test_wire_method_is_stored_unverified(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id,
            PayoutMethodType.WIRE,
            routing_number="110-000-000",
            account_number="000123456789",
            holder_name=" Jenny Rosen ",
        )

        method = result.data.method
        assert method.routing_number == "110000000"
        assert method.holder_name == "Jenny Rosen"
        assert method.country == "US"
        assert method.verification_status == "unverified"
        assert method.is_ready_for_payouts is False

    def test_wire_bad_routing_number(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id,
            PayoutMethodType.WIRE,
            routing_number="123456789",
            account_number="000123456789",
            holder_name="Jenny Rosen",
        )

        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR
        assert result.errors["routing_number"] == ["Invalid routing number"]

    def test_wire_bad_holder_type(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id,
            PayoutMethodType.WIRE,
            routing_number="110000000",
            account_number="000123456789",
            holder_name="Jenny Rosen",
            holder_type="trust",
        )

        assert "holder_type" in result.errors

    def test_crypto_invalid_address(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.CRYPTO, wallet_address="0x1234", network="ethereum"
        )

        assert result.error_code == PayoutErrorCode.INVALID_ADDRESS
        assert "wallet_address" in result.errors

    def test_crypto_stores_fee_and_rate(self, db, owner_id):
        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.CRYPTO, wallet_address=TEST_EVM_ADDRESS, network="Polygon"
        )

        method = result.data.method
        assert method.network == "polygon"
        assert method.metadata["estimated_network_fee_usd"] == "0.10"
        assert method.metadata["usd_rate_at_creation"] == "0.85"

    def test_crypto_added_without_rates(self, db, owner_id, mocker):
        from payouts.exceptions import ExchangeRateUnavailableError
        from payouts.services import CryptoPayoutService

        client = mocker.MagicMock()
        client.get_rates.side_effect = ExchangeRateUnavailableError("down")
        CryptoPayoutService.set_rate_client(client)

        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.CRYPTO, wallet_address=TEST_EVM_ADDRESS, network="polygon"
        )

        assert result.success
        assert result.data.method.metadata == {"estimated_network_fee_usd": "0.10"}


# =============================================================================
# E-Transfer Onboarding
# =============================================================================


class TestEtransferOnboarding:
    def test_add_etransfer_returns_onboarding_url(self, db, owner_id, sandbox_provider):
        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.ETRANSFER, email="creator@example.com"
        )

        assert result.success
        method = result.data.method
        assert method.provider_account_id.startswith("acct_sandbox_")
        assert method.onboarding_status == OnboardingStatus.IN_PROGRESS
        assert f"sandbox_account={method.provider_account_id}" in result.data.onboarding_url
        assert method.is_ready_for_payouts is False

    def test_provider_failure_keeps_method(self, db, owner_id, mock_provider):
        mock_provider.create_connected_account.side_effect = ProviderUnavailableError(
            "Could not connect to Stripe. Please retry."
        )

        result = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.ETRANSFER, email="creator@example.com"
        )

        assert not result.success
        assert result.error_code == PayoutErrorCode.PROVIDER_ERROR
        method = PayoutMethod.objects.get(pk=result.data.method.pk)
        assert method.onboarding_status == OnboardingStatus.NOT_STARTED
        assert method.provider_account_id == ""
        assert method.is_default is True

    def test_onboarding_can_be_restarted(self, db, owner_id, sandbox_provider):
        method = PayoutMethodFactory(owner_id=owner_id, etransfer=True, is_default=True)

        result = PayoutMethodRegistry.start_etransfer_onboarding(owner_id, method.id)

        assert result.success
        assert result.data.onboarding_url
        assert result.data.method.onboarding_status == OnboardingStatus.IN_PROGRESS

    def test_existing_account_only_gets_new_link(self, db, owner_id, mock_provider):
        method = PayoutMethodFactory(
            owner_id=owner_id,
            etransfer=True,
            provider_account_id="acct_1",
            onboarding_status=OnboardingStatus.IN_PROGRESS,
        )
        mock_provider.create_onboarding_link.return_value = "https://connect.example.com/setup"

        result = PayoutMethodRegistry.start_etransfer_onboarding(owner_id, method.id)

        assert result.data.onboarding_url == "https://connect.example.com/setup"
        mock_provider.create_connected_account.assert_not_called()

    def test_onboarding_for_non_etransfer_rejected(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id)

        result = PayoutMethodRegistry.start_etransfer_onboarding(owner_id, method.id)

        assert result.error_code == PayoutErrorCode.VALIDATION_ERROR

    def test_mark_onboarding_complete(self, db, owner_id, sandbox_provider):
        method = PayoutMethodRegistry.add_method(
            owner_id, PayoutMethodType.ETRANSFER, email="creator@example.com"
        ).data.method

        result = PayoutMethodRegistry.mark_onboarding_complete(method.id)

        assert result.success
        assert result.data.onboarding_status == OnboardingStatus.COMPLETE
        assert PayoutMethodRegistry.is_ready_for_payouts(owner_id)

    def test_mark_complete_without_account(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id, etransfer=True)

        result = PayoutMethodRegistry.mark_onboarding_complete(method.id)

        assert result.error_code == PayoutErrorCode.NOT_INITIALIZED

    def test_malformed_method_id(self, db, owner_id):
        assert PayoutMethodRegistry.mark_onboarding_complete("not-a-uuid").error_code == (
            PayoutErrorCode.METHOD_NOT_FOUND
        )
        assert PayoutMethodRegistry.start_etransfer_onboarding(owner_id, "not-a-uuid").error_code == (
            PayoutErrorCode.METHOD_NOT_FOUND
        )


# =============================================================================
# Default Management
# =============================================================================


class TestSetDefault:
    def test_switches_default(self, db, owner_id):
        first = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        second = PayoutMethodFactory(owner_id=owner_id)

        result = PayoutMethodRegistry.set_default(owner_id, second.id)

        assert result.success
        assert PayoutMethod.objects.get(pk=first.pk).is_default is False
        assert PayoutMethod.objects.get(pk=second.pk).is_default is True

    def test_already_default_is_noop(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id, is_default=True)

        result = PayoutMethodRegistry.set_default(owner_id, method.id)

        assert result.success
        assert result.data.is_default is True

    def test_other_owners_method_not_found(self, db, owner_id):
        stranger = PayoutMethodFactory(is_default=True)

        result = PayoutMethodRegistry.set_default(owner_id, stranger.id)

        assert result.error_code == PayoutErrorCode.METHOD_NOT_FOUND
        assert PayoutMethod.objects.get(pk=stranger.pk).is_default is True


class TestDeleteMethod:
    def test_deleting_default_promotes_oldest_remaining(self, db, owner_id):
        first = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        second = PayoutMethodFactory(owner_id=owner_id)
        third = PayoutMethodFactory(owner_id=owner_id)
        age(first, 30)
        age(second, 20)
        age(third, 10)

        result = PayoutMethodRegistry.delete_method(owner_id, first.id)

        assert result.success
        assert result.data.id == second.id
        assert PayoutMethod.objects.get(pk=second.pk).is_default is True
        assert PayoutMethod.objects.get(pk=third.pk).is_default is False

    def test_deleting_non_default_keeps_default(self, db, owner_id):
        default = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        other = PayoutMethodFactory(owner_id=owner_id)

        result = PayoutMethodRegistry.delete_method(owner_id, other.id)

        assert result.data.id == default.id
        assert not PayoutMethod.objects.filter(pk=other.pk).exists()

    def test_deleting_last_method(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id, is_default=True)

        result = PayoutMethodRegistry.delete_method(owner_id, method.id)

        assert result.success
        assert result.data is None
        assert PayoutMethodRegistry.list_methods(owner_id) == []

    def test_method_with_payout_in_flight_cannot_be_deleted(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        PaymentFactory(
            creator_id=owner_id,
            status=PaymentStatus.PROCESSING,
            payout_method=method,
            payout_started_at=timezone.now(),
        )

        result = PayoutMethodRegistry.delete_method(owner_id, method.id)

        assert result.error_code == PayoutErrorCode.METHOD_IN_USE
        assert PayoutMethod.objects.filter(pk=method.pk).exists()

    def test_completed_payment_keeps_destination_after_delete(self, db, owner_id):
        method = PayoutMethodFactory(owner_id=owner_id, is_default=True)
        payment = PaymentFactory(
            creator_id=owner_id,
            status=PaymentStatus.COMPLETED,
            payout_method=method,
            metadata={"payout_destination": method.destination_snapshot()},
        )

        result = PayoutMethodRegistry.delete_method(owner_id, method.id)

        assert result.success
        from settlements.models import Payment

        payment = Payment.objects.get(pk=payment.pk)
        assert payment.payout_method is None
        assert payment.metadata["payout_destination"]["payout_method_id"] == str(method.id)

    def test_unknown_method(self, db, owner_id):
        result = PayoutMethodRegistry.delete_method(owner_id, "not-a-uuid")

        assert result.error_code == PayoutErrorCode.METHOD_NOT_FOUND
