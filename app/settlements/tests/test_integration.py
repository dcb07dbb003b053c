"""
End-to-end payment lifecycles.

Each test drives the public services only: a creator registers a payout
method, the platform funds its primary account, a company approves the
payment and an admin pays it out through the sandbox provider.
"""

import uuid
from decimal import Decimal

from payouts.models import PayoutMethod
from payouts.services import BankVerificationService, PayoutMethodRegistry
from payouts.state_machines import PayoutMethodType
from payouts.tests.factories import TEST_EVM_ADDRESS
from settlements.exceptions import SettlementErrorCode
from settlements.models import Payment
from settlements.notifications import NotificationKind
from settlements.services import FundingAccountService, PaymentService, PlatformFeeConfigService
from settlements.state_machines import PaymentStatus


def fund_platform(balance="10000.00"):
    return FundingAccountService.add("Operating", "bank", "6789", is_primary=True, balance=balance).data


def create_and_approve(creator_id, company_id, gross):
    payment = PaymentService.create_payment(creator_id, company_id, gross).data
    PaymentService.approve(payment.id, company_id=company_id)
    return payment


class TestPaymentLifecycle:
    def test_paypal_lifecycle(self, db, sandbox_provider, notification_service):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        PayoutMethodRegistry.add_method(creator_id, PayoutMethodType.PAYPAL, email="creator@example.com")
        account = fund_platform()

        payment = create_and_approve(creator_id, company_id, "1000.00")
        result = PaymentService.complete(payment.id)

        assert result.success
        payment = Payment.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.provider_transaction_id.startswith("PP-")
        assert payment.metadata["payout_destination"]["method_type"] == PayoutMethodType.PAYPAL
        assert FundingAccountService.get_primary().balance == Decimal("9070.00")
        assert account.id == payment.funding_account_id
        assert PaymentService.total_earnings(creator_id) == Decimal("930.00")

        kinds = [call.args[1] for call in notification_service.notify.call_args_list]
        assert kinds == [
            NotificationKind.PAYMENT_PENDING,
            NotificationKind.PAYMENT_APPROVED,
            NotificationKind.PAYMENT_RECEIVED,
        ]

        PaymentService.record_refund(payment.id, reason="Chargeback")
        assert PaymentService.total_earnings(creator_id) == Decimal("0.00")

    def test_wire_payout_after_micro_deposits(self, db, sandbox_provider):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        method = PayoutMethodRegistry.add_method(
            creator_id,
            PayoutMethodType.WIRE,
            routing_number="110000000",
            account_number="000123456789",
            holder_name="Jenny Rosen",
        ).data.method
        fund_platform()
        payment = create_and_approve(creator_id, company_id, "500.00")

        blocked = PaymentService.complete(payment.id)
        assert blocked.error_code == SettlementErrorCode.PAYOUT_METHOD_UNAVAILABLE

        BankVerificationService.create_bank_account(method.id, owner_id=creator_id)
        verified = BankVerificationService.verify_micro_deposits(method.id, 32, 45, owner_id=creator_id)
        assert verified.success

        PaymentService.retry(payment.id)
        result = PaymentService.complete(payment.id)

        assert result.success
        assert result.data.provider_transaction_id.startswith("WIRE-")
        assert result.data.retry_count == 1

    def test_etransfer_payout_after_onboarding(self, db, sandbox_provider):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        method = PayoutMethodRegistry.add_method(
            creator_id, PayoutMethodType.ETRANSFER, email="creator@example.com"
        ).data.method
        PayoutMethodRegistry.mark_onboarding_complete(method.id)
        fund_platform()

        payment = create_and_approve(creator_id, company_id, "200.00")
        result = PaymentService.complete(payment.id)

        assert result.data.provider_transaction_id.startswith("ET-")

    def test_crypto_payout(self, db, sandbox_provider):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        PayoutMethodRegistry.add_method(
            creator_id, PayoutMethodType.CRYPTO, wallet_address=TEST_EVM_ADDRESS, network="polygon"
        )
        fund_platform()

        payment = create_and_approve(creator_id, company_id, "200.00")
        result = PaymentService.complete(payment.id)

        assert result.data.provider_transaction_id.startswith("0x")

    def test_deleted_method_keeps_payment_history(self, db, sandbox_provider):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        method = PayoutMethodRegistry.add_method(
            creator_id, PayoutMethodType.PAYPAL, email="creator@example.com"
        ).data.method
        PayoutMethodRegistry.add_method(creator_id, PayoutMethodType.PAYPAL, email="backup@example.com")
        fund_platform()
        payment = create_and_approve(creator_id, company_id, "100.00")
        PaymentService.complete(payment.id)

        result = PayoutMethodRegistry.delete_method(creator_id, method.id)

        assert result.success
        assert result.data.email == "backup@example.com"
        payment = Payment.objects.get(pk=payment.pk)
        assert payment.payout_method_id is None
        assert payment.metadata["payout_destination"]["payout_method_id"] == str(method.id)
        assert not PayoutMethod.objects.filter(pk=method.pk).exists()


class TestFundingFailures:
    def test_insufficient_funds_then_top_up_and_retry(self, db, sandbox_provider, notification_service):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        PayoutMethodRegistry.add_method(creator_id, PayoutMethodType.PAYPAL, email="creator@example.com")
        account = fund_platform("100.00")
        payment = create_and_approve(creator_id, company_id, "1000.00")

        blocked = PaymentService.complete(payment.id)

        assert blocked.error_code == SettlementErrorCode.INSUFFICIENT_FUNDS
        notification_service.notify_admins.assert_called_once()

        FundingAccountService.credit(account.id, "2000.00")
        PaymentService.retry(payment.id)
        result = PaymentService.complete(payment.id)

        assert result.success
        assert FundingAccountService.get_primary().balance == Decimal("1170.00")

    def test_fee_change_only_affects_new_payments(self, db, sandbox_provider):
        creator_id, company_id = uuid.uuid4(), uuid.uuid4()
        PayoutMethodRegistry.add_method(creator_id, PayoutMethodType.PAYPAL, email="creator@example.com")
        fund_platform()
        old = create_and_approve(creator_id, company_id, "1000.00")

        PlatformFeeConfigService.update_fee_config(platform_fee_percentage="10", processing_fee_percentage="0")
        new = create_and_approve(creator_id, company_id, "1000.00")

        summary = PaymentService.complete_all_processing().data

        assert summary.succeeded == 2
        assert Payment.objects.get(pk=old.pk).net_amount == Decimal("930.00")
        assert Payment.objects.get(pk=new.pk).net_amount == Decimal("900.00")
        assert FundingAccountService.get_primary().balance == Decimal("8170.00")
