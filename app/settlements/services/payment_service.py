"""
Payment lifecycle service.

PaymentService runs every transition of a Payment: creation with a fee
snapshot, company approval and dispute, and the admin operations that
queue, pay out, retry and record refunds.

Every transition runs in a transaction with the payment row locked. Callers
may pass the version they last saw; if the payment moved since, the call is
rejected with STALE_STATE instead of acting on a state the caller never saw.

Payout Execution (complete):
    1. Acquire a distributed lock on the payment so two admins cannot pay
       the same payment out at once
    2. Phase 1, in a transaction: check the minimum payout, the primary
       funding account and the creator's payout method, debit the funding
       account and stamp payout_started_at
    3. Phase 2, outside any transaction: call the payout provider with an
       idempotency key derived from the payment id and retry count
    4. Phase 3, in a transaction: complete the payment, or fail it and
       credit the debited amount back

A worker lost between phases 1 and 3 leaves the payout marked in flight;
recover_stale_payouts() fails such payments once the lock TTL has passed.

Usage:
    from settlements.services import PaymentService

    result = PaymentService.create_payment(
        creator_id=creator_id,
        company_id=company_id,
        gross_amount=Decimal("1000.00"),
    )
    payment = result.data

    PaymentService.approve(payment.id, company_id=company_id)
    result = PaymentService.complete(payment.id)
    if result.error_code == SettlementErrorCode.INSUFFICIENT_FUNDS:
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError
from django.db.models import F
from django.utils import timezone

from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from payouts.adapters import IdempotencyKeyGenerator, get_payout_provider
from payouts.exceptions import PayoutProviderError, ProviderInsufficientFundsError
from payouts.services.registry import PayoutMethodRegistry
from settlements.exceptions import (
    BelowMinimumPayoutError,
    FundingSourceUnavailableError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    LockAcquisitionError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PayoutBlockedError,
    PayoutMethodUnavailableError,
    PayoutProviderFailedError,
    SettlementErrorCode,
    StaleStateError,
)
from settlements.fees import compute_fees
from settlements.locks import DistributedLock, check_version
from settlements.models import FundingAccount, Payment
from settlements.notifications import NotificationKind, get_notification_service
from settlements.services.fee_config_service import PlatformFeeConfigService
from settlements.state_machines import PaymentStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from typing import Any

    from payouts.adapters import PayoutResult
    from payouts.models import PayoutMethod
    from settlements.fees import FeeConfig

# Lock configuration for payout execution
PAYOUT_LOCK_TTL = 120  # Provider call plus both transactions
PAYOUT_LOCK_TIMEOUT = 5.0


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PaymentOutcome:
    """Result of paying out one payment in a bulk run."""

    payment_id: uuid.UUID
    success: bool
    error_code: str | None = None
    error: str | None = None


@dataclass
class BulkCompletionResult:
    """Per-payment results of complete_all_processing."""

    results: list[PaymentOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.results if outcome.success)

    @property
    def failed(self) -> int:
        return self.processed - self.succeeded


# =============================================================================
# Payment Service
# =============================================================================


class PaymentService(BaseService):
    """
    Runs payment transitions for companies, admins and the system.

    All methods are class methods and return ServiceResult values whose
    error_code is a SettlementErrorCode member. Unexpected errors (database
    failures, bugs) propagate, except from the bulk runs, which record them
    per payment.
    """

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def get_payment(cls, payment_id: uuid.UUID) -> Payment | None:
        payment_uuid = cls.as_uuid(payment_id)
        if payment_uuid is None:
            return None
        return Payment.objects.filter(pk=payment_uuid).first()

    @classmethod
    def list_payments(
        cls,
        *,
        creator_id: uuid.UUID | None = None,
        company_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[Payment]:
        queryset = Payment.objects.all()
        if creator_id is not None:
            queryset = queryset.for_creator(creator_id)
        if company_id is not None:
            queryset = queryset.for_company(company_id)
        if status is not None:
            queryset = queryset.filter(status=status)
        return list(queryset)

    @classmethod
    def total_earnings(cls, creator_id: uuid.UUID) -> Decimal:
        """Net amount owed or paid to a creator, excluding disputes and refunds."""
        return Payment.objects.for_creator(creator_id).earning().total_net()

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_payment(
        cls,
        creator_id: uuid.UUID,
        company_id: uuid.UUID,
        gross_amount: Any,
        *,
        currency: str | None = None,
        description: str = "",
        offer_id: uuid.UUID | None = None,
        application_id: uuid.UUID | None = None,
        source_reference: str | None = None,
        fee_config: FeeConfig | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ServiceResult[Payment]:
        """
        Create a pending payment from a gross amount.

        Fees are computed from the current platform fee config (or the
        already-resolved fee_config a caller passes for a partnership) and
        the percentages are copied onto the payment.

        Creation is idempotent on source_reference: a second call with the
        same reference returns the existing payment.

        Returns:
            ServiceResult with the payment, VALIDATION_ERROR for missing
            parties, or INVALID_AMOUNT
        """
        logger = cls.get_logger()

        errors = cls.validate_required(creator_id=creator_id, company_id=company_id)
        if errors:
            return ServiceResult.failure(
                "Validation failed",
                error_code=SettlementErrorCode.VALIDATION_ERROR,
                errors=errors,
            )

        if source_reference:
            existing = Payment.objects.filter(source_reference=source_reference).first()
            if existing is not None:
                logger.info(
                    "Payment already exists for source reference",
                    extra={"payment_id": str(existing.id), "source_reference": source_reference},
                )
                return ServiceResult.success(existing)

        config = fee_config or PlatformFeeConfigService.get_fee_config()
        try:
            breakdown = compute_fees(gross_amount, config)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "create_payment")

        try:
            with cls.atomic():
                payment = Payment.objects.create(
                    creator_id=creator_id,
                    company_id=company_id,
                    offer_id=offer_id,
                    application_id=application_id,
                    source_reference=source_reference or None,
                    gross_amount=breakdown.gross_amount,
                    platform_fee_amount=breakdown.platform_fee_amount,
                    stripe_fee_amount=breakdown.stripe_fee_amount,
                    net_amount=breakdown.net_amount,
                    currency=currency or settings.DEFAULT_PAYMENT_CURRENCY,
                    platform_fee_percentage=config.platform_fee_percentage,
                    processing_fee_percentage=config.processing_fee_percentage,
                    fee_config_version=config.version,
                    description=description,
                    metadata=metadata or {},
                )
        except IntegrityError:
            # Lost a race on source_reference
            existing = Payment.objects.filter(source_reference=source_reference).first()
            if source_reference and existing is not None:
                return ServiceResult.success(existing)
            raise

        logger.info(
            "Payment created",
            extra={
                "payment_id": str(payment.id),
                "creator_id": str(payment.creator_id),
                "company_id": str(payment.company_id),
                "gross_amount": str(payment.gross_amount),
                "net_amount": str(payment.net_amount),
                "fee_config_version": payment.fee_config_version,
            },
        )
        cls._notify_creator(
            payment,
            NotificationKind.PAYMENT_PENDING,
            "New payment pending",
            f"A payment of {payment.net_amount} {payment.currency} is awaiting approval.",
        )
        return ServiceResult.success(payment)

    # =========================================================================
    # Company Actions
    # =========================================================================

    @classmethod
    def approve(
        cls,
        payment_id: uuid.UUID,
        *,
        company_id: uuid.UUID,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        """
        Company approves a pending payment.

        Returns:
            ServiceResult with the processing payment, or PERMISSION_DENIED,
            INVALID_STATE, STALE_STATE, PAYMENT_NOT_FOUND
        """
        result = cls._run_transition(
            payment_id,
            "approve",
            lambda payment: payment.approve(),
            company_id=company_id,
            expected_version=expected_version,
        )
        if result:
            payment = result.data
            cls._notify_creator(
                payment,
                NotificationKind.PAYMENT_APPROVED,
                "Payment approved",
                f"Your payment of {payment.net_amount} {payment.currency} was approved.",
            )
        return result

    @classmethod
    def dispute(
        cls,
        payment_id: uuid.UUID,
        *,
        company_id: uuid.UUID,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        """
        Company disputes a pending or processing payment.

        Rejected with STALE_STATE while a payout for it is in flight.
        """
        result = cls._run_transition(
            payment_id,
            "dispute",
            lambda payment: payment.dispute(reason),
            company_id=company_id,
            expected_version=expected_version,
            reject_in_flight=True,
        )
        if result:
            payment = result.data
            cls._notify_creator(
                payment,
                NotificationKind.PAYMENT_DISPUTED,
                "Payment disputed",
                f"Your payment of {payment.net_amount} {payment.currency} was disputed: "
                f"{payment.dispute_reason}",
            )
        return result

    # =========================================================================
    # Admin Actions
    # =========================================================================

    @classmethod
    def mark_processing(
        cls,
        payment_id: uuid.UUID,
        *,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        return cls._run_transition(
            payment_id,
            "mark_processing",
            lambda payment: payment.mark_processing(),
            expected_version=expected_version,
        )

    @classmethod
    def retry(
        cls,
        payment_id: uuid.UUID,
        *,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        """Move a failed payment back to processing, clearing the failure."""
        return cls._run_transition(
            payment_id,
            "retry",
            lambda payment: payment.retry(),
            expected_version=expected_version,
            reject_in_flight=True,
        )

    @classmethod
    def record_refund(
        cls,
        payment_id: uuid.UUID,
        *,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        """Record that a completed payout was reversed outside the platform."""
        return cls._run_transition(
            payment_id,
            "record_refund",
            lambda payment: payment.refund(reason),
            expected_version=expected_version,
        )

    @classmethod
    def complete(
        cls,
        payment_id: uuid.UUID,
        *,
        expected_version: int | None = None,
    ) -> ServiceResult[Payment]:
        """
        Pay out a processing payment to the creator's default payout method.

        Args:
            payment_id: Payment to pay out
            expected_version: Version the admin last saw, if any

        Returns:
            ServiceResult with the completed payment. Blocked and rejected
            payouts return a failure with the failed payment as data and
            one of INSUFFICIENT_FUNDS, BELOW_MINIMUM_PAYOUT,
            PAYOUT_METHOD_UNAVAILABLE, FUNDING_SOURCE_UNAVAILABLE or
            PROVIDER_ERROR. INVALID_STATE, STALE_STATE and PAYMENT_NOT_FOUND
            leave the payment untouched.
        """
        cls.get_logger().info(
            "Starting payout",
            extra={"payment_id": str(payment_id)},
        )

        lock_key = f"payment:complete:{payment_id}"
        try:
            lock = DistributedLock(lock_key, ttl=PAYOUT_LOCK_TTL, timeout=PAYOUT_LOCK_TIMEOUT)
            lock.acquire()
        except LockAcquisitionError as e:
            return cls.handle_exception(e, "complete")

        try:
            return cls._complete_with_lock(payment_id, expected_version)
        finally:
            lock.release()

    @classmethod
    def complete_all_processing(cls) -> ServiceResult[BulkCompletionResult]:
        """
        Pay out every processing payment, oldest first.

        Payments are handled one at a time, each in its own transactions;
        one failure never stops the run.
        """
        logger = cls.get_logger()
        payment_ids = list(Payment.objects.ready_for_payout().values_list("id", flat=True))

        summary = BulkCompletionResult()
        for payment_id in payment_ids:
            try:
                result = cls.complete(payment_id)
            except Exception as e:
                logger.error(
                    f"Payout raised unexpectedly: {type(e).__name__}",
                    extra={"payment_id": str(payment_id)},
                    exc_info=True,
                )
                summary.results.append(
                    PaymentOutcome(
                        payment_id=payment_id,
                        success=False,
                        error_code=SettlementErrorCode.SETTLEMENT_ERROR,
                        error=str(e) or type(e).__name__,
                    )
                )
                continue
            summary.results.append(
                PaymentOutcome(
                    payment_id=payment_id,
                    success=result.success,
                    error_code=result.error_code,
                    error=result.error,
                )
            )

        logger.info(
            "Processed payouts",
            extra={
                "processed": summary.processed,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
            },
        )
        return ServiceResult.success(summary)

    @classmethod
    def recover_stale_payouts(
        cls,
        older_than: timedelta | None = None,
    ) -> ServiceResult[BulkCompletionResult]:
        """
        Fail payouts whose outcome was never recorded.

        A worker that dies after debiting the funding account and before
        recording the provider's answer leaves the payment processing with
        payout_started_at set, which every transition refuses. Once the
        marker is older than the payout lock TTL no complete() call can
        still hold the payment, so it is failed with PROVIDER_ERROR and the
        debit is credited back. The failure reason carries the idempotency
        key of the lost call so it can be reconciled with the provider
        before an admin retries.

        Args:
            older_than: Minimum age of payout_started_at (default: lock TTL)

        Returns:
            ServiceResult with one outcome per stale payment; success means
            the payment was failed and credited back
        """
        logger = cls.get_logger()
        if older_than is None:
            older_than = timedelta(seconds=PAYOUT_LOCK_TTL)
        threshold = timezone.now() - older_than
        payment_ids = list(
            Payment.objects.filter(
                status=PaymentStatus.PROCESSING,
                payout_started_at__lt=threshold,
            )
            .order_by("payout_started_at")
            .values_list("id", flat=True)
        )

        summary = BulkCompletionResult()
        for payment_id in payment_ids:
            try:
                with DistributedLock(
                    f"payment:complete:{payment_id}",
                    ttl=PAYOUT_LOCK_TTL,
                    blocking=False,
                ):
                    payment, failure = cls._fail_stale_payout(payment_id, threshold)
            except LockAcquisitionError as e:
                summary.results.append(
                    PaymentOutcome(
                        payment_id=payment_id,
                        success=False,
                        error_code=e.error_code,
                        error=e.message,
                    )
                )
                continue
            except Exception as e:
                logger.error(
                    f"Stale payout recovery raised: {type(e).__name__}",
                    extra={"payment_id": str(payment_id)},
                    exc_info=True,
                )
                summary.results.append(
                    PaymentOutcome(
                        payment_id=payment_id,
                        success=False,
                        error_code=SettlementErrorCode.SETTLEMENT_ERROR,
                        error=str(e) or type(e).__name__,
                    )
                )
                continue

            if payment is None:
                # Recorded by its own worker in the meantime
                continue
            cls._payout_failed(payment, failure)
            summary.results.append(PaymentOutcome(payment_id=payment_id, success=True))

        if summary.processed:
            logger.warning(
                f"Recovered {summary.succeeded} stale payouts",
                extra={
                    "processed": summary.processed,
                    "recovered": summary.succeeded,
                    "failed": summary.failed,
                },
            )
        return ServiceResult.success(summary)

    # =========================================================================
    # Payout Execution
    # =========================================================================

    @classmethod
    def _complete_with_lock(
        cls,
        payment_id: uuid.UUID,
        expected_version: int | None,
    ) -> ServiceResult[Payment]:
        logger = cls.get_logger()
        config = PlatformFeeConfigService.get_fee_config()

        # Phase 1: validate, debit and mark the payout in flight
        blocked: PayoutBlockedError | None = None
        try:
            with cls.atomic():
                payment = cls._lock_payment(payment_id, expected_version)
                if payment.status != PaymentStatus.PROCESSING:
                    raise InvalidStateTransitionError(
                        f"Cannot complete payment in {payment.status} status",
                        details={"payment_id": str(payment.id), "current_status": payment.status},
                    )
                if payment.is_payout_in_flight:
                    raise StaleStateError(
                        "A payout for this payment is already in flight",
                        details={"payment_id": str(payment.id)},
                    )
                try:
                    method, account = cls._reserve_payout(payment, config)
                except PayoutBlockedError as e:
                    blocked = e
                    payment.fail(e.failure_kind, e.message)
                    payment.save()
        except BaseApplicationError as e:
            return cls.handle_exception(e, "complete")

        if blocked is not None:
            return cls._payout_failed(payment, blocked)

        logger.info(
            "Phase 1 done: funding account debited",
            extra={
                "payment_id": str(payment.id),
                "funding_account_id": str(account.id),
                "payout_method_id": str(method.id),
                "amount": str(payment.net_amount),
            },
        )

        # Phase 2: provider call, outside any transaction
        idempotency_key = IdempotencyKeyGenerator.generate(
            "send_payout",
            payment.id,
            attempt=payment.retry_count + 1,
        )
        payout: PayoutResult | None = None
        failure: PayoutBlockedError | None = None
        try:
            payout = get_payout_provider().send_payout(
                method,
                payment.net_amount,
                payment.currency,
                idempotency_key,
                metadata={"payment_id": str(payment.id), "creator_id": str(payment.creator_id)},
            )
        except ProviderInsufficientFundsError as e:
            failure = InsufficientFundsError(
                e.message,
                details={"provider_code": e.provider_code},
            )
        except PayoutProviderError as e:
            logger.warning(
                "Payout provider rejected payout",
                extra={
                    "payment_id": str(payment.id),
                    "error": e.message,
                    "provider_code": e.provider_code,
                    "retryable": e.is_retryable,
                },
            )
            failure = PayoutProviderFailedError(
                e.message,
                details={"provider_code": e.provider_code},
            )
        except Exception as e:
            # The funding account is already debited; the payment must not
            # stay in flight whatever the provider raised
            logger.error(
                f"Unexpected payout provider error: {type(e).__name__}",
                extra={"payment_id": str(payment.id)},
                exc_info=True,
            )
            failure = PayoutProviderFailedError(str(e) or type(e).__name__)

        # Phase 3: record the outcome
        with cls.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if failure is None:
                payment.complete(payout.transaction_id)
                payment.save()
            else:
                payment.fail(failure.failure_kind, failure.message)
                payment.save()
                cls._credit_back(account.pk, payment)

        if failure is not None:
            return cls._payout_failed(payment, failure)

        logger.info(
            "Payout completed",
            extra={
                "payment_id": str(payment.id),
                "provider_transaction_id": payment.provider_transaction_id,
                "amount": str(payment.net_amount),
            },
        )
        cls._notify_creator(
            payment,
            NotificationKind.PAYMENT_RECEIVED,
            "Payment received",
            f"{payment.net_amount} {payment.currency} is on its way to your "
            f"{payment.metadata.get('payout_destination', {}).get('display_name', 'payout method')}.",
        )
        return ServiceResult.success(payment)

    @classmethod
    def _reserve_payout(
        cls,
        payment: Payment,
        config: FeeConfig,
    ) -> tuple[PayoutMethod, FundingAccount]:
        """
        Check every payout precondition, then debit and mark in flight.

        Raises:
            PayoutBlockedError: Subclass naming the first failed precondition
        """
        net = payment.net_amount
        currency = payment.currency

        if net < config.minimum_payout_threshold:
            raise BelowMinimumPayoutError(
                f"Net amount {net} {currency} is below the minimum payout "
                f"of {config.minimum_payout_threshold} {currency}",
                details={"net_amount": str(net), "minimum": str(config.minimum_payout_threshold)},
            )

        account = FundingAccount.objects.select_for_update().filter(is_primary=True).first()
        if account is None or not account.is_active:
            raise FundingSourceUnavailableError(
                "No active primary funding account",
                details={"funding_account_id": str(account.id) if account else None},
            )

        available = account.available_balance(config.reserve_percentage)
        if available < net:
            raise InsufficientFundsError(
                f"Insufficient funds: available balance {available} {currency} "
                f"is less than the payout of {net} {currency}",
                details={
                    "funding_account_id": str(account.id),
                    "available_balance": str(available),
                    "net_amount": str(net),
                },
            )

        method = PayoutMethodRegistry.get_default_method(payment.creator_id)
        if method is None:
            raise PayoutMethodUnavailableError(
                "Creator has no payout method",
                details={"creator_id": str(payment.creator_id)},
            )
        if not method.is_ready_for_payouts:
            raise PayoutMethodUnavailableError(
                f"Payout method {method.display_name} is not ready to receive payouts",
                details={"payout_method_id": str(method.id), "method_type": method.method_type},
            )

        account.balance = F("balance") - net
        account.save(update_fields=["balance", "updated_at"])
        account.refresh_from_db(fields=["balance"])

        payment.payout_method = method
        payment.funding_account = account
        payment.payout_started_at = timezone.now()
        payment.metadata = {**payment.metadata, "payout_destination": method.destination_snapshot()}
        payment.save()
        return method, account

    @classmethod
    def _fail_stale_payout(
        cls,
        payment_id: uuid.UUID,
        threshold: datetime,
    ) -> tuple[Payment | None, PayoutProviderFailedError | None]:
        with cls.atomic():
            payment = Payment.objects.select_for_update().filter(pk=payment_id).first()
            if (
                payment is None
                or payment.status != PaymentStatus.PROCESSING
                or payment.payout_started_at is None
                or payment.payout_started_at >= threshold
            ):
                return None, None

            idempotency_key = IdempotencyKeyGenerator.generate(
                "send_payout",
                payment.id,
                attempt=payment.retry_count + 1,
            )
            failure = PayoutProviderFailedError(
                "Payout was interrupted before its outcome was recorded; "
                f"reconcile idempotency key {idempotency_key} with the payout provider",
                details={"idempotency_key": idempotency_key},
            )
            payment.fail(failure.failure_kind, failure.message)
            payment.save()
            cls._credit_back(payment.funding_account_id, payment)
        return payment, failure

    @classmethod
    def _credit_back(cls, account_pk: uuid.UUID, payment: Payment) -> None:
        credited = FundingAccount.objects.filter(pk=account_pk).update(
            balance=F("balance") + payment.net_amount,
            version=F("version") + 1,
        )
        if not credited:
            cls.get_logger().error(
                "Funding account vanished before a failed payout could be credited back",
                extra={
                    "payment_id": str(payment.id),
                    "funding_account_id": str(account_pk),
                    "amount": str(payment.net_amount),
                },
            )

    @classmethod
    def _payout_failed(cls, payment: Payment, error: PayoutBlockedError) -> ServiceResult[Payment]:
        cls.get_logger().warning(
            "Payout failed",
            extra={
                "payment_id": str(payment.id),
                "failure_kind": error.failure_kind,
                "error": error.message,
            },
        )
        if error.error_code == SettlementErrorCode.INSUFFICIENT_FUNDS:
            get_notification_service().notify_admins(
                NotificationKind.PAYOUT_INSUFFICIENT_FUNDS,
                "Payout blocked: insufficient funds",
                error.message,
                {"payment_id": str(payment.id), "net_amount": str(payment.net_amount)},
            )
        else:
            cls._notify_creator(
                payment,
                NotificationKind.PAYMENT_FAILED,
                "Payout failed",
                error.message,
            )
        return ServiceResult.failure(error.message, error_code=error.error_code, data=payment)

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _run_transition(
        cls,
        payment_id: uuid.UUID,
        action: str,
        apply: Callable[[Payment], None],
        *,
        company_id: uuid.UUID | None = None,
        expected_version: int | None = None,
        reject_in_flight: bool = False,
    ) -> ServiceResult[Payment]:
        try:
            with cls.atomic():
                payment = cls._lock_payment(payment_id, expected_version)
                if company_id is not None and str(payment.company_id) != str(company_id):
                    raise PaymentPermissionError(
                        "Payment does not belong to this company",
                        details={"payment_id": str(payment.id)},
                    )
                if reject_in_flight and payment.is_payout_in_flight:
                    raise StaleStateError(
                        f"Cannot {action} while a payout is in flight",
                        details={"payment_id": str(payment.id), "action": action},
                    )
                previous_status = payment.status
                try:
                    apply(payment)
                except TransitionNotAllowed:
                    raise InvalidStateTransitionError(
                        f"Cannot {action} payment in {payment.status} status",
                        details={
                            "payment_id": str(payment.id),
                            "current_status": payment.status,
                            "action": action,
                        },
                    ) from None
                payment.save()
        except BaseApplicationError as e:
            return cls.handle_exception(e, action)

        cls.get_logger().info(
            f"Payment {action}",
            extra={
                "payment_id": str(payment.id),
                "from_status": previous_status,
                "to_status": payment.status,
                "version": payment.version,
            },
        )
        return ServiceResult.success(payment)

    @classmethod
    def _lock_payment(cls, payment_id: Any, expected_version: int | None) -> Payment:
        payment_uuid = cls.as_uuid(payment_id)
        if payment_uuid is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        if expected_version is not None:
            return check_version(
                Payment,
                payment_uuid,
                expected_version,
                not_found_error=PaymentNotFoundError,
            )
        payment = Payment.objects.select_for_update().filter(pk=payment_uuid).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    @classmethod
    def _notify_creator(cls, payment: Payment, kind: str, title: str, message: str) -> None:
        get_notification_service().notify(
            payment.creator_id,
            kind,
            title,
            message,
            {"payment_id": str(payment.id), "status": payment.status},
        )


__all__ = [
    "BulkCompletionResult",
    "PaymentOutcome",
    "PaymentService",
]
