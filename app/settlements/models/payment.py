"""
Payment model: money a company owes a creator.

A Payment is created from a gross amount and a fee-config snapshot, then
moves through company approval and admin payout:

Usage:
    from settlements.models import Payment
    from settlements.state_machines import PaymentStatus

    payment = Payment.objects.get(id=payment_id)
    payment.approve()  # pending -> processing
    payment.save()

    payment.dispute("Deliverable never posted")  # -> failed, disputed
    payment.save()

Note:
    The status field is protected, so it only changes through the
    transition methods. Services wrap each transition in a transaction
    with select_for_update (see settlements.services.payment_service).
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from settlements.exceptions import InvalidStateTransitionError
from settlements.state_machines import FailureKind, PaymentStatus

AMOUNT_FIELDS = ("gross_amount", "platform_fee_amount", "stripe_fee_amount", "net_amount")

DISPUTE_DESCRIPTION_PREFIX = "Disputed:"
DEFAULT_DISPUTE_REASON = "No reason provided"


class PaymentQuerySet(models.QuerySet):
    """Query helpers for payments."""

    def for_creator(self, creator_id) -> PaymentQuerySet:
        return self.filter(creator_id=creator_id)

    def for_company(self, company_id) -> PaymentQuerySet:
        return self.filter(company_id=company_id)

    def disputed(self) -> PaymentQuerySet:
        return self.filter(status=PaymentStatus.FAILED, dispute_reason__isnull=False)

    def earning(self) -> PaymentQuerySet:
        """
        Payments that count toward a creator's earnings.

        Disputed and refunded payments are excluded. Other failures still
        count because the money is owed and the payout will be retried.
        """
        return self.exclude(
            Q(status=PaymentStatus.FAILED, dispute_reason__isnull=False)
            | Q(status=PaymentStatus.REFUNDED)
        )

    def ready_for_payout(self) -> PaymentQuerySet:
        """Processing payments without a payout already in flight, oldest first."""
        return self.filter(
            status=PaymentStatus.PROCESSING,
            payout_started_at__isnull=True,
        ).order_by("created_at", "id")

    def total_net(self) -> Decimal:
        total = self.aggregate(total=Sum("net_amount"))["total"]
        return total if total is not None else Decimal("0.00")


class Payment(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A settlement owed to a creator for work done for a company.

    State Flow:
        PENDING -> PROCESSING (company approves, or admin marks processing)
        PENDING/PROCESSING -> FAILED (company disputes)
        PROCESSING -> COMPLETED (payout sent)
        PROCESSING -> FAILED (payout blocked or rejected)
        FAILED -> PROCESSING (admin retry)
        COMPLETED -> REFUNDED (external reversal recorded)

    Fields:
        creator_id / company_id: Parties; ids of records owned elsewhere
        offer_id / application_id: Optional context of the collaboration
        source_reference: Id of the originating sale record, unique when set
        gross_amount / platform_fee_amount / stripe_fee_amount / net_amount:
            Split computed at creation, immutable once completed or refunded
        platform_fee_percentage / processing_fee_percentage / fee_config_version:
            Snapshot of the fee config the split was computed with
        status: Current FSM state
        failure_kind / failure_reason / failed_at: Why and when it failed
        dispute_reason / disputed_at: Set only for disputes
        payout_method / funding_account: Destination and source of the payout
        payout_started_at: Set while a provider call is in flight
        retry_count: Number of admin retries
        version: Optimistic locking version
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    creator_id = models.UUIDField(
        db_index=True,
        help_text="Creator who is owed the payment",
    )

    company_id = models.UUIDField(
        db_index=True,
        help_text="Company that owes the payment",
    )

    offer_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Offer the work was done under",
    )

    application_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Creator application the payment settles",
    )

    source_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Originating record (e.g. affiliate sale id); creation is idempotent on it",
    )

    # ==========================================================================
    # Amounts & Currency
    # ==========================================================================

    gross_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount owed before fees",
    )

    platform_fee_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Platform fee withheld",
    )

    stripe_fee_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Payment processing fee withheld",
    )

    net_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount paid out to the creator",
    )

    currency = models.CharField(
        max_length=3,
        default="CAD",
        help_text="ISO 4217 currency code",
    )

    platform_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Platform fee percentage used for the split",
    )

    processing_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Processing fee percentage used for the split",
    )

    fee_config_version = models.PositiveIntegerField(
        default=1,
        help_text="Version of the platform fee config the split was computed with",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description shown to the parties",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    failure_kind = models.CharField(
        max_length=32,
        choices=FailureKind.choices,
        null=True,
        blank=True,
        help_text="Classification of the failure while status is failed",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if the payment failed",
    )

    dispute_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason given by the company when disputing",
    )

    # ==========================================================================
    # Payout
    # ==========================================================================

    payout_method = models.ForeignKey(
        "payouts.PayoutMethod",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Destination the payout was sent to",
    )

    funding_account = models.ForeignKey(
        "settlements.FundingAccount",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Platform funding account the payout was drawn from",
    )

    provider_transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Payout provider reference for the transfer",
    )

    payout_started_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Set while the payout provider call is in flight",
    )

    retry_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of times an admin retried this payment",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    processing_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    disputed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    objects = PaymentQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["creator_id", "status"]),
            models.Index(fields=["company_id", "status"]),
            models.Index(fields=["status", "payout_started_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(gross_amount__gt=0),
                name="payment_gross_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(platform_fee_amount__gte=0)
                & Q(stripe_fee_amount__gte=0)
                & Q(net_amount__gte=0),
                name="payment_amounts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and net amount."""
        return f"Payment({self.id}, {self.status}, {self.net_amount} {self.currency})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._remember_settled_amounts()
        return instance

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment; settled amounts are read-only.

        Raises:
            InvalidStateTransitionError: If the payment was loaded or saved
                as completed/refunded and an amount field changed since
        """
        self._guard_settled_amounts()
        super().save(*args, **kwargs)
        self._remember_settled_amounts()

    def _remember_settled_amounts(self) -> None:
        if self.get_deferred_fields() & {"status", *AMOUNT_FIELDS}:
            self._settled_snapshot = None
            return
        self._settled_snapshot = (
            self.status,
            {name: getattr(self, name) for name in AMOUNT_FIELDS},
        )

    def _guard_settled_amounts(self) -> None:
        snapshot = getattr(self, "_settled_snapshot", None)
        if snapshot is None:
            return
        loaded_status, loaded_amounts = snapshot
        if loaded_status not in PaymentStatus.terminal_states():
            return
        changed = [
            name
            for name in AMOUNT_FIELDS
            if Decimal(str(getattr(self, name))) != Decimal(str(loaded_amounts[name]))
        ]
        if changed:
            raise InvalidStateTransitionError(
                f"Amounts of a {loaded_status} payment cannot change",
                details={"payment_id": str(self.id), "fields": changed},
            )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.PROCESSING,
    )
    def approve(self):
        """
        Company approves the payment.

        Transition: PENDING -> PROCESSING
        """
        self.processing_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.PROCESSING,
    )
    def mark_processing(self):
        """
        Admin queues the payment for payout without company approval.

        Transition: PENDING -> PROCESSING
        """
        self.processing_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
        target=PaymentStatus.FAILED,
    )
    def dispute(self, reason: str | None = None):
        """
        Company disputes the payment.

        Transition: PENDING/PROCESSING -> FAILED

        The reason is stored in dispute_reason; the description marker
        is kept for display only.

        Args:
            reason: Company's reason, defaults to "No reason provided"
        """
        reason = (reason or "").strip() or DEFAULT_DISPUTE_REASON
        now = timezone.now()
        self.dispute_reason = reason
        self.disputed_at = now
        self.failure_kind = FailureKind.DISPUTED
        self.failure_reason = reason
        self.failed_at = now
        if not self.description.startswith(DISPUTE_DESCRIPTION_PREFIX):
            self.metadata = {**self.metadata, "original_description": self.description}
        self.description = f"{DISPUTE_DESCRIPTION_PREFIX} {reason}"

    @transition(
        field=status,
        source=PaymentStatus.PROCESSING,
        target=PaymentStatus.COMPLETED,
    )
    def complete(self, provider_transaction_id: str | None = None):
        """
        Mark the payout as sent.

        Transition: PROCESSING -> COMPLETED

        Args:
            provider_transaction_id: Provider reference for the transfer
        """
        self.completed_at = timezone.now()
        self.payout_started_at = None
        if provider_transaction_id:
            self.provider_transaction_id = provider_transaction_id

    @transition(
        field=status,
        source=PaymentStatus.PROCESSING,
        target=PaymentStatus.FAILED,
    )
    def fail(self, kind: str, reason: str):
        """
        Record a payout failure.

        Transition: PROCESSING -> FAILED

        Args:
            kind: FailureKind value
            reason: Detailed reason, provider text is kept verbatim
        """
        self.failure_kind = kind
        self.failure_reason = reason
        self.failed_at = timezone.now()
        self.payout_started_at = None

    @transition(
        field=status,
        source=PaymentStatus.FAILED,
        target=PaymentStatus.PROCESSING,
    )
    def retry(self):
        """
        Admin retries a failed payment.

        Transition: FAILED -> PROCESSING

        Clears failure and dispute fields so the payment is eligible for
        payout again.
        """
        self.failure_kind = None
        self.failure_reason = None
        self.failed_at = None
        self.dispute_reason = None
        self.disputed_at = None
        self.provider_transaction_id = None
        if "original_description" in self.metadata:
            metadata = dict(self.metadata)
            self.description = metadata.pop("original_description")
            self.metadata = metadata
        self.retry_count += 1
        self.processing_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.COMPLETED,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self, reason: str | None = None):
        """
        Record an external reversal of a completed payout.

        Transition: COMPLETED -> REFUNDED
        """
        self.refunded_at = timezone.now()
        if reason:
            self.metadata = {**self.metadata, "refund_reason": reason}

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_disputed(self) -> bool:
        """Failed because the company disputed it."""
        return self.status == PaymentStatus.FAILED and self.dispute_reason is not None

    @property
    def is_payout_in_flight(self) -> bool:
        """A provider call for this payment has started and not finished."""
        return self.payout_started_at is not None

    @property
    def is_settled(self) -> bool:
        return self.status in PaymentStatus.terminal_states()

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee_amount + self.stripe_fee_amount
