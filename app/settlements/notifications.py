"""
Notification collaborator for settlement events.

Settlement services tell people about payment events through a
NotificationService. Delivery itself is somebody else's job: the default
CeleryNotificationService queues send_payment_notification once the
surrounding transaction commits, and the task emits the
payment_notification signal for delivery integrations.

Notifications are fire-and-forget. A failure to enqueue is logged and
never changes the outcome of the settlement operation.

Usage:
    from settlements.notifications import get_notification_service

    get_notification_service().notify(
        payment.creator_id,
        NotificationKind.PAYMENT_APPROVED,
        "Payment approved",
        "Your payment of 930.00 CAD was approved.",
        {"payment_id": str(payment.id)},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from django.db import models, transaction

from settlements.tasks import send_payment_notification

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class NotificationKind(models.TextChoices):
    PAYMENT_PENDING = "payment_pending", "Payment Pending"
    PAYMENT_APPROVED = "payment_approved", "Payment Approved"
    PAYMENT_DISPUTED = "payment_disputed", "Payment Disputed"
    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    PAYOUT_INSUFFICIENT_FUNDS = "payout_insufficient_funds", "Payout Insufficient Funds"


class Audience(models.TextChoices):
    CREATOR = "creator", "Creator"
    ADMINS = "admins", "Admins"


@runtime_checkable
class NotificationService(Protocol):
    """Sends settlement notifications to creators and platform admins."""

    def notify(
        self,
        recipient_id: Any,
        kind: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        ...

    def notify_admins(
        self,
        kind: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        ...


class CeleryNotificationService:
    """Queues send_payment_notification after the current transaction commits."""

    def notify(
        self,
        recipient_id: Any,
        kind: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._enqueue(
            recipient_id=str(recipient_id),
            audience=Audience.CREATOR,
            kind=str(kind),
            title=title,
            message=message,
            data=data or {},
        )

    def notify_admins(
        self,
        kind: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._enqueue(
            recipient_id=None,
            audience=Audience.ADMINS,
            kind=str(kind),
            title=title,
            message=message,
            data=data or {},
        )

    def _enqueue(self, **payload: Any) -> None:
        def send() -> None:
            try:
                send_payment_notification.delay(**payload)
            except Exception:
                logger.error(
                    "Failed to enqueue payment notification",
                    extra={
                        "kind": payload["kind"],
                        "recipient_id": payload["recipient_id"],
                        "audience": str(payload["audience"]),
                    },
                    exc_info=True,
                )

        transaction.on_commit(send)


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = CeleryNotificationService()
    return _notification_service


def set_notification_service(service: NotificationService | None) -> None:
    """
    Replace the notification service (for testing).

    Pass None to go back to the Celery-backed default.
    """
    global _notification_service
    _notification_service = service
