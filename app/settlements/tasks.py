"""
Celery tasks for settlements.

This module provides async tasks for:
- Delivering payment notifications (emits payment_notification)
- Paying out every processing payment (typically via celery-beat)
- Failing payouts left in flight by a lost worker

Usage:
    from settlements.tasks import complete_processing_payments

    complete_processing_payments.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from settlements.signals import payment_notification

logger = logging.getLogger(__name__)


@shared_task(acks_late=True)
def send_payment_notification(
    recipient_id: str | None,
    audience: str,
    kind: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> dict:
    """
    Hand a notification to the delivery integrations.

    Receivers that raise are logged; one failing integration does not
    stop the others.

    Returns:
        Dict with the number of receivers and how many failed
    """
    responses = payment_notification.send_robust(
        sender=send_payment_notification,
        recipient_id=recipient_id,
        audience=audience,
        kind=kind,
        title=title,
        message=message,
        data=data or {},
    )

    failed = 0
    for receiver, response in responses:
        if isinstance(response, Exception):
            failed += 1
            logger.error(
                f"Notification receiver {getattr(receiver, '__name__', receiver)} failed",
                extra={"kind": kind, "recipient_id": recipient_id},
                exc_info=response,
            )

    logger.info(
        "Payment notification dispatched",
        extra={"kind": kind, "recipient_id": recipient_id, "audience": audience},
    )
    return {"receivers": len(responses), "failed": failed}


@shared_task(acks_late=True)
def complete_processing_payments() -> dict:
    """
    Pay out every processing payment, one at a time.

    Returns:
        Dict with processed, succeeded and failed counts
    """
    from settlements.services import PaymentService

    result = PaymentService.complete_all_processing().data
    logger.info(
        "Bulk payout run finished",
        extra={
            "processed": result.processed,
            "succeeded": result.succeeded,
            "failed": result.failed,
        },
    )
    return {
        "processed": result.processed,
        "succeeded": result.succeeded,
        "failed": result.failed,
    }


@shared_task
def recover_stale_payouts() -> dict:
    """
    Periodic task to fail payouts stuck in flight.

    Finds processing payments whose provider call started longer ago than
    the payout lock TTL and fails them with PROVIDER_ERROR, crediting the
    funding account back. This handles workers that died mid-payout.

    Returns:
        Dict with counts of stale payouts found and recovered
    """
    from settlements.services import PaymentService

    result = PaymentService.recover_stale_payouts().data
    return {"processed": result.processed, "recovered": result.succeeded}
