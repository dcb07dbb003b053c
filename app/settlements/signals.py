"""
Signals emitted by the settlements app.

payment_notification is sent by the send_payment_notification task for
every creator or admin notification. Delivery integrations (email, push,
in-app) connect receivers to it.

Receiver kwargs:
    recipient_id: Creator id as a string, or None for admin notifications
    audience: "creator" or "admins"
    kind: NotificationKind value
    title / message: Human-readable text
    data: JSON-safe dict with ids and amounts
"""

from django.dispatch import Signal

payment_notification = Signal()
