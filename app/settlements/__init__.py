"""
Settlements app: money owed to creators by companies.

Covers fee computation, the Payment lifecycle (approve, dispute, process,
complete, retry, refund), the platform fee configuration singleton and the
platform funding accounts payouts are drawn from.
"""
