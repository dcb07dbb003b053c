"""
Payouts app: where creators receive their money.

Covers the payout method registry (e-transfer, wire/ACH, PayPal, crypto),
bank micro-deposit verification, crypto wallet validation and the payout
provider adapters.
"""
