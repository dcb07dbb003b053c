"""
Stripe implementation of the payout provider.

E-transfer methods are Stripe Connect express accounts paid with transfers;
wire methods are customer bank accounts verified with micro-deposits and
paid with payouts. PayPal and crypto destinations are not supported by
Stripe and are rejected with a provider error.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payouts.adapters import StripePayoutProvider

    provider = StripePayoutProvider()
    account_id = provider.create_connected_account(owner_id, email)
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payouts.adapters.base import (
    BankAccountDetails,
    BankAccountResult,
    PayoutResult,
    to_minor_units,
)
from payouts.exceptions import (
    PayoutProviderError,
    ProviderInsufficientFundsError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from payouts.state_machines import PayoutMethodType

if TYPE_CHECKING:
    from payouts.models import PayoutMethod

INSUFFICIENT_FUNDS_CODES = {"balance_insufficient", "insufficient_funds"}


class StripePayoutProvider:
    """
    Payout provider backed by the Stripe API.

    Every call is logged with its duration, and Stripe SDK errors are
    translated to PayoutProviderError subclasses in _handle_stripe_error.
    """

    def __init__(self, api_key: str | None = None, timeout: float | None = None) -> None:
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.timeout = timeout or getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)

    # =========================================================================
    # Configuration
    # =========================================================================

    def _configure_stripe(self) -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = self.api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    def _client(self) -> stripe.StripeClient:
        return stripe.StripeClient(
            self.api_key,
            http_client=stripe.RequestsClient(timeout=self.timeout),
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _call(self, operation: str, log_context: dict[str, Any], func, *args, **kwargs):
        """Run one Stripe call with timing logs and error translation."""
        self._configure_stripe()
        logger = self.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)
        try:
            response = func(*args, **kwargs)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return response

    # =========================================================================
    # E-Transfer Onboarding
    # =========================================================================

    def create_connected_account(self, owner_id: str, email: str | None = None) -> str:
        params: dict[str, Any] = {
            "type": "express",
            "metadata": {"owner_id": str(owner_id)},
            "capabilities": {"transfers": {"requested": True}},
        }
        if email:
            params["email"] = email

        account = self._call(
            "create_connected_account",
            {"owner_id": str(owner_id)},
            stripe.Account.create,
            **params,
        )
        return account.id

    def create_onboarding_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        link = self._call(
            "create_onboarding_link",
            {"account_id": account_id},
            stripe.AccountLink.create,
            account=account_id,
            return_url=return_url,
            refresh_url=refresh_url,
            type="account_onboarding",
        )
        return link.url

    # =========================================================================
    # Bank Accounts
    # =========================================================================

    def create_bank_account(self, details: BankAccountDetails) -> BankAccountResult:
        log_context = {"owner_id": details.owner_id, "account_last4": details.last4}

        customer = self._call(
            "create_customer",
            log_context,
            stripe.Customer.create,
            name=details.holder_name,
            metadata={"owner_id": details.owner_id},
        )
        bank_account = self._call(
            "create_bank_account",
            {**log_context, "customer_id": customer.id},
            stripe.Customer.create_source,
            customer.id,
            source={
                "object": "bank_account",
                "country": details.country,
                "currency": details.currency.lower(),
                "account_holder_name": details.holder_name,
                "account_holder_type": details.holder_type,
                "routing_number": details.routing_number,
                "account_number": details.account_number,
            },
        )

        verified = getattr(bank_account, "status", "new") == "verified"
        return BankAccountResult(
            provider_bank_account_id=bank_account.id,
            verified=verified,
            verification_method="instant" if verified else "microdeposits",
            provider_customer_id=customer.id,
        )

    def verify_micro_deposits(
        self,
        provider_bank_account_id: str,
        amounts: tuple[int, int],
        customer_id: str | None = None,
    ) -> bool:
        if not customer_id:
            raise PayoutProviderError(
                "Stripe bank verification requires the customer id",
                provider_code="missing_customer",
            )

        try:
            bank_account = self._call(
                "verify_micro_deposits",
                {"bank_account_id": provider_bank_account_id, "customer_id": customer_id},
                self._client().customers.payment_sources.verify,
                customer_id,
                provider_bank_account_id,
                params={"amounts": list(amounts)},
            )
        except PayoutProviderError as e:
            # Stripe answers wrong amounts with a 400, not a status
            if e.provider_code == "bank_account_verification_failed":
                return False
            raise
        return getattr(bank_account, "status", "") == "verified"

    # =========================================================================
    # Payouts
    # =========================================================================

    def send_payout(
        self,
        method: PayoutMethod,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> PayoutResult:
        log_context = {
            "payout_method_id": str(method.id),
            "method_type": method.method_type,
            "amount": str(amount),
            "currency": currency,
            "idempotency_key": idempotency_key,
        }
        amount_cents = to_minor_units(amount)

        if method.method_type == PayoutMethodType.ETRANSFER:
            response = self._call(
                "create_transfer",
                log_context,
                stripe.Transfer.create,
                amount=amount_cents,
                currency=currency.lower(),
                destination=method.provider_account_id,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
        elif method.method_type == PayoutMethodType.WIRE:
            response = self._call(
                "create_payout",
                log_context,
                stripe.Payout.create,
                amount=amount_cents,
                currency=currency.lower(),
                destination=method.provider_bank_account_id,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
        else:
            raise PayoutProviderError(
                f"Stripe cannot send payouts to {method.get_method_type_display()} destinations",
                provider_code="unsupported_destination",
            )

        return PayoutResult(
            transaction_id=response.id,
            amount=amount,
            currency=currency,
            raw_response=response.to_dict() if hasattr(response, "to_dict") else {},
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_stripe_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to provider exceptions.

        Raises:
            ProviderInsufficientFundsError: Platform balance too low
            ProviderUnavailableError: Network failure, 5xx or rate limit
            PayoutProviderError: Anything else, with Stripe's message
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, PayoutProviderError):
            raise error

        if isinstance(error, stripe.InvalidRequestError):
            code = getattr(error, "code", None)
            logger.warning(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": code},
            )
            if code in INSUFFICIENT_FUNDS_CODES:
                raise ProviderInsufficientFundsError(
                    str(error.user_message or error),
                    provider_code=code,
                )
            raise PayoutProviderError(str(error.user_message or error), provider_code=code)

        if isinstance(error, stripe.CardError):
            code = getattr(error, "code", None)
            logger.warning("Card error from Stripe", extra={**log_context, "stripe_code": code})
            raise PayoutProviderError(str(error.user_message or error), provider_code=code)

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise ProviderUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                provider_code="rate_limit",
            )

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            if "timed out" in str(error).lower():
                raise ProviderTimeoutError(
                    "Stripe request timed out. Please retry.",
                    provider_code="timeout",
                )
            raise ProviderUnavailableError(
                "Could not connect to Stripe. Please retry.",
                provider_code="api_connection_error",
            )

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise PayoutProviderError(
                "Stripe authentication failed",
                provider_code="authentication_error",
            )

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise ProviderUnavailableError(
                "Stripe service error. Please retry.",
                provider_code="api_error",
            )

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise PayoutProviderError(
            f"Unexpected Stripe error: {error}",
            provider_code="unknown_error",
        )
