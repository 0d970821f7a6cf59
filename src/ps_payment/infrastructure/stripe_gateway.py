"""Stripe implementation of PaymentGatewayProtocol on the official SDK.

Calls go through StripeClient's async services (payment_intents, refunds)
over stripe.HTTPXClient. Writes carry caller-supplied idempotency keys so a
retried charge or refund is answered with the original result instead of
moving money twice. Webhook events are authenticated with
stripe.Webhook.construct_event.
"""

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import stripe

from src.ps_common.errors import ChargeError, RefundError, WebhookSignatureError
from src.ps_payment.domain.gateway import ChargeReceipt, ProviderEvent

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300
ALREADY_REFUNDED = "charge_already_refunded"

T = TypeVar("T")


class StripeGateway:
    """Stripe payment intents client."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        *,
        base_url: str = "https://api.stripe.com",
        currency: str = "usd",
        timeout: float = 15.0,
        max_network_retries: int = 2,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        client: Any = None,
    ) -> None:
        self._webhook_secret = webhook_secret
        self._currency = currency
        self._tolerance = tolerance_seconds
        self._http_client: stripe.HTTPXClient | None = None
        if client is None and secret_key:
            self._http_client = stripe.HTTPXClient(timeout=timeout)
            client = stripe.StripeClient(
                secret_key,
                http_client=self._http_client,
                base_addresses={"api": base_url},
                max_network_retries=max_network_retries,
            )
        self._client = client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.close_async()

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    async def authorize(
        self,
        amount_cents: int,
        metadata: dict[str, str],
        payment_method_id: str,
        idempotency_key: str | None = None,
    ) -> ChargeReceipt:
        params = self._intent_params(amount_cents, metadata)
        params.update(
            {
                "payment_method": payment_method_id,
                "confirm": True,
                "payment_method_types": ["card"],
            }
        )
        intent = await _call(
            self._api(ChargeError).payment_intents.create_async(
                params=params, options=_options(idempotency_key)
            ),
            ChargeError,
            "charge",
        )
        receipt = _receipt_from_intent(intent)
        if not receipt.succeeded:
            raise ChargeError(f"payment intent {receipt.charge_ref} is {receipt.status}")
        return receipt

    async def create_intent(
        self,
        amount_cents: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> ChargeReceipt:
        params = self._intent_params(amount_cents, metadata)
        params["automatic_payment_methods"] = {"enabled": True}
        intent = await _call(
            self._api(ChargeError).payment_intents.create_async(
                params=params, options=_options(idempotency_key)
            ),
            ChargeError,
            "intent",
        )
        return _receipt_from_intent(intent)

    async def retrieve(self, charge_ref: str) -> ChargeReceipt:
        intent = await _call(
            self._api(ChargeError).payment_intents.retrieve_async(
                charge_ref, params={"expand": ["latest_charge"]}
            ),
            ChargeError,
            "retrieve",
        )
        return _receipt_from_intent(intent)

    async def find_charge(self, session_id: str) -> ChargeReceipt | None:
        result = await _call(
            self._api(ChargeError).payment_intents.search_async(
                params={"query": f"metadata['session_id']:'{session_id}'", "limit": 1}
            ),
            ChargeError,
            "search",
        )
        if not result.data:
            return None
        return _receipt_from_intent(result.data[0])

    async def refund(self, charge_ref: str, idempotency_key: str | None = None) -> None:
        api = self._api(RefundError)
        try:
            refund = await api.refunds.create_async(
                params={"payment_intent": charge_ref}, options=_options(idempotency_key)
            )
        except stripe.InvalidRequestError as exc:
            if exc.code == ALREADY_REFUNDED:
                logger.info("Charge %s was already refunded", charge_ref)
                return
            raise RefundError(_error_message(exc)) from exc
        except stripe.StripeError as exc:
            logger.warning("Stripe refund for %s failed: %s", charge_ref, exc)
            raise RefundError(_error_message(exc)) from exc
        if refund.status in ("failed", "canceled"):
            raise RefundError(f"refund {refund.id} is {refund.status}")
        logger.info("Refund %s issued for %s", refund.id, charge_ref)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def verify_event(self, payload: bytes, signature: str | None) -> ProviderEvent:
        if not self._webhook_secret:
            raise WebhookSignatureError("webhook secret not configured")
        if not signature:
            raise WebhookSignatureError("missing signature header")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, self._webhook_secret, tolerance=self._tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(_error_message(exc)) from exc
        except ValueError as exc:
            raise WebhookSignatureError("payload is not valid JSON") from exc

        data = getattr(event, "data", None)
        obj = getattr(data, "object", None) if data is not None else None
        return ProviderEvent(
            event_id=getattr(event, "id", ""),
            event_type=getattr(event, "type", ""),
            charge_ref=getattr(obj, "id", None) if obj is not None else None,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _api(self, error_cls: type[ChargeError] | type[RefundError]) -> Any:
        if self._client is None:
            raise error_cls("payment provider not configured")
        return self._client

    def _intent_params(self, amount_cents: int, metadata: dict[str, str]) -> dict[str, Any]:
        return {
            "amount": amount_cents,
            "currency": self._currency,
            "metadata": dict(metadata),
            "expand": ["latest_charge"],
        }


async def _call(
    call: Awaitable[T],
    error_cls: type[ChargeError] | type[RefundError],
    what: str,
) -> T:
    try:
        return await call
    except stripe.StripeError as exc:
        logger.warning("Stripe %s failed: %s", what, exc)
        raise error_cls(_error_message(exc)) from exc


def _options(idempotency_key: str | None) -> dict[str, str]:
    return {"idempotency_key": idempotency_key} if idempotency_key else {}


def _receipt_from_intent(intent: Any) -> ChargeReceipt:
    charge = getattr(intent, "latest_charge", None)
    receipt_url = None if charge is None or isinstance(charge, str) else getattr(
        charge, "receipt_url", None
    )
    return ChargeReceipt(
        charge_ref=intent.id,
        status=getattr(intent, "status", ""),
        amount_cents=int(getattr(intent, "amount", 0) or 0),
        receipt_url=receipt_url,
        client_secret=getattr(intent, "client_secret", None),
    )


def _error_message(exc: stripe.StripeError) -> str:
    return exc.user_message or type(exc).__name__
