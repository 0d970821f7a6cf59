"""Payment Capability: the contract the core consumes from a payment provider.

Implementations raise ChargeError / RefundError / WebhookSignatureError
(ps_common.errors); the coordinator turns those into compensating rollbacks.
Writes accept an idempotency key: replaying a call with the same key must not
move money a second time.
"""

from dataclasses import dataclass
from typing import Protocol

SUCCEEDED = "succeeded"
_FAILED_STATES = frozenset({"canceled", "requires_payment_method"})


@dataclass(frozen=True)
class ChargeReceipt:
    charge_ref: str
    status: str                      # provider status string
    amount_cents: int
    receipt_url: str | None = None
    client_secret: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status in _FAILED_STATES


@dataclass(frozen=True)
class ProviderEvent:
    """An authenticated inbound notification from the provider."""

    event_id: str
    event_type: str
    charge_ref: str | None


def refund_key(charge_ref: str) -> str:
    """Idempotency key for refunding charge_ref; every refund path sends the same one."""
    return f"refund-{charge_ref}"


class PaymentGatewayProtocol(Protocol):
    async def authorize(
        self,
        amount_cents: int,
        metadata: dict[str, str],
        payment_method_id: str,
        idempotency_key: str | None = None,
    ) -> ChargeReceipt:
        """Charge and confirm in one call. Raises ChargeError unless it succeeded."""
        ...

    async def create_intent(
        self,
        amount_cents: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> ChargeReceipt:
        """Open a charge for client-side confirmation (receipt carries client_secret)."""
        ...

    async def retrieve(self, charge_ref: str) -> ChargeReceipt: ...

    async def find_charge(self, session_id: str) -> ChargeReceipt | None:
        """Charge whose metadata names session_id, if the provider has one."""
        ...

    async def refund(self, charge_ref: str, idempotency_key: str | None = None) -> None:
        """Raises RefundError. A charge that is already refunded is not an error."""
        ...

    def verify_event(self, payload: bytes, signature: str | None) -> ProviderEvent:
        """Authenticate and parse an inbound event. Raises WebhookSignatureError."""
        ...
