"""
Base classes and types for payment gateways.
The purchase flow only talks to PaymentGateway; gateway-specific payload formats stay in the provider.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class TransactionOrder:
    """Everything the gateway needs to open a payment page for one pending purchase."""
    order_id: str
    amount: int
    item_id: str
    item_description: str
    buyer_name: str
    buyer_email: str


@dataclass(frozen=True)
class PaymentNotification:
    """Fields of a status change needed to map it onto a purchase status."""
    order_id: str
    transaction_status: str
    fraud_status: str | None = None


class PaymentGateway(ABC):
    """Base class for payment gateways."""

    @abstractmethod
    def create_transaction_token(self, order: TransactionOrder) -> str:
        """Create a payment token for the order. Raises GatewayError on any failure, never retries."""
        pass

    @abstractmethod
    def decode_notification(self, raw_payload: dict) -> PaymentNotification:
        """Authenticate an inbound notification and extract its status. Raises GatewayError."""
        pass

    @abstractmethod
    def get_transaction_status(self, order_id: str) -> PaymentNotification | None:
        """Authoritative status of the order; None when the gateway has no transaction for it yet."""
        pass

    def close(self) -> None:
        """Release transport resources. No-op unless the gateway holds any."""
