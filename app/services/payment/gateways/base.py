"""
Base Payment Gateway
Abstract class defining the interface for all checkout gateways
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum


class PaymentStatus(str, Enum):
    """Standard settlement status across all gateways"""
    UNPAID = "unpaid"
    PAID = "paid"
    NO_PAYMENT_REQUIRED = "no_payment_required"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass
class CheckoutSessionResult:
    """Result of creating a checkout session"""
    session_id: str
    url: str
    expires_at: Optional[int] = None
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class SettlementResult:
    """Settled state of a checkout session"""
    session_id: str
    status: PaymentStatus
    amount_total: Optional[int] = None    # Minor units, as reported by the gateway
    currency: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    raw_response: Optional[Dict[str, Any]] = None

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def amount(self) -> Optional[float]:
        """Settled amount in major units"""
        if self.amount_total is None:
            return None
        return self.amount_total / 100


class BasePaymentGateway(ABC):
    """
    Abstract base class for checkout gateways.
    All gateways must implement these methods.

    Implementations raise GatewayError for any provider failure; they never
    retry on their own. The redirect flow owns retries.
    """

    gateway_id: str = "base"
    gateway_name: str = "Base Gateway"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize gateway with configuration.

        Args:
            config: Gateway configuration including API keys, endpoints, etc.
        """
        self.config = config
        self._validate_config()

    @abstractmethod
    def _validate_config(self):
        """Validate required configuration parameters"""
        pass

    @abstractmethod
    async def create_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None
    ) -> CheckoutSessionResult:
        """
        Create a hosted checkout session.

        Args:
            product_name: Line item name shown on the checkout page
            unit_amount: Price in minor units (cents)
            currency: ISO currency code
            success_url: Redirect after payment; may hold a session id placeholder
            cancel_url: Redirect when the payer abandons checkout
            metadata: Opaque key/values the gateway must echo back on retrieval
            customer_email: Prefill for the payer email

        Returns:
            CheckoutSessionResult with the redirect URL
        """
        pass

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> SettlementResult:
        """
        Retrieve the settled state of a checkout session.

        Args:
            session_id: Gateway session id

        Returns:
            SettlementResult including the echoed metadata
        """
        pass
