"""
Stripe Checkout Gateway Implementation
Implements the BasePaymentGateway against the Stripe REST API
"""
import os
import logging
import httpx
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from app.core.exceptions import GatewayError
from app.services.payment.gateways.base import (
    BasePaymentGateway,
    CheckoutSessionResult,
    SettlementResult,
    PaymentStatus
)

load_dotenv()

logger = logging.getLogger(__name__)


class StripeGateway(BasePaymentGateway):
    """
    Stripe Checkout Gateway

    Features:
    - Hosted checkout session creation (card payments, one line item)
    - Session retrieval with settled payment status and echoed metadata
    """

    gateway_id = "stripe"
    gateway_name = "Stripe Checkout"

    API_URL = "https://api.stripe.com/v1"
    TIMEOUT_SECONDS = 30.0

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize Stripe gateway"""
        env_config = self._load_config_from_env()

        # Explicit config wins over environment
        if config is not None:
            env_config.update({k: v for k, v in config.items() if v is not None})

        super().__init__(env_config)

        self.secret_key = self.config["secret_key"]
        self.api_url = self.config.get("api_url", self.API_URL).rstrip("/")
        self.timeout = float(self.config.get("timeout", self.TIMEOUT_SECONDS))
        # Optional httpx transport (tests use httpx.MockTransport)
        self.transport = self.config.get("transport")

    def _load_config_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        secret_key = os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_SECRET")

        if not secret_key:
            logger.warning("[WARN] STRIPE_SECRET_KEY not found in environment")

        return {
            "secret_key": secret_key,
            "api_url": os.getenv("STRIPE_API_URL", self.API_URL),
            "timeout": float(os.getenv("STRIPE_TIMEOUT_SECONDS", str(self.TIMEOUT_SECONDS))),
        }

    def _validate_config(self):
        """Validate required Stripe configuration"""
        if not self.config.get("secret_key"):
            raise ValueError("STRIPE_SECRET_KEY is required")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
            transport=self.transport
        )

    def _map_status(self, payment_status: Optional[str], session_status: Optional[str]) -> PaymentStatus:
        """Map Stripe session fields to standard PaymentStatus"""
        if session_status == "expired":
            return PaymentStatus.EXPIRED
        status_map = {
            "paid": PaymentStatus.PAID,
            "unpaid": PaymentStatus.UNPAID,
            "no_payment_required": PaymentStatus.NO_PAYMENT_REQUIRED,
        }
        return status_map.get((payment_status or "").lower(), PaymentStatus.UNKNOWN)

    @staticmethod
    def build_checkout_form(
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None
    ) -> Dict[str, str]:
        """Flatten a checkout request into Stripe's bracketed form encoding"""
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency.lower(),
            "line_items[0][price_data][unit_amount]": str(int(unit_amount)),
            "line_items[0][price_data][product_data][name]": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = str(value)
        if customer_email:
            form["customer_email"] = customer_email
        return form

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error", {}).get("message") or response.text
        except ValueError:
            return response.text

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
        """Create a Stripe Checkout session"""
        form = self.build_checkout_form(
            product_name=product_name,
            unit_amount=unit_amount,
            currency=currency,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=customer_email
        )

        try:
            async with self._client() as client:
                response = await client.post("/checkout/sessions", data=form)
        except httpx.HTTPError as e:
            logger.error("[ERROR] Stripe create session transport error: %s", e)
            raise GatewayError("Payment session failed") from e

        if response.status_code not in (200, 201):
            message = self._error_message(response)
            logger.error("[ERROR] Stripe create session failed (%s): %s", response.status_code, message)
            raise GatewayError(f"Payment session failed: {message}")

        data = response.json()
        if not data.get("url"):
            raise GatewayError("Payment session failed: gateway returned no checkout URL")

        return CheckoutSessionResult(
            session_id=data["id"],
            url=data["url"],
            expires_at=data.get("expires_at"),
            raw_response=data
        )

    async def retrieve_session(self, session_id: str) -> SettlementResult:
        """Retrieve a Stripe Checkout session"""
        try:
            async with self._client() as client:
                response = await client.get(f"/checkout/sessions/{session_id}")
        except httpx.HTTPError as e:
            logger.error("[ERROR] Stripe retrieve session transport error: %s", e)
            raise GatewayError("Verification failed") from e

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error("[ERROR] Stripe retrieve session %s failed (%s): %s", session_id, response.status_code, message)
            raise GatewayError(f"Verification failed: {message}")

        data = response.json()
        return SettlementResult(
            session_id=data.get("id", session_id),
            status=self._map_status(data.get("payment_status"), data.get("status")),
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            metadata=data.get("metadata") or {},
            raw_response=data
        )
