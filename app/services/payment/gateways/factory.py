"""
Payment Gateway Factory
Resolves the configured checkout gateway for request handlers
"""
import os
import logging
from typing import Dict, Any, Optional, Type

from app.core.exceptions import GatewayError
from app.services.payment.gateways.base import BasePaymentGateway
from app.services.payment.gateways.stripe import StripeGateway

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "stripe")


class PaymentGatewayFactory:
    """
    Registry of checkout gateway classes.

    The env-configured instance of each gateway is built once per process;
    callers passing an explicit config always get a fresh instance.
    """

    _gateways: Dict[str, Type[BasePaymentGateway]] = {
        StripeGateway.gateway_id: StripeGateway,
    }

    _instances: Dict[str, BasePaymentGateway] = {}

    @classmethod
    def register(cls, gateway_class: Type[BasePaymentGateway]):
        """Make gateway_class selectable by its gateway_id"""
        cls._gateways[gateway_class.gateway_id] = gateway_class

    @classmethod
    def available(cls) -> list:
        return sorted(cls._gateways)

    @classmethod
    def create(
        cls,
        gateway_id: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> BasePaymentGateway:
        """
        Build (or reuse) a gateway instance.

        Raises:
            ValueError: unknown gateway_id or incomplete gateway configuration
        """
        gateway_id = gateway_id or DEFAULT_GATEWAY
        gateway_class = cls._gateways.get(gateway_id)
        if gateway_class is None:
            raise ValueError(f"Unknown payment gateway: {gateway_id}. Available: {cls.available()}")

        if config is not None:
            return gateway_class(config)

        if gateway_id not in cls._instances:
            cls._instances[gateway_id] = gateway_class()
            logger.info("[OK] Payment gateway '%s' initialized", gateway_id)
        return cls._instances[gateway_id]

    @classmethod
    def reset(cls):
        """Drop cached instances (after configuration changes)"""
        cls._instances.clear()


def get_payment_gateway() -> BasePaymentGateway:
    """Dependency returning the configured default gateway"""
    try:
        return PaymentGatewayFactory.create()
    except ValueError as e:
        raise GatewayError(f"Payment gateway unavailable: {e}") from e
