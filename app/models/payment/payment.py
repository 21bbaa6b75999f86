"""
Payment Models
Checkout and verification requests. A stored Payment is the enrollment
record of one user in one contest.
"""
from pydantic import BaseModel, Field


class CheckoutSessionRequest(BaseModel):
    """
    Request to open a checkout session for a contest entry fee.
    Name, price and payer come from the stored contest and the token, never from the client.
    """
    contest_id: str = Field(..., min_length=1)


class VerifyPaymentRequest(BaseModel):
    """Request to reconcile a completed checkout session"""
    session_id: str = Field(..., min_length=1)
