"""
Payment Routes
API endpoints for entry-fee checkout and settlement
"""
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.payment.payment import CheckoutSessionRequest, VerifyPaymentRequest
from app.routes.auth.dependencies import get_current_user
from app.services.payment.gateways.base import BasePaymentGateway
from app.services.payment.gateways.factory import get_payment_gateway
from app.services.payment.payment_service import PaymentService
from app.utils.response import success_response
from app.utils.serializers import document_to_json

router = APIRouter(tags=["Payments"])


@router.post("/create-checkout-session")
async def create_checkout_session(
    request_data: CheckoutSessionRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    gateway: BasePaymentGateway = Depends(get_payment_gateway)
):
    """
    Open a checkout session for a contest entry.

    Returns the gateway redirect URL. The contest must be confirmed and the
    caller not yet registered.
    """
    session = await PaymentService(db, gateway).create_checkout_for_contest(
        request_data.contest_id,
        current_user
    )

    return success_response(
        message="Checkout session created",
        data=session
    )


@router.post("/verify-payment")
async def verify_payment(
    request_data: VerifyPaymentRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
    gateway: BasePaymentGateway = Depends(get_payment_gateway)
):
    """
    Settle a paid checkout session.
    Safe to call repeatedly: repeats report "Already registered".
    """
    result = await PaymentService(db, gateway).verify(request_data.session_id)

    if result["already_registered"]:
        return success_response(
            message="Already registered",
            data={"payment": document_to_json(result["payment"]), "already_registered": True}
        )

    return success_response(
        message="Payment verified and registration completed",
        data={"payment": document_to_json(result["payment"]), "already_registered": False}
    )


@router.get("/participated-contests/{email}")
async def get_participated_contests(
    email: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Contests the user has paid for"""
    contests = await PaymentService(db).participated_contests(email, actor=current_user)

    return success_response(
        message="Participated contests retrieved successfully",
        data={"contests": [document_to_json(c) for c in contests]}
    )


@router.get("/payments/user/{email}")
async def get_user_payments(
    email: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """A user's payment history, newest first"""
    payments = await PaymentService(db).payments_for_user(email, actor=current_user)

    return success_response(
        message="Payments retrieved successfully",
        data={"payments": [document_to_json(p) for p in payments]}
    )
