from datetime import datetime, timedelta
from typing import Dict, Optional

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from app.core.exceptions import GatewayError
from app.database import create_indexes, get_database
from app.models.auth.user import UserRole
from app.services.auth.security import security_service
from app.services.contest.contest import ContestService
from app.services.payment.gateways.base import (
    BasePaymentGateway,
    CheckoutSessionResult,
    PaymentStatus,
    SettlementResult,
)
from app.services.payment.gateways.factory import get_payment_gateway

TEST_DB = "contest_hub_test"


class FakeGateway(BasePaymentGateway):
    """In-memory checkout gateway; sessions stay unpaid until mark_paid()"""

    gateway_id = "fake"
    gateway_name = "Fake Gateway"

    def __init__(self):
        super().__init__({})
        self.sessions: Dict[str, SettlementResult] = {}
        self.checkout_requests = []

    def _validate_config(self):
        pass

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
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.checkout_requests.append({
            "product_name": product_name,
            "unit_amount": unit_amount,
            "currency": currency,
            "success_url": success_url,
            "metadata": dict(metadata or {}),
        })
        self.sessions[session_id] = SettlementResult(
            session_id=session_id,
            status=PaymentStatus.UNPAID,
            amount_total=unit_amount,
            currency=currency,
            metadata=dict(metadata or {})
        )
        return CheckoutSessionResult(session_id=session_id, url=f"https://checkout.test/{session_id}")

    async def retrieve_session(self, session_id: str) -> SettlementResult:
        if session_id not in self.sessions:
            raise GatewayError("No such checkout session")
        return self.sessions[session_id]

    def mark_paid(self, session_id: str):
        self.sessions[session_id].status = PaymentStatus.PAID

    def add_session(self, session_id: str, status: PaymentStatus, amount_total: int, metadata: Dict[str, str]):
        self.sessions[session_id] = SettlementResult(
            session_id=session_id,
            status=status,
            amount_total=amount_total,
            currency="usd",
            metadata=metadata
        )


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client[TEST_DB]
    await create_indexes(database)
    yield database


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def admin():
    return {"email": "admin@example.com", "role": UserRole.ADMIN.value}


@pytest.fixture
def creator():
    return {"email": "creator@example.com", "role": UserRole.CREATOR.value}


@pytest.fixture
def other_creator():
    return {"email": "other@example.com", "role": UserRole.CREATOR.value}


@pytest.fixture
def alice():
    return {"email": "alice@example.com", "role": UserRole.USER.value}


@pytest.fixture
def bob():
    return {"email": "bob@example.com", "role": UserRole.USER.value}


@pytest.fixture
def contest_payload():
    return {
        "name": "Logo Design Sprint",
        "description": "Design a logo for a coffee shop",
        "type": "design",
        "price": 10,
        "prize_money": 100,
        "task_instruction": "Submit a link to your design",
        "deadline": (datetime.utcnow() + timedelta(days=7)).isoformat(),
    }


@pytest.fixture
async def pending_contest(db, creator, contest_payload):
    return await ContestService(db).create_contest(contest_payload, creator)


@pytest.fixture
async def confirmed_contest(db, admin, pending_contest):
    return await ContestService(db).transition(str(pending_contest["_id"]), "confirmed", admin)


async def enroll(db, contest: dict, user_email: str, amount: float = 10.0):
    """Write a Payment the way a successful verify would, without the counter"""
    await db.payments.insert_one({
        "contest_id": str(contest["_id"]),
        "user_email": user_email,
        "amount": amount,
        "currency": "usd",
        "session_id": f"cs_seed_{user_email}",
        "gateway": "fake",
        "created_at": datetime.utcnow() - timedelta(hours=1)
    })


class StaleReads:
    """Collection wrapper whose first `misses` find_one calls see nothing"""

    def __init__(self, collection, misses: int = 1):
        self._collection = collection
        self.misses = misses

    async def find_one(self, *args, **kwargs):
        if self.misses:
            self.misses -= 1
            return None
        return await self._collection.find_one(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._collection, name)


def auth_headers(email: str) -> Dict[str, str]:
    token = security_service.create_access_token({"sub": email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(db, gateway, admin, creator, alice, bob):
    from app.main import app

    for user in (admin, creator, alice, bob):
        await db.users.insert_one({**user, "name": user["email"].split("@")[0], "created_at": datetime.utcnow()})

    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
