from fastapi import APIRouter, Depends, Query
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.scheduler import get_scheduler_status
from app.database import get_database
from app.routes.auth.dependencies import get_current_user
from app.services.auth.permissions import require
from app.services.contest.reconciliation import ReconciliationService
from app.utils.response import success_response

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/reconcile")
async def run_reconciliation(
    contest_id: Optional[str] = Query(None, description="Limit participant recount to one contest"),
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Run reconciliation now (admin only).

    - Finishes interrupted winner declarations
    - Recounts participants from payments
    """
    require(current_user, "reconcile.run", message="Admin access required")

    service = ReconciliationService(db)
    winners = await service.reconcile_winners()
    participants = await service.reconcile_participants(contest_id)

    return success_response(
        message="Reconciliation completed",
        data={"winners": winners, "participants": participants}
    )


@router.get("/scheduler")
async def scheduler_status(current_user: dict = Depends(get_current_user)):
    """Background scheduler status (admin only)"""
    require(current_user, "reconcile.run", message="Admin access required")

    return success_response(
        message="Scheduler status retrieved successfully",
        data=get_scheduler_status()
    )
