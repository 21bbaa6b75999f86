from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.contest.contest import (
    ContestCreate,
    ContestStatusUpdate,
    DeclareWinnerRequest,
)
from app.routes.auth.dependencies import get_current_user
from app.services.auth.permissions import require
from app.services.contest.audit import AuditService
from app.services.contest.contest import ContestService
from app.services.contest.winner import WinnerService
from app.utils.response import success_response
from app.utils.serializers import document_to_json

router = APIRouter(prefix="/contests", tags=["Contests"])


@router.post("")
async def create_contest(
    contest_data: ContestCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Create a new contest (creators and admins).

    - Contest starts in PENDING status with zero participants
    - An admin confirms or rejects it
    """
    contest = await ContestService(db).create_contest(contest_data, current_user)

    return success_response(
        message="Contest created and awaiting review",
        data=document_to_json(contest),
        status_code=201
    )


@router.get("/{contest_id}")
async def get_contest(
    contest_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get contest by ID"""
    contest = await ContestService(db).get_contest(contest_id)

    return success_response(
        message="Contest retrieved successfully",
        data=document_to_json(contest)
    )


@router.patch("/{contest_id}")
async def review_contest(
    contest_id: str,
    status_data: ContestStatusUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Confirm or reject a pending contest (admin only).

    Only PENDING -> CONFIRMED and PENDING -> REJECTED are accepted here; a
    contest that was already reviewed returns 409.
    """
    contest = await ContestService(db).transition(contest_id, status_data.status, current_user)

    return success_response(
        message=f"Contest {contest['status']}",
        data=document_to_json(contest)
    )


@router.patch("/edit/{contest_id}")
async def edit_contest(
    contest_id: str,
    patch: dict,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Edit a pending contest (owning creator or admin)"""
    contest = await ContestService(db).edit_contest(contest_id, patch, current_user)

    return success_response(
        message="Contest updated successfully",
        data=document_to_json(contest)
    )


@router.delete("/{contest_id}")
async def delete_contest(
    contest_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Delete a contest (owning creator while pending, or admin)"""
    await ContestService(db).delete_contest(contest_id, current_user)

    return success_response(
        message="Contest deleted successfully",
        data={"contest_id": contest_id}
    )


@router.post("/{contest_id}/declare-winner")
async def declare_winner(
    contest_id: str,
    winner_data: DeclareWinnerRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Mark one submission as winner and end the contest"""
    result = await WinnerService(db).declare_winner(contest_id, winner_data.submission_id, current_user)

    return success_response(
        message="Winner declared successfully",
        data={
            "contest": document_to_json(result["contest"]),
            "submission": document_to_json(result["submission"])
        }
    )


@router.get("/{contest_id}/audit")
async def get_contest_audit(
    contest_id: str,
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Audit trail of a contest, newest first (owning creator or admin)"""
    contest = await ContestService(db).get_contest(contest_id)
    require(current_user, "contest.audit", contest)

    history = await AuditService(db).get_contest_history(contest_id, limit=limit)

    return success_response(
        message="Audit history retrieved successfully",
        data={"entries": [document_to_json(entry) for entry in history]}
    )
