from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.routes.auth.dependencies import get_current_user
from app.services.contest.submission import SubmissionService
from app.utils.response import success_response
from app.utils.serializers import document_to_json

router = APIRouter(prefix="/submissions", tags=["Submissions"])


@router.post("/{contest_id}")
async def create_submission(
    contest_id: str,
    submission_data: dict,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Submit work for a contest.

    - Contest must be confirmed
    - Caller must have paid the entry fee
    - One submission per user per contest
    """
    submission = await SubmissionService(db).submit(contest_id, current_user["email"], submission_data)

    return success_response(
        message="Submission received",
        data=document_to_json(submission),
        status_code=201
    )


@router.get("/contest/{contest_id}")
async def list_contest_submissions(
    contest_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """All submissions of a contest (owning creator or admin)"""
    submissions = await SubmissionService(db).list_by_contest(contest_id, current_user)

    return success_response(
        message="Submissions retrieved successfully",
        data={
            "submissions": [document_to_json(s) for s in submissions],
            "total": len(submissions)
        }
    )
