from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class ContestStatus(str, Enum):
    """
    Contest status types - State Machine

    State Transitions:
    - PENDING -> CONFIRMED (admin approves)
    - PENDING -> REJECTED (admin rejects)
    - CONFIRMED -> ENDED (winner declared)

    REJECTED and ENDED are terminal.
    """
    PENDING = "pending"  # Awaiting admin review, creator can still edit
    CONFIRMED = "confirmed"  # Public, accepting payments and submissions
    REJECTED = "rejected"  # Refused by admin
    ENDED = "ended"  # Winner declared


ALLOWED_TRANSITIONS = {
    ContestStatus.PENDING: {ContestStatus.CONFIRMED, ContestStatus.REJECTED},
    ContestStatus.CONFIRMED: {ContestStatus.ENDED},
    ContestStatus.REJECTED: set(),
    ContestStatus.ENDED: set(),
}

# Fields that only the lifecycle itself may write
PROTECTED_FIELDS = {
    "_id",
    "id",
    "status",
    "participants",
    "creator_email",
    "winner_email",
    "winner_submission_id",
    "ended_at",
    "created_at",
    "updated_at",
}


class ContestCreate(BaseModel):
    """Schema for creating a contest"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50, description="Category tag")
    price: float = Field(..., ge=0, description="Entry fee in major currency units")
    prize_money: float = Field(..., ge=0)
    task_instruction: Optional[str] = None
    deadline: datetime


class ContestUpdate(BaseModel):
    """Schema for editing a contest (only allowed while PENDING)"""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50)
    price: Optional[float] = Field(None, ge=0)
    prize_money: Optional[float] = Field(None, ge=0)
    task_instruction: Optional[str] = None
    deadline: Optional[datetime] = None


class ContestStatusUpdate(BaseModel):
    """Schema for the admin review transition"""
    status: Optional[ContestStatus] = None


class DeclareWinnerRequest(BaseModel):
    submission_id: str
