from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    """Platform roles"""
    USER = "user"
    CREATOR = "creator"
    ADMIN = "admin"


class UserCreate(BaseModel):
    """Schema for registering the authenticated user"""
    name: Optional[str] = Field(None, max_length=100)
    photo_url: Optional[str] = None


class RoleUpdate(BaseModel):
    """Schema for an admin changing a user's role"""
    role: Optional[UserRole] = None
