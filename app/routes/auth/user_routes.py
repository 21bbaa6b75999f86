from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.auth.token import TokenData
from app.models.auth.user import RoleUpdate, UserCreate
from app.routes.auth.dependencies import get_current_user, get_token_data
from app.services.auth.user_service import UserService
from app.utils.response import success_response
from app.utils.serializers import document_to_json

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("")
async def register_user(
    user_data: UserCreate,
    token_data: TokenData = Depends(get_token_data),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Register the authenticated user with the default role.
    Registering twice returns the stored user.
    """
    user, created = await UserService(db).register(
        token_data.email,
        name=user_data.name,
        photo_url=user_data.photo_url
    )

    if not created:
        return success_response(
            message="User already exists",
            data=document_to_json(user)
        )

    return success_response(
        message="User registered successfully",
        data=document_to_json(user),
        status_code=201
    )


@router.get("/role/{email}")
async def get_user_role(
    email: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get a user's role"""
    role = await UserService(db).get_role(email)

    return success_response(
        message="Role retrieved successfully",
        data={"email": email, "role": role}
    )


@router.patch("/role/{email}")
async def update_user_role(
    email: str,
    role_data: RoleUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Change a user's role (admin only)"""
    user = await UserService(db).set_role(current_user, email, role_data.role)

    return success_response(
        message="Role updated successfully",
        data=document_to_json(user)
    )
