from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.exceptions import AuthenticationError
from app.database import get_database
from app.models.auth.token import TokenData
from app.models.auth.user import UserRole
from app.services.auth.security import security_service
from app.services.auth.user_service import UserService

# OAuth2 scheme; tokens are issued by the external identity provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users", auto_error=False)


async def get_token_data(token: Annotated[Optional[str], Depends(oauth2_scheme)]) -> TokenData:
    """Verified bearer token claims"""
    token_data = security_service.verify_token(token, "access")
    if token_data is None:
        raise AuthenticationError("Invalid or missing access token")
    return token_data


async def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> dict:
    """
    Get current authenticated user.
    A valid token for an email that has not registered yet acts with the
    default role.
    """
    user = await UserService(db).get_user_by_email(token_data.email)
    if user is None:
        return {"email": token_data.email, "role": UserRole.USER.value}
    return user
