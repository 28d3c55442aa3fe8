from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.common import ApiResponse
from app.schemas.user import TokenResponse, UserResponse
from app.routers.auth import authenticate, issue_token

router = APIRouter(tags=["Admin Auth"])
logger = get_logger(__name__)


@router.post("/auth/token", response_model=ApiResponse[TokenResponse])
async def admin_login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Review portal login. Agents get the same answer as a wrong password,
    so the endpoint does not reveal which e-mails belong to administrators.
    """
    try:
        user = authenticate(db, form_data.username, form_data.password)
    except HTTPException as exc:
        if exc.status_code == status.HTTP_403_FORBIDDEN:
            raise
        user = None

    if user is None or not user.is_admin:
        logger.warning("Rejected admin login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials or insufficient permissions",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return ApiResponse(
        message="Admin login successful",
        data=TokenResponse(access_token=issue_token(user), user=UserResponse.model_validate(user)),
    )
