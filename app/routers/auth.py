from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.models.user import User
from app.schemas.common import ApiResponse
from app.schemas.user import UserLogin, TokenResponse, UserResponse
from app.utils.auth import verify_password, create_access_token
from app.api.deps import get_current_active_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()

    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )
    return user


def issue_token(user: User) -> str:
    return create_access_token(
        data={
            "sub": str(user.id),
            "capabilities": user.capabilities,
        }
    )


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(user_data: UserLogin, db: Session = Depends(get_db)):
    user = authenticate(db, user_data.email, user_data.password)
    return ApiResponse(
        message="Login successful",
        data=TokenResponse(
            access_token=issue_token(user),
            user=UserResponse.model_validate(user)
        ),
    )

@router.post("/token", response_model=dict)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """OAuth2 compatible token endpoint for Swagger UI"""
    user = authenticate(db, form_data.username, form_data.password)
    return {
        "access_token": issue_token(user),
        "token_type": "bearer"
    }

@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
):
    return ApiResponse(message="Current user", data=UserResponse.model_validate(current_user))
