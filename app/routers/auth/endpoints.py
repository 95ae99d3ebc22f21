import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_user_service
from app.routers.responses import raise_for_result
from app.schemas.common import ActionResult
from app.schemas.users import LoginRequest, TokenResponse, UserCreate
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ActionResult)
async def register_api(request: UserCreate, users: UserService = Depends(get_user_service)):
    """
    Register a new account.

    Raises:
        HTTPException 409: If the email is already registered
    """
    return raise_for_result(await users.register(request.name, request.email, request.password))


@router.post("/login", response_model=TokenResponse)
async def login_api(request: LoginRequest, users: UserService = Depends(get_user_service)):
    token = await users.login(request.email, request.password)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return token
