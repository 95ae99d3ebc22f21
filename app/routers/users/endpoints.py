import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.common import get_current_user
from app.dependencies import get_moderation_pipeline, get_user_service
from app.routers.responses import raise_for_result
from app.schemas.common import ActionResult, MessageResponse
from app.schemas.posts import PostListResponse
from app.schemas.users import MeUserResponse, ProfileUpdate, UserWithRelation
from app.services.friends_service import is_valid_id
from app.services.moderation_service import ModerationPipeline
from app.services.user_service import UserService

# Configure logging for the module
logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=MeUserResponse)
async def get_current_user_info_api(
    current_user: dict = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """
    Get current user's profile information.

    Raises:
        HTTPException 404: If the account behind the token no longer exists
    """
    me = await users.get_me(current_user["uid"])
    if me is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return me


@router.patch("/me", response_model=MessageResponse)
async def update_profile_api(
    request: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """Update picture, description, phone or name of the current user."""
    raise_for_result(await users.update_profile(current_user["uid"], request))
    return MessageResponse(message="Profile updated")


@router.get("/{user_id}", response_model=UserWithRelation)
async def get_user_api(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """Public profile of a user together with the caller's relation to them."""
    result = await users.get_user_with_relation(current_user["uid"], user_id)
    if isinstance(result, ActionResult):
        raise_for_result(result)
    return result


@router.get("/{user_id}/posts", response_model=PostListResponse)
async def get_user_posts_api(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    pipeline: ModerationPipeline = Depends(get_moderation_pipeline),
):
    if not is_valid_id(user_id):
        raise_for_result(ActionResult.failure("invalid_id"))
    posts = await pipeline.list_user_posts(user_id, viewer_id=current_user["uid"])
    return PostListResponse(posts=posts)
