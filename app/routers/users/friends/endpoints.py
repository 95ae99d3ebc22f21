import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.common import get_current_user
from app.dependencies import get_relationship_engine
from app.routers.responses import raise_for_result
from app.schemas.common import ActionResult, MessageResponse
from app.schemas.friends import (
    FriendIdsResponse,
    FriendRequestAction,
    FriendRequestCancel,
    FriendRequestCreate,
    PendingRequestsResponse,
    UserSearchResponse,
)
from app.schemas.users import IncomingRequestsResponse
from app.services.friends_service import DEFAULT_SEARCH_LIMIT, RelationshipEngine

# Configure logging for this module
logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/friends", tags=["friends"])


@router.post("/request", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
async def send_friend_request_api(
    request: FriendRequestCreate,
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    """
    Send a friend request to another user.

    Raises:
        HTTPException 400: invalid_id, self_request
        HTTPException 404: target_not_found
        HTTPException 409: already_friends, already_requested, previously_declined
    """
    raise_for_result(await engine.send_request(current_user["uid"], request.target_user_id))
    return MessageResponse(message="Friend request sent")


@router.post("/accept", response_model=MessageResponse)
async def accept_friend_request_api(
    request: FriendRequestAction,
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    """
    Accept a pending request sent to the current user.

    Raises:
        HTTPException 400: invalid_id, self_accept
        HTTPException 404: sender_not_found
        HTTPException 409: already_friends, no_pending_request
    """
    raise_for_result(await engine.accept_request(current_user["uid"], request.sender_user_id))
    return MessageResponse(message="Friend request accepted")


@router.post("/decline", response_model=MessageResponse)
async def decline_friend_request_api(
    request: FriendRequestAction,
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    raise_for_result(await engine.decline_request(current_user["uid"], request.sender_user_id))
    return MessageResponse(message="Friend request declined")


@router.post("/cancel", response_model=MessageResponse)
async def cancel_friend_request_api(
    request: FriendRequestCancel,
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    raise_for_result(await engine.cancel_request(current_user["uid"], request.target_user_id))
    return MessageResponse(message="Friend request cancelled")


@router.delete("/{friend_id}", response_model=MessageResponse)
async def remove_friend_api(
    friend_id: str,
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    raise_for_result(await engine.remove_friend(current_user["uid"], friend_id))
    return MessageResponse(message="Friend removed")


@router.get("/search", response_model=UserSearchResponse)
async def search_users_api(
    q: str = Query("", max_length=100),
    limit: Optional[int] = Query(DEFAULT_SEARCH_LIMIT),
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    """Search users by name or email; results carry the caller's relation to each user."""
    results = await engine.search_users(q, current_user["uid"], limit)
    if isinstance(results, ActionResult):
        raise_for_result(results)
    return UserSearchResponse(results=results)


@router.get("", response_model=FriendIdsResponse)
async def get_friends_api(
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    friend_ids = await engine.get_friend_ids(current_user["uid"])
    return FriendIdsResponse(friends=sorted(friend_ids))


@router.get("/pending", response_model=PendingRequestsResponse)
async def get_pending_requests_api(
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    pending = await engine.get_pending_request_sets(current_user["uid"])
    return PendingRequestsResponse(incoming=sorted(pending.incoming), outgoing=sorted(pending.outgoing))


@router.get("/requests/incoming", response_model=IncomingRequestsResponse)
async def list_incoming_requests_api(
    current_user: dict = Depends(get_current_user),
    engine: RelationshipEngine = Depends(get_relationship_engine),
):
    return IncomingRequestsResponse(requests=await engine.list_incoming_requests(current_user["uid"]))
