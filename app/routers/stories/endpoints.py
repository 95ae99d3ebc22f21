import logging

from fastapi import APIRouter, Depends, File, UploadFile, status

from app.common import get_current_user
from app.dependencies import get_story_service, get_upload_service
from app.routers.responses import raise_for_result
from app.schemas.common import ActionResult, MessageResponse
from app.schemas.posts import UploadResponse
from app.schemas.stories import CreatedStoryResponse, StoryCreate, StoryFeedResponse
from app.services.story_service import StoryService
from app.services.upload_service import UploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stories", tags=["stories"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CreatedStoryResponse)
async def create_story_api(
    request: StoryCreate,
    current_user: dict = Depends(get_current_user),
    stories: StoryService = Depends(get_story_service),
):
    """A story needs text, media or both, and disappears 24 hours after creation."""
    result = await stories.create_story(current_user["uid"], request.text, request.media_url)
    if isinstance(result, ActionResult):
        raise_for_result(result)
    return result


@router.post("/upload-media", status_code=status.HTTP_201_CREATED, response_model=UploadResponse)
async def upload_story_media_api(
    media: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    uploads: UploadService = Depends(get_upload_service),
):
    data = await media.read(uploads.max_bytes + 1)
    result = await uploads.upload_media(current_user["uid"], "stories", media.filename, data, media.content_type)
    if isinstance(result, ActionResult):
        raise_for_result(result)
    return result


@router.get("/feed", response_model=StoryFeedResponse)
async def story_feed_api(
    current_user: dict = Depends(get_current_user),
    stories: StoryService = Depends(get_story_service),
):
    return StoryFeedResponse(users=await stories.feed())


@router.post("/{story_id}/view", response_model=MessageResponse)
async def mark_story_viewed_api(
    story_id: str,
    current_user: dict = Depends(get_current_user),
    stories: StoryService = Depends(get_story_service),
):
    raise_for_result(await stories.mark_viewed(story_id, current_user["uid"]))
    return MessageResponse(message="ok")
