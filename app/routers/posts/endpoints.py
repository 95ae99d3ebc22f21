import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError

from app.common import get_current_user
from app.dependencies import (
    get_classifier,
    get_content_service,
    get_moderation_pipeline,
    get_upload_service,
)
from app.routers.responses import raise_for_result
from app.schemas.common import ActionResult
from app.schemas.posts import (
    ClassifierResult,
    ClientVerdict,
    CommentCreate,
    CreatedPost,
    CreatedPostResponse,
    CredibilityCheckRequest,
    DeletedResponse,
    LikeResponse,
    PostCreate,
    PostListResponse,
    PostResponse,
    UnlikeResponse,
    UploadResponse,
)
from app.services.content_service import ContentService
from app.services.moderation_service import ModerationPipeline
from app.services.upload_service import UploadService
from app.stores.contracts import Classifier

# Configure logging for this module
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


def _created(result) -> CreatedPostResponse:
    if isinstance(result, ActionResult):
        raise_for_result(result)
    created: CreatedPost = result
    return CreatedPostResponse(id=created.id, media_url=created.media_url, ai={"tag": created.tag.value})


async def _read_upload(media: UploadFile, uploads: UploadService) -> bytes:
    # One byte past the limit is enough to reject the file
    return await media.read(uploads.max_bytes + 1)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CreatedPostResponse)
async def create_post_api(
    request: PostCreate,
    current_user: dict = Depends(get_current_user),
    pipeline: ModerationPipeline = Depends(get_moderation_pipeline),
):
    """
    Create a post. The response carries the initial verdict (Pending unless a
    trusted client verdict was sent); analysis finishes in the background.
    """
    result = await pipeline.create_post(current_user["uid"], request.content, request.media_url, request.ai)
    return _created(result)


@router.post("/create-with-media", status_code=status.HTTP_201_CREATED, response_model=CreatedPostResponse)
async def create_post_with_media_api(
    content: str = Form(""),
    ai: Optional[str] = Form(None),
    media: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    pipeline: ModerationPipeline = Depends(get_moderation_pipeline),
    uploads: UploadService = Depends(get_upload_service),
):
    """Upload the attached media first, then create the post pointing at it."""
    client_verdict = None
    if ai:
        try:
            client_verdict = ClientVerdict.model_validate_json(ai)
        except ValidationError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_ai_payload")

    media_url = ""
    if media is not None:
        uploaded = await uploads.upload_media(
            current_user["uid"], "posts", media.filename, await _read_upload(media, uploads), media.content_type
        )
        if isinstance(uploaded, ActionResult):
            raise_for_result(uploaded)
        media_url = uploaded.url

    result = await pipeline.create_post(current_user["uid"], content, media_url, client_verdict)
    return _created(result)


@router.post("/upload-media", status_code=status.HTTP_201_CREATED, response_model=UploadResponse)
async def upload_post_media_api(
    media: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    uploads: UploadService = Depends(get_upload_service),
):
    result = await uploads.upload_media(
        current_user["uid"], "posts", media.filename, await _read_upload(media, uploads), media.content_type
    )
    if isinstance(result, ActionResult):
        raise_for_result(result)
    return result


@router.get("/mine", response_model=PostListResponse)
async def my_posts_api(
    current_user: dict = Depends(get_current_user),
    pipeline: ModerationPipeline = Depends(get_moderation_pipeline),
):
    """The caller's posts, newest first. Posts still Pending are re-analysed before returning."""
    posts = await pipeline.list_user_posts(current_user["uid"], viewer_id=current_user["uid"])
    return PostListResponse(posts=posts)


@router.post("/credibility-check", response_model=ClassifierResult)
async def credibility_check_api(
    request: CredibilityCheckRequest,
    current_user: dict = Depends(get_current_user),
    classifier: Classifier = Depends(get_classifier),
):
    """Run the classifier on arbitrary text so the client can attach the verdict to a new post."""
    return await classifier.classify(request.check_for)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post_api(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    post = await content.get_post(post_id, viewer_id=current_user["uid"])
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
    return post


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post_api(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    return LikeResponse(liked=await content.like_post(post_id, current_user["uid"]))


@router.post("/{post_id}/unlike", response_model=UnlikeResponse)
async def unlike_post_api(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    return UnlikeResponse(unliked=await content.unlike_post(post_id, current_user["uid"]))


@router.post("/{post_id}/comment", status_code=status.HTTP_201_CREATED, response_model=ActionResult)
async def add_comment_api(
    post_id: str,
    request: CommentCreate,
    current_user: dict = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    return raise_for_result(await content.add_comment(post_id, current_user["uid"], request.text))


@router.delete("/{post_id}/comment/{comment_id}", response_model=DeletedResponse)
async def delete_comment_api(
    post_id: str,
    comment_id: str,
    current_user: dict = Depends(get_current_user),
    content: ContentService = Depends(get_content_service),
):
    """
    Delete one of the caller's own comments.

    Raises:
        HTTPException 404: If the post or comment does not exist
        HTTPException 403: If the comment belongs to someone else
    """
    raise_for_result(await content.delete_comment(post_id, comment_id, current_user["uid"]))
    return DeletedResponse(deleted=True)
