import logging
from typing import Optional, Set

from app.models import Post
from app.schemas.common import ActionResult
from app.schemas.posts import CommentResponse, PostResponse, VerdictResponse
from app.stores.contracts import ContentStore

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000


def post_to_response(post: Post, liked_ids: Optional[Set[str]] = None, include_comments: bool = True) -> PostResponse:
    """Build the API view of a post. Comments must have been loaded with the post when requested."""
    return PostResponse(
        id=post.id,
        author_id=post.author_id,
        content=post.content or "",
        media_url=post.media_url or "",
        ai=VerdictResponse(
            tag=post.ai_tag,
            summary=post.ai_summary or "",
            score=post.ai_score,
            updated_at=post.ai_updated_at,
        ),
        likes_count=post.likes_count or 0,
        comments_count=post.comments_count or 0,
        liked_by_me=post.id in (liked_ids or set()),
        comments=[CommentResponse.model_validate(c) for c in post.comments] if include_comments else [],
        created_at=post.created_at,
    )


class ContentService:
    """Likes and comments on posts."""

    def __init__(self, content: ContentStore):
        self.content = content

    async def like_post(self, post_id: str, user_id: str) -> bool:
        """True when the like was added; False if already liked or the post is missing."""
        liked = await self.content.add_like(post_id, user_id)
        if liked:
            logger.info(f"User {user_id} liked post {post_id}")
        return liked

    async def unlike_post(self, post_id: str, user_id: str) -> bool:
        unliked = await self.content.remove_like(post_id, user_id)
        if unliked:
            logger.info(f"User {user_id} unliked post {post_id}")
        return unliked

    async def add_comment(self, post_id: str, user_id: str, text: Optional[str]) -> ActionResult:
        text = (text or "").strip()
        if not text:
            return ActionResult.failure("text_required")
        if len(text) > MAX_COMMENT_LENGTH:
            return ActionResult.failure("text_too_long")
        comment_id = await self.content.add_comment(post_id, user_id, text)
        if comment_id is None:
            return ActionResult.failure("not_found")
        return ActionResult.success(id=comment_id)

    async def delete_comment(self, post_id: str, comment_id: str, user_id: str) -> ActionResult:
        """Only the comment's author may delete it."""
        comment = await self.content.find_comment(post_id, comment_id)
        if comment is None:
            return ActionResult.failure("not_found")
        if comment.user_id != user_id:
            return ActionResult.failure("forbidden")
        if not await self.content.delete_comment(post_id, comment_id, user_id):
            # Deleted by a concurrent request
            return ActionResult.failure("not_found")
        logger.info(f"User {user_id} deleted comment {comment_id} on post {post_id}")
        return ActionResult.success()

    async def get_post(self, post_id: str, viewer_id: Optional[str] = None) -> Optional[PostResponse]:
        post = await self.content.get_post(post_id, with_comments=True)
        if post is None:
            return None
        liked = await self.content.liked_post_ids(viewer_id, [post.id]) if viewer_id else set()
        return post_to_response(post, liked)
