import logging
from collections import OrderedDict
from datetime import timedelta
from typing import List, Optional, Union
from urllib.parse import urlparse

from app.schemas.common import ActionResult
from app.schemas.stories import CreatedStoryResponse, StoryGroup, StoryItem
from app.schemas.users import PublicUser
from app.stores.contracts import IdentityStore, StoryStore
from app.utils.time_utils import ensure_aware, utcnow

logger = logging.getLogger(__name__)

STORY_TTL = timedelta(hours=24)
MAX_STORY_TEXT = 300
VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg")


def derive_media_type(media_url: Optional[str]) -> str:
    if not media_url:
        return "none"
    path = urlparse(media_url).path.lower()
    if path.endswith(VIDEO_EXTENSIONS):
        return "video"
    return "image"


class StoryService:
    def __init__(self, stories: StoryStore, identity: IdentityStore):
        self.stories = stories
        self.identity = identity

    async def create_story(self, author_id: str, text: Optional[str],
                           media_url: Optional[str]) -> Union[ActionResult, CreatedStoryResponse]:
        text = (text or "").strip()
        media_url = (media_url or "").strip()
        if not text and not media_url:
            return ActionResult.failure("missing_content")
        if len(text) > MAX_STORY_TEXT:
            return ActionResult.failure("text_too_long")

        now = utcnow()
        story = await self.stories.create_story(
            author_id=author_id,
            text=text,
            media_url=media_url,
            media_type=derive_media_type(media_url),
            created_at=now,
            expires_at=now + STORY_TTL,
        )
        logger.info(f"Story {story.id} created by {author_id}")
        return CreatedStoryResponse(id=story.id, expires_at=story.expires_at)

    async def feed(self) -> List[StoryGroup]:
        """Unexpired stories grouped by author, authors ordered by their newest story."""
        stories = await self.stories.active_stories(utcnow())
        grouped: "OrderedDict[str, List[StoryItem]]" = OrderedDict()
        for story in stories:
            grouped.setdefault(story.author_id, []).append(
                StoryItem(
                    id=story.id,
                    text=story.text or "",
                    media_url=story.media_url or "",
                    media_type=story.media_type,
                    created_at=ensure_aware(story.created_at),
                    expires_at=ensure_aware(story.expires_at),
                    views_count=story.views_count or 0,
                )
            )

        authors = {u.id: u for u in await self.identity.find_many(list(grouped))}
        return [
            StoryGroup(
                user=PublicUser.model_validate(authors[author_id]),
                latest_created_at=items[0].created_at,
                items=items,
            )
            for author_id, items in grouped.items()
            if author_id in authors
        ]

    async def mark_viewed(self, story_id: str, viewer_id: str) -> ActionResult:
        """Count a viewer once per story. Expired stories are treated as missing."""
        story = await self.stories.get_story(story_id)
        if story is None or ensure_aware(story.expires_at) <= utcnow():
            return ActionResult.failure("not_found")
        if await self.stories.add_view(story_id, viewer_id):
            logger.debug(f"Story {story_id} viewed by {viewer_id}")
        return ActionResult.success()

    async def purge_expired(self) -> int:
        removed = await self.stories.delete_expired(utcnow())
        if removed:
            logger.info(f"Purged {removed} expired stories")
        return removed
