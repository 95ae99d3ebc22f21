"""
Credibility moderation for posts.

Posts are stored first and analysed afterwards: `create_post` answers with a
Pending verdict (or an accepted client verdict) and hands the analysis to a
scheduler. Verdicts are always written whole, so the deferred analysis and a
backfill sweep racing on the same post simply end with whichever wrote last.
"""
import asyncio
import logging
import math
import re
from typing import List, Optional, Union

from cachetools import TTLCache

from app.config import settings
from app.schemas.common import ActionResult
from app.schemas.posts import ClassifierResult, ClientVerdict, CreatedPost, PostResponse, Verdict, VerdictTag
from app.services.content_service import post_to_response
from app.stores.contracts import Classifier, ContentStore
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

SOURCE_PATTERN = re.compile(r"http|source|study|report|news|paper|journal")
CLAIM_PATTERN = re.compile(r"claims?|breaking|cures?|proves?|reveals?|alleg(ed|es)|evidence|research")
NUMBER_PATTERN = re.compile(r"\d")

NOT_APPLICABLE_SUMMARY = "Personal update or non-factual content."
SUMMARY_MAX_LENGTH = 200
MAX_CONTENT_LENGTH = 2000

STATUS_TO_TAG = {
    "verified": VerdictTag.VERIFIED,
    "misleading": VerdictTag.MISLEADING,
    "debunked": VerdictTag.FALSE,
    "outdated": VerdictTag.OUTDATED,
    "unverified": VerdictTag.UNVERIFIED,
}


def is_not_applicable(content: Optional[str], media_url: Optional[str] = "") -> bool:
    """Cheap check for personal or non-factual posts that are not worth a classifier call."""
    text = (content or "").lower()
    has_signal = bool(SOURCE_PATTERN.search(text) or CLAIM_PATTERN.search(text) or NUMBER_PATTERN.search(text))
    is_short_personal = len(text) < 40 and not has_signal
    is_only_media = not text.strip() and bool(media_url)
    return is_short_personal or is_only_media or (not has_signal and len(text) < 100)


def score_to_percent(score: Optional[float]) -> Optional[int]:
    """Map a 0-5 classifier score onto 0-100, rounding halves up."""
    if score is None or not math.isfinite(score):
        return None
    return math.floor(max(0.0, min(5.0, score)) * 20 + 0.5)


def tag_for_status(status: Optional[str]) -> VerdictTag:
    return STATUS_TO_TAG.get((status or "").strip().lower(), VerdictTag.UNVERIFIED)


def verdict_from_classifier(result: ClassifierResult) -> Verdict:
    return Verdict(
        tag=tag_for_status(result.fact_check_status),
        summary=(result.summary or "")[:SUMMARY_MAX_LENGTH],
        score=score_to_percent(result.credibility_score),
        raw=result.model_dump(mode="json"),
        error=None,
        updated_at=utcnow(),
    )


def normalize_client_verdict(client: ClientVerdict) -> Verdict:
    tag = STATUS_TO_TAG.get((client.fact_check_status or "").strip().lower())
    if tag is None:
        tag = client.tag if client.tag not in (None, VerdictTag.PENDING) else VerdictTag.UNVERIFIED
    return Verdict(
        tag=tag,
        summary=(client.summary or "")[:SUMMARY_MAX_LENGTH],
        score=score_to_percent(client.credibility_score),
        raw=client.model_dump(mode="json"),
        updated_at=utcnow(),
    )


class ModerationPipeline:
    def __init__(self, content: ContentStore, classifier: Classifier, scheduler=None,
                 trust_client_verdicts: Optional[bool] = None, backfill_limit: Optional[int] = None,
                 inflight_ttl_seconds: Optional[int] = None):
        self.content = content
        self.classifier = classifier
        self.scheduler = scheduler
        self.trust_client_verdicts = (
            settings.trust_client_verdicts if trust_client_verdicts is None else trust_client_verdicts
        )
        self.backfill_limit = settings.moderation_backfill_limit if backfill_limit is None else backfill_limit
        # Posts currently being analysed in this process
        self._inflight = TTLCache(
            maxsize=10_000,
            ttl=inflight_ttl_seconds or settings.moderation_inflight_ttl_seconds,
        )

    async def create_post(self, author_id: str, content: Optional[str], media_url: Optional[str] = "",
                          client_verdict: Optional[ClientVerdict] = None) -> Union[ActionResult, CreatedPost]:
        """
        Store a post and schedule its credibility analysis.

        Args:
            author_id: ID of the authenticated author
            content: Post text, may be empty when media is attached
            media_url: URL of already uploaded media
            client_verdict: Verdict the client computed itself, honoured only when trusted

        Returns:
            CreatedPost with the initial tag, or an ActionResult carrying
            missing_content / text_too_long
        """
        content = (content or "").strip()
        media_url = (media_url or "").strip()
        if not content and not media_url:
            return ActionResult.failure("missing_content")
        if len(content) > MAX_CONTENT_LENGTH:
            return ActionResult.failure("text_too_long")

        use_client = client_verdict is not None and self.trust_client_verdicts
        if client_verdict is not None and not use_client:
            logger.info(f"Ignoring client verdict for post by {author_id}; client verdicts are not trusted")
        verdict = normalize_client_verdict(client_verdict) if use_client else Verdict.pending()

        post = await self.content.create_post(author_id, content, media_url, verdict)
        logger.info(f"Post {post.id} created by {author_id} with tag {verdict.tag.value}")

        if not use_client:
            if self.scheduler is None:
                logger.warning(f"No moderation scheduler configured; post {post.id} stays Pending until backfill")
            else:
                self.scheduler.schedule(self, post.id, content, media_url)

        return CreatedPost(id=post.id, tag=verdict.tag, media_url=media_url or None)

    async def analyze(self, content: Optional[str], media_url: Optional[str] = "") -> Verdict:
        """Produce a verdict for the text. Never raises; failures come back as a Pending verdict with an error."""
        if is_not_applicable(content, media_url):
            return Verdict(
                tag=VerdictTag.NOT_APPLICABLE,
                summary=NOT_APPLICABLE_SUMMARY,
                score=None,
                updated_at=utcnow(),
            )
        try:
            result = await self.classifier.classify(content or "")
            return verdict_from_classifier(result)
        except Exception as e:
            logger.warning(f"Post analysis failed: {e}")
            return Verdict(tag=VerdictTag.PENDING, error=str(e) or "AI_ERROR", updated_at=utcnow())

    async def update_post_ai(self, post_id: str, verdict: Verdict) -> bool:
        """Overwrite the post's verdict as a whole. Safe to repeat; the last write wins."""
        if verdict.updated_at is None:
            verdict = verdict.model_copy(update={"updated_at": utcnow()})
        return await self.content.write_verdict(post_id, verdict)

    async def analyze_and_store(self, post_id: str, content: Optional[str], media_url: Optional[str] = "") -> Optional[Verdict]:
        if post_id in self._inflight:
            logger.debug(f"Analysis already running for post {post_id}")
            return None
        self._inflight[post_id] = True
        try:
            verdict = await self.analyze(content, media_url)
            if verdict.error:
                # Keep whatever tag the post has and only note the failure
                await self.content.record_verdict_error(post_id, verdict.error)
            else:
                await self.update_post_ai(post_id, verdict)
                logger.info(f"Post {post_id} moderated as {verdict.tag.value}")
            return verdict
        except Exception:
            logger.exception(f"Could not store verdict for post {post_id}")
            return None
        finally:
            self._inflight.pop(post_id, None)

    async def backfill_pending(self, limit: Optional[int] = None, author_id: Optional[str] = None) -> int:
        """Re-run analysis for posts still Pending. Returns how many were attempted."""
        posts = await self.content.list_pending_posts(limit or self.backfill_limit, author_id=author_id)
        if not posts:
            return 0
        await asyncio.gather(*(self.analyze_and_store(p.id, p.content, p.media_url) for p in posts))
        return len(posts)

    async def list_user_posts(self, user_id: str, viewer_id: Optional[str] = None,
                              backfill: bool = True) -> List[PostResponse]:
        if backfill and self.backfill_limit > 0:
            await self.backfill_pending(self.backfill_limit, author_id=user_id)
        posts = await self.content.list_posts_by_author(user_id)
        liked = await self.content.liked_post_ids(viewer_id, [p.id for p in posts]) if viewer_id else set()
        return [post_to_response(p, liked) for p in posts]
