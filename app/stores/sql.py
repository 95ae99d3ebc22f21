"""
SQLAlchemy implementations of the store contracts.

Every operation opens its own session through `session_scope`, so a store
instance can be shared across concurrent requests and background tasks.
Uniqueness (friend pair, pending request pair, marks, likes, story views) is
enforced by the schema; the methods here turn constraint violations into
plain False/None results.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import and_, cast, delete, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.database import session_scope
from app.models import (
    Friend,
    FriendRequest,
    FriendRequestMark,
    Post,
    PostComment,
    PostLike,
    Story,
    StoryView,
    User,
)
from app.schemas.friends import FriendRequestStatus, MarkDirection, PendingSets
from app.schemas.posts import Verdict, VerdictTag
from app.schemas.users import UserRole
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {"name", "picture_url", "description", "phone"}


def _typed(value, column):
    """Bind a literal with an explicit CAST so it can stand as a SELECT column on every backend."""
    return cast(literal(value, column.type), column.type)


def _pair(left, right, user_id: str, other_id: str):
    """Match rows between two users in either direction."""
    return or_(
        and_(left == user_id, right == other_id),
        and_(left == other_id, right == user_id),
    )


def _not_friends(user_id: str, other_id: str):
    return ~select(Friend.id).where(Friend.user_id == user_id, Friend.friend_id == other_id).exists()


class SqlIdentityStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with session_scope(self._session_factory) as session:
            return await session.get(User, user_id)

    async def find_by_email(self, email: str) -> Optional[User]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(User).where(User.email == email.lower()))
            return result.scalar_one_or_none()

    async def find_many(self, user_ids: Sequence[str]) -> List[User]:
        if not user_ids:
            return []
        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(User).where(User.id.in_(list(user_ids))))
            return list(result.scalars().all())

    async def create(self, name: str, email: str, password_hash: str, role: UserRole = UserRole.USER) -> Optional[User]:
        try:
            async with session_scope(self._session_factory) as session:
                user = User(id=str(uuid.uuid4()), name=name, email=email.lower(), password_hash=password_hash, role=role)
                session.add(user)
                await session.flush()
                await session.refresh(user)
        except IntegrityError:
            logger.info(f"Email already registered: {email}")
            return None
        return user

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> bool:
        values = {k: v for k, v in updates.items() if k in PROFILE_FIELDS}
        if not values:
            return await self.find_by_id(user_id) is not None
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(User).where(User.id == user_id).values(**values).execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def search_by_text(self, query: str, exclude_id: str, limit: int) -> List[User]:
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        stmt = (
            select(User)
            .where(
                User.id != exclude_id,
                or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\")),
            )
            .order_by(User.updated_at.desc())
            .limit(limit)
        )
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


class SqlRelationshipStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def are_friends(self, user_id: str, other_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Friend.id).where(Friend.user_id == user_id, Friend.friend_id == other_id).limit(1)
            )
            return result.first() is not None

    async def friend_ids(self, user_id: str) -> Set[str]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(Friend.friend_id).where(Friend.user_id == user_id))
            return set(result.scalars().all())

    async def pending_sets(self, user_id: str) -> PendingSets:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(FriendRequestMark.other_user_id, FriendRequestMark.direction)
                .where(FriendRequestMark.user_id == user_id)
            )
            sets = PendingSets()
            for other_id, direction in result.all():
                if direction == MarkDirection.INCOMING:
                    sets.incoming.add(other_id)
                else:
                    sets.outgoing.add(other_id)
            return sets

    async def has_mark(self, user_id: str, other_id: str, direction: MarkDirection) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(FriendRequestMark.id).where(
                    FriendRequestMark.user_id == user_id,
                    FriendRequestMark.other_user_id == other_id,
                    FriendRequestMark.direction == direction,
                ).limit(1)
            )
            return result.first() is not None

    async def add_mark_unless_friends(self, user_id: str, other_id: str, direction: MarkDirection) -> bool:
        table = FriendRequestMark.__table__
        source = select(
            _typed(str(uuid.uuid4()), table.c.id),
            _typed(user_id, table.c.user_id),
            _typed(other_id, table.c.other_user_id),
            _typed(direction, table.c.direction),
        ).where(_not_friends(user_id, other_id))
        stmt = insert(table).from_select(["id", "user_id", "other_user_id", "direction"], source)
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(stmt)
                return result.rowcount > 0
        except IntegrityError:
            return False

    async def remove_mark(self, user_id: str, other_id: str, direction: MarkDirection) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(FriendRequestMark).where(
                    FriendRequestMark.user_id == user_id,
                    FriendRequestMark.other_user_id == other_id,
                    FriendRequestMark.direction == direction,
                ).execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def remove_pair_marks(self, user_id: str, other_id: str) -> int:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(FriendRequestMark)
                .where(_pair(FriendRequestMark.user_id, FriendRequestMark.other_user_id, user_id, other_id))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def create_pending_request(self, from_user_id: str, to_user_id: str) -> Optional[str]:
        table = FriendRequest.__table__
        request_id = str(uuid.uuid4())
        source = select(
            _typed(request_id, table.c.id),
            _typed(from_user_id, table.c.from_user_id),
            _typed(to_user_id, table.c.to_user_id),
            _typed(FriendRequestStatus.PENDING, table.c.status),
        ).where(_not_friends(from_user_id, to_user_id))
        stmt = insert(table).from_select(["id", "from_user_id", "to_user_id", "status"], source)
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    return None
        except IntegrityError:
            return None
        return request_id

    async def find_pending_request(self, from_user_id: str, to_user_id: str) -> Optional[FriendRequest]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(FriendRequest).where(
                    FriendRequest.from_user_id == from_user_id,
                    FriendRequest.to_user_id == to_user_id,
                    FriendRequest.status == FriendRequestStatus.PENDING,
                )
            )
            return result.scalars().first()

    async def has_request_with_status(self, from_user_id: str, to_user_id: str, status: FriendRequestStatus) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(FriendRequest.id).where(
                    FriendRequest.from_user_id == from_user_id,
                    FriendRequest.to_user_id == to_user_id,
                    FriendRequest.status == status,
                ).limit(1)
            )
            return result.first() is not None

    async def list_pending_requests_to(self, user_id: str) -> List[FriendRequest]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(FriendRequest)
                .where(FriendRequest.to_user_id == user_id, FriendRequest.status == FriendRequestStatus.PENDING)
                .order_by(FriendRequest.created_at.desc())
            )
            return list(result.scalars().all())

    async def transition_request(self, request_id: str, expected: FriendRequestStatus, new: FriendRequestStatus) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(FriendRequest)
                .where(FriendRequest.id == request_id, FriendRequest.status == expected)
                .values(status=new, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def delete_pending_request(self, request_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(FriendRequest)
                .where(FriendRequest.id == request_id, FriendRequest.status == FriendRequestStatus.PENDING)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def close_pending_request(self, request_id: str, from_user_id: str, to_user_id: str,
                                    new: FriendRequestStatus) -> bool:
        """Move a pending request to `new` and drop both of its marks in one transaction."""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(FriendRequest)
                .where(FriendRequest.id == request_id, FriendRequest.status == FriendRequestStatus.PENDING)
                .values(status=new, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False
            await session.execute(
                delete(FriendRequestMark)
                .where(
                    or_(
                        and_(
                            FriendRequestMark.user_id == from_user_id,
                            FriendRequestMark.other_user_id == to_user_id,
                            FriendRequestMark.direction == MarkDirection.OUTGOING,
                        ),
                        and_(
                            FriendRequestMark.user_id == to_user_id,
                            FriendRequestMark.other_user_id == from_user_id,
                            FriendRequestMark.direction == MarkDirection.INCOMING,
                        ),
                    )
                )
                .execution_options(synchronize_session=False)
            )
            return True

    async def resolve_pending_between(self, user_id: str, other_id: str, new: FriendRequestStatus) -> int:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(FriendRequest)
                .where(
                    FriendRequest.status == FriendRequestStatus.PENDING,
                    _pair(FriendRequest.from_user_id, FriendRequest.to_user_id, user_id, other_id),
                )
                .values(status=new, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def _friend_rows(self, user_id: str, other_id: str) -> Set[tuple]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Friend.user_id, Friend.friend_id)
                .where(_pair(Friend.user_id, Friend.friend_id, user_id, other_id))
            )
            return {(row.user_id, row.friend_id) for row in result}

    async def add_friendship(self, user_id: str, other_id: str) -> None:
        wanted = {(user_id, other_id), (other_id, user_id)}
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(Friend.user_id, Friend.friend_id)
                    .where(_pair(Friend.user_id, Friend.friend_id, user_id, other_id))
                )
                existing = {(row.user_id, row.friend_id) for row in result}
                for a, b in sorted(wanted - existing):
                    session.add(Friend(id=str(uuid.uuid4()), user_id=a, friend_id=b))
        except IntegrityError:
            # Another writer inserted the pair first; fine as long as both rows are there now
            if await self._friend_rows(user_id, other_id) != wanted:
                raise
            logger.info(f"Friendship {user_id} <-> {other_id} already written by a concurrent writer")

    async def remove_friendship(self, user_id: str, other_id: str) -> bool:
        """Delete both rows and retire the accepted requests so repair does not resurrect the pair."""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(Friend)
                .where(_pair(Friend.user_id, Friend.friend_id, user_id, other_id))
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                update(FriendRequest)
                .where(
                    FriendRequest.status == FriendRequestStatus.ACCEPTED,
                    _pair(FriendRequest.from_user_id, FriendRequest.to_user_id, user_id, other_id),
                )
                .values(status=FriendRequestStatus.CANCELLED, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def accepted_requests_needing_repair(self, limit: int) -> List[FriendRequest]:
        forward = select(Friend.id).where(
            Friend.user_id == FriendRequest.from_user_id, Friend.friend_id == FriendRequest.to_user_id
        ).exists()
        backward = select(Friend.id).where(
            Friend.user_id == FriendRequest.to_user_id, Friend.friend_id == FriendRequest.from_user_id
        ).exists()
        leftover_marks = select(FriendRequestMark.id).where(
            _pair(
                FriendRequestMark.user_id,
                FriendRequestMark.other_user_id,
                FriendRequest.from_user_id,
                FriendRequest.to_user_id,
            )
        ).exists()
        stmt = (
            select(FriendRequest)
            .where(FriendRequest.status == FriendRequestStatus.ACCEPTED, or_(~forward, ~backward, leftover_marks))
            .order_by(FriendRequest.updated_at)
            .limit(limit)
        )
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


class SqlContentStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _verdict_values(verdict: Verdict) -> Dict[str, Any]:
        return {
            "ai_tag": verdict.tag,
            "ai_summary": verdict.summary,
            "ai_score": verdict.score,
            "ai_raw": verdict.raw,
            "ai_error": verdict.error,
            "ai_updated_at": verdict.updated_at or utcnow(),
        }

    @staticmethod
    async def _post_exists(session, post_id: str) -> bool:
        result = await session.execute(select(Post.id).where(Post.id == post_id))
        return result.first() is not None

    async def create_post(self, author_id: str, content: str, media_url: str, verdict: Verdict) -> Post:
        async with session_scope(self._session_factory) as session:
            values = self._verdict_values(verdict)
            if verdict.tag == VerdictTag.PENDING and verdict.updated_at is None:
                values["ai_updated_at"] = None
            post = Post(id=str(uuid.uuid4()), author_id=author_id, content=content, media_url=media_url, **values)
            session.add(post)
            await session.flush()
            await session.refresh(post)
            return post

    async def get_post(self, post_id: str, with_comments: bool = False) -> Optional[Post]:
        stmt = select(Post).where(Post.id == post_id)
        if with_comments:
            stmt = stmt.options(selectinload(Post.comments))
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_posts_by_author(self, author_id: str) -> List[Post]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Post)
                .where(Post.author_id == author_id)
                .options(selectinload(Post.comments))
                .order_by(Post.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_pending_posts(self, limit: int, author_id: Optional[str] = None) -> List[Post]:
        stmt = select(Post).where(Post.ai_tag == VerdictTag.PENDING)
        if author_id is not None:
            stmt = stmt.where(Post.author_id == author_id)
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt.order_by(Post.created_at).limit(limit))
            return list(result.scalars().all())

    async def write_verdict(self, post_id: str, verdict: Verdict) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(Post)
                .where(Post.id == post_id)
                .values(**self._verdict_values(verdict))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def record_verdict_error(self, post_id: str, error: str) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(Post)
                .where(Post.id == post_id)
                .values(ai_error=error, ai_updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def add_like(self, post_id: str, user_id: str) -> bool:
        try:
            async with session_scope(self._session_factory) as session:
                if not await self._post_exists(session, post_id):
                    return False
                session.add(PostLike(id=str(uuid.uuid4()), post_id=post_id, user_id=user_id))
                await session.flush()
                await session.execute(
                    update(Post)
                    .where(Post.id == post_id)
                    .values(likes_count=Post.likes_count + 1)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            return False
        return True

    async def remove_like(self, post_id: str, user_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(PostLike)
                .where(PostLike.post_id == post_id, PostLike.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False
            await session.execute(
                update(Post)
                .where(Post.id == post_id, Post.likes_count > 0)
                .values(likes_count=Post.likes_count - 1)
                .execution_options(synchronize_session=False)
            )
            return True

    async def liked_post_ids(self, user_id: str, post_ids: Sequence[str]) -> Set[str]:
        if not post_ids:
            return set()
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(PostLike.post_id).where(PostLike.user_id == user_id, PostLike.post_id.in_(list(post_ids)))
            )
            return set(result.scalars().all())

    async def add_comment(self, post_id: str, user_id: str, text: str) -> Optional[str]:
        async with session_scope(self._session_factory) as session:
            if not await self._post_exists(session, post_id):
                return None
            comment_id = str(uuid.uuid4())
            session.add(PostComment(id=comment_id, post_id=post_id, user_id=user_id, text=text, created_at=utcnow()))
            await session.flush()
            await session.execute(
                update(Post)
                .where(Post.id == post_id)
                .values(comments_count=Post.comments_count + 1)
                .execution_options(synchronize_session=False)
            )
            return comment_id

    async def find_comment(self, post_id: str, comment_id: str) -> Optional[PostComment]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(PostComment).where(PostComment.id == comment_id, PostComment.post_id == post_id)
            )
            return result.scalar_one_or_none()

    async def delete_comment(self, post_id: str, comment_id: str, user_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(PostComment)
                .where(PostComment.id == comment_id, PostComment.post_id == post_id, PostComment.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False
            await session.execute(
                update(Post)
                .where(Post.id == post_id, Post.comments_count > 0)
                .values(comments_count=Post.comments_count - 1)
                .execution_options(synchronize_session=False)
            )
            return True


class SqlStoryStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def create_story(self, author_id: str, text: str, media_url: str, media_type: str,
                           created_at: datetime, expires_at: datetime) -> Story:
        async with session_scope(self._session_factory) as session:
            story = Story(
                id=str(uuid.uuid4()),
                author_id=author_id,
                text=text,
                media_url=media_url,
                media_type=media_type,
                created_at=created_at,
                expires_at=expires_at,
                views_count=0,
            )
            session.add(story)
            return story

    async def get_story(self, story_id: str) -> Optional[Story]:
        async with session_scope(self._session_factory) as session:
            return await session.get(Story, story_id)

    async def active_stories(self, now: datetime) -> List[Story]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Story).where(Story.expires_at > now).order_by(Story.created_at.desc())
            )
            return list(result.scalars().all())

    async def add_view(self, story_id: str, viewer_id: str) -> bool:
        try:
            async with session_scope(self._session_factory) as session:
                session.add(StoryView(id=str(uuid.uuid4()), story_id=story_id, viewer_id=viewer_id))
                await session.flush()
                await session.execute(
                    update(Story)
                    .where(Story.id == story_id)
                    .values(views_count=Story.views_count + 1)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            return False
        return True

    async def delete_expired(self, now: datetime) -> int:
        expired_ids = select(Story.id).where(Story.expires_at <= now)
        async with session_scope(self._session_factory) as session:
            await session.execute(
                delete(StoryView).where(StoryView.story_id.in_(expired_ids)).execution_options(synchronize_session=False)
            )
            result = await session.execute(
                delete(Story).where(Story.expires_at <= now).execution_options(synchronize_session=False)
            )
            return result.rowcount
