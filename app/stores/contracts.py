"""
Storage contracts consumed by the relationship engine and the moderation
pipeline. Engines are written against these protocols only; `app.stores.sql`
is the SQLAlchemy adapter used in production and tests.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

from app.models import FriendRequest, Post, PostComment, Story, User
from app.schemas.friends import FriendRequestStatus, MarkDirection, PendingSets
from app.schemas.posts import ClassifierResult, Verdict
from app.schemas.users import UserRole


class IdentityStore(Protocol):
    async def find_by_id(self, user_id: str) -> Optional[User]: ...

    async def find_by_email(self, email: str) -> Optional[User]: ...

    async def find_many(self, user_ids: Sequence[str]) -> List[User]: ...

    async def create(self, name: str, email: str, password_hash: str, role: UserRole = UserRole.USER) -> Optional[User]:
        """Returns None when the email is already registered."""
        ...

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> bool: ...

    async def search_by_text(self, query: str, exclude_id: str, limit: int) -> List[User]: ...


class RelationshipStore(Protocol):
    async def are_friends(self, user_id: str, other_id: str) -> bool: ...

    async def friend_ids(self, user_id: str) -> Set[str]: ...

    async def pending_sets(self, user_id: str) -> PendingSets: ...

    async def has_mark(self, user_id: str, other_id: str, direction: MarkDirection) -> bool: ...

    async def add_mark_unless_friends(self, user_id: str, other_id: str, direction: MarkDirection) -> bool:
        """Insert one pending mark; False when the pair are friends or the mark already exists."""
        ...

    async def remove_mark(self, user_id: str, other_id: str, direction: MarkDirection) -> bool: ...

    async def remove_pair_marks(self, user_id: str, other_id: str) -> int:
        """Drop every pending mark between the two users, on both sides and in both directions."""
        ...

    async def create_pending_request(self, from_user_id: str, to_user_id: str) -> Optional[str]:
        """Returns the request id, or None when a pending request for the ordered pair exists."""
        ...

    async def find_pending_request(self, from_user_id: str, to_user_id: str) -> Optional[FriendRequest]: ...

    async def has_request_with_status(self, from_user_id: str, to_user_id: str, status: FriendRequestStatus) -> bool: ...

    async def list_pending_requests_to(self, user_id: str) -> List[FriendRequest]: ...

    async def transition_request(self, request_id: str, expected: FriendRequestStatus, new: FriendRequestStatus) -> bool:
        """Compare-and-set on the request status."""
        ...

    async def delete_pending_request(self, request_id: str) -> bool:
        """Delete the request only while it is still pending."""
        ...

    async def close_pending_request(self, request_id: str, from_user_id: str, to_user_id: str,
                                    new: FriendRequestStatus) -> bool:
        """Compare-and-set pending -> `new` and remove the request's two marks, atomically."""
        ...

    async def resolve_pending_between(self, user_id: str, other_id: str, new: FriendRequestStatus) -> int: ...

    async def add_friendship(self, user_id: str, other_id: str) -> None:
        """Insert both directed rows in one transaction. Existing rows are kept."""
        ...

    async def remove_friendship(self, user_id: str, other_id: str) -> bool: ...

    async def accepted_requests_needing_repair(self, limit: int) -> List[FriendRequest]: ...


class ContentStore(Protocol):
    async def create_post(self, author_id: str, content: str, media_url: str, verdict: Verdict) -> Post: ...

    async def get_post(self, post_id: str, with_comments: bool = False) -> Optional[Post]: ...

    async def list_posts_by_author(self, author_id: str) -> List[Post]: ...

    async def list_pending_posts(self, limit: int, author_id: Optional[str] = None) -> List[Post]: ...

    async def write_verdict(self, post_id: str, verdict: Verdict) -> bool: ...

    async def record_verdict_error(self, post_id: str, error: str) -> bool: ...

    async def add_like(self, post_id: str, user_id: str) -> bool: ...

    async def remove_like(self, post_id: str, user_id: str) -> bool: ...

    async def liked_post_ids(self, user_id: str, post_ids: Sequence[str]) -> Set[str]: ...

    async def add_comment(self, post_id: str, user_id: str, text: str) -> Optional[str]: ...

    async def find_comment(self, post_id: str, comment_id: str) -> Optional[PostComment]: ...

    async def delete_comment(self, post_id: str, comment_id: str, user_id: str) -> bool: ...


class StoryStore(Protocol):
    async def create_story(self, author_id: str, text: str, media_url: str, media_type: str,
                           created_at: datetime, expires_at: datetime) -> Story: ...

    async def get_story(self, story_id: str) -> Optional[Story]: ...

    async def active_stories(self, now: datetime) -> List[Story]: ...

    async def add_view(self, story_id: str, viewer_id: str) -> bool: ...

    async def delete_expired(self, now: datetime) -> int: ...


class BlobStore(Protocol):
    async def put(self, path_hint: str, data: bytes, content_type: str) -> str:
        """Store the bytes and return a retrievable URL."""
        ...


class Classifier(Protocol):
    async def classify(self, text: str) -> ClassifierResult: ...
