import logging
import uuid
from typing import Awaitable, Callable, List, Optional, Set, Union

from app.config import settings
from app.schemas.common import ActionResult
from app.schemas.friends import (
    FriendRequestStatus,
    MarkDirection,
    PendingSets,
    Relation,
    UserSearchResult,
)
from app.schemas.users import IncomingRequest, PublicUser
from app.stores.contracts import IdentityStore, RelationshipStore

# Configure logging for this module
logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 20
MIN_QUERY_LENGTH = 2

Undo = Callable[[], Awaitable[object]]


def is_valid_id(value: Optional[str]) -> bool:
    if not value or not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def clamp_limit(limit: Optional[int]) -> int:
    return max(1, min(MAX_SEARCH_LIMIT, int(limit or DEFAULT_SEARCH_LIMIT)))


class RelationshipEngine:
    """
    Friend request state machine.

    A pending request a -> b lives in three places: the request record (the
    durability anchor), a's outgoing mark and b's incoming mark. Writes that
    span them are ordered so that a failure can be undone in reverse order,
    and accepted requests can be replayed by `resume_accepted_requests`.
    """

    def __init__(self, identity: IdentityStore, relationships: RelationshipStore,
                 allow_request_after_decline: Optional[bool] = None):
        self.identity = identity
        self.relationships = relationships
        if allow_request_after_decline is None:
            allow_request_after_decline = settings.allow_request_after_decline
        self.allow_request_after_decline = allow_request_after_decline

    async def _compensate(self, undo: List[Undo]) -> None:
        for step in reversed(undo):
            try:
                await step()
            except Exception:
                logger.exception("Compensation step failed; relationship state may need repair")

    async def _conflict_code(self, sender_id: str, receiver_id: str) -> str:
        if await self.relationships.are_friends(sender_id, receiver_id):
            return "already_friends"
        return "already_requested"

    async def _abandon_send(self, undo: List[Undo], request_id: str, sender_id: str, receiver_id: str) -> ActionResult:
        await self._compensate(undo[1:])
        if not await self.relationships.delete_pending_request(request_id):
            # Answered by the receiver before its marks landed
            logger.info(f"Friend request {request_id} was resolved while being sent: {sender_id} -> {receiver_id}")
            return ActionResult.success()
        return ActionResult.failure(await self._conflict_code(sender_id, receiver_id))

    async def send_request(self, sender_id: str, receiver_id: str) -> ActionResult:
        """
        Send a friend request from sender to receiver.

        Args:
            sender_id: ID of the authenticated caller
            receiver_id: ID of the user being asked

        Returns:
            ActionResult: ok, or one of invalid_id, self_request, target_not_found,
            already_friends, already_requested, previously_declined
        """
        if not is_valid_id(sender_id) or not is_valid_id(receiver_id):
            return ActionResult.failure("invalid_id")
        if sender_id == receiver_id:
            return ActionResult.failure("self_request")

        if await self.identity.find_by_id(receiver_id) is None:
            return ActionResult.failure("target_not_found")
        if await self.relationships.are_friends(sender_id, receiver_id):
            return ActionResult.failure("already_friends")
        if await self.relationships.has_mark(sender_id, receiver_id, MarkDirection.OUTGOING):
            return ActionResult.failure("already_requested")
        if not self.allow_request_after_decline and await self.relationships.has_request_with_status(
            sender_id, receiver_id, FriendRequestStatus.DECLINED
        ):
            return ActionResult.failure("previously_declined")

        request_id = await self.relationships.create_pending_request(sender_id, receiver_id)
        if request_id is None:
            return ActionResult.failure(await self._conflict_code(sender_id, receiver_id))

        undo: List[Undo] = [lambda: self.relationships.delete_pending_request(request_id)]
        try:
            if not await self.relationships.add_mark_unless_friends(sender_id, receiver_id, MarkDirection.OUTGOING):
                return await self._abandon_send(undo, request_id, sender_id, receiver_id)
            undo.append(lambda: self.relationships.remove_mark(sender_id, receiver_id, MarkDirection.OUTGOING))

            if not await self.relationships.add_mark_unless_friends(receiver_id, sender_id, MarkDirection.INCOMING):
                return await self._abandon_send(undo, request_id, sender_id, receiver_id)
        except Exception:
            logger.error(f"Friend request {sender_id} -> {receiver_id} failed mid-write, rolling back")
            await self._compensate(undo)
            raise

        logger.info(f"Friend request {request_id} sent: {sender_id} -> {receiver_id}")
        return ActionResult.success()

    async def _clear_after_accept(self, sender_id: str, receiver_id: str) -> None:
        await self.relationships.remove_pair_marks(sender_id, receiver_id)
        await self.relationships.resolve_pending_between(sender_id, receiver_id, FriendRequestStatus.ACCEPTED)

    async def accept_request(self, receiver_id: str, sender_id: str) -> ActionResult:
        """
        Accept the pending request sender -> receiver.

        The request status flips to accepted first; both friendship rows are then
        written in one transaction. If that write fails the status is put back to
        pending and the error propagates.
        """
        if not is_valid_id(sender_id) or not is_valid_id(receiver_id):
            return ActionResult.failure("invalid_id")
        if sender_id == receiver_id:
            return ActionResult.failure("self_accept")
        if await self.identity.find_by_id(sender_id) is None:
            return ActionResult.failure("sender_not_found")
        if await self.relationships.are_friends(receiver_id, sender_id):
            return ActionResult.failure("already_friends")

        pending = await self.relationships.find_pending_request(sender_id, receiver_id)
        if pending is None:
            return ActionResult.failure("no_pending_request")
        if not await self.relationships.transition_request(
            pending.id, FriendRequestStatus.PENDING, FriendRequestStatus.ACCEPTED
        ):
            return ActionResult.failure("no_pending_request")

        try:
            await self.relationships.add_friendship(sender_id, receiver_id)
        except Exception:
            logger.error(f"Could not write friendship for request {pending.id}, restoring it to pending")
            await self._compensate([
                lambda: self.relationships.transition_request(
                    pending.id, FriendRequestStatus.ACCEPTED, FriendRequestStatus.PENDING
                )
            ])
            raise

        try:
            await self._clear_after_accept(sender_id, receiver_id)
        except Exception:
            # Friendship is committed; the accepted request lets the repair sweep finish the cleanup
            logger.exception(f"Pending cleanup failed after accepting request {pending.id}")

        logger.info(f"Friend request {pending.id} accepted: {sender_id} <-> {receiver_id}")
        return ActionResult.success()

    async def _close_request(self, sender_id: str, receiver_id: str, new: FriendRequestStatus) -> ActionResult:
        pending = await self.relationships.find_pending_request(sender_id, receiver_id)
        if pending is None:
            return ActionResult.failure("no_pending_request")
        if not await self.relationships.close_pending_request(pending.id, sender_id, receiver_id, new):
            return ActionResult.failure("no_pending_request")
        logger.info(f"Friend request {pending.id} {new.value}: {sender_id} -> {receiver_id}")
        return ActionResult.success()

    async def decline_request(self, receiver_id: str, sender_id: str) -> ActionResult:
        if not is_valid_id(sender_id) or not is_valid_id(receiver_id):
            return ActionResult.failure("invalid_id")
        if sender_id == receiver_id:
            return ActionResult.failure("self_decline")
        if await self.identity.find_by_id(sender_id) is None:
            return ActionResult.failure("sender_not_found")
        return await self._close_request(sender_id, receiver_id, FriendRequestStatus.DECLINED)

    async def cancel_request(self, sender_id: str, receiver_id: str) -> ActionResult:
        """Withdraw a request the caller sent."""
        if not is_valid_id(sender_id) or not is_valid_id(receiver_id):
            return ActionResult.failure("invalid_id")
        if sender_id == receiver_id:
            return ActionResult.failure("self_cancel")
        return await self._close_request(sender_id, receiver_id, FriendRequestStatus.CANCELLED)

    async def remove_friend(self, user_id: str, friend_id: str) -> ActionResult:
        if not is_valid_id(user_id) or not is_valid_id(friend_id):
            return ActionResult.failure("invalid_id")
        if user_id == friend_id:
            return ActionResult.failure("self_remove")
        if not await self.relationships.are_friends(user_id, friend_id):
            return ActionResult.failure("not_friends")
        await self.relationships.remove_friendship(user_id, friend_id)
        logger.info(f"Friendship removed: {user_id} <-> {friend_id}")
        return ActionResult.success()

    async def search_users(self, query: Optional[str], caller_id: str,
                           limit: Optional[int] = DEFAULT_SEARCH_LIMIT) -> Union[ActionResult, List[UserSearchResult]]:
        """
        Case-insensitive substring search over name and email, excluding the caller.

        Each hit is annotated with the caller's relation to it, computed from a
        single friend-set and pending-set snapshot.
        """
        q = (query or "").strip()
        if len(q) < MIN_QUERY_LENGTH:
            return ActionResult.failure("invalid_query")
        if not is_valid_id(caller_id):
            return ActionResult.failure("invalid_id")

        users = await self.identity.search_by_text(q, caller_id, clamp_limit(limit))
        friend_ids = await self.relationships.friend_ids(caller_id)
        pending = await self.relationships.pending_sets(caller_id)

        return [
            UserSearchResult(
                id=user.id,
                name=user.name or "",
                email=user.email,
                picture=user.picture_url,
                description=user.description or "",
                is_friend=user.id in friend_ids,
                incoming_pending=user.id in pending.incoming,
                outgoing_pending=user.id in pending.outgoing,
            )
            for user in users
        ]

    async def get_friend_ids(self, user_id: str) -> Set[str]:
        return await self.relationships.friend_ids(user_id)

    async def get_pending_request_sets(self, user_id: str) -> PendingSets:
        return await self.relationships.pending_sets(user_id)

    async def relation_between(self, viewer_id: str, other_id: str) -> Relation:
        if viewer_id == other_id:
            return Relation()
        friend_ids = await self.relationships.friend_ids(viewer_id)
        pending = await self.relationships.pending_sets(viewer_id)
        return Relation(
            is_friend=other_id in friend_ids,
            incoming_pending=other_id in pending.incoming,
            outgoing_pending=other_id in pending.outgoing,
        )

    async def list_incoming_requests(self, user_id: str) -> List[IncomingRequest]:
        requests = await self.relationships.list_pending_requests_to(user_id)
        senders = {u.id: u for u in await self.identity.find_many([r.from_user_id for r in requests])}
        return [
            IncomingRequest(
                id=r.id,
                from_user=PublicUser.model_validate(senders[r.from_user_id]),
                created_at=r.created_at,
            )
            for r in requests
            if r.from_user_id in senders
        ]

    async def resume_accepted_requests(self, limit: int = 100) -> int:
        """
        Replay the tail of accept for requests whose friendship rows or pending
        marks are out of step with their accepted status.

        Returns:
            int: number of requests repaired
        """
        repaired = 0
        for request in await self.relationships.accepted_requests_needing_repair(limit):
            try:
                await self.relationships.add_friendship(request.from_user_id, request.to_user_id)
                await self._clear_after_accept(request.from_user_id, request.to_user_id)
                repaired += 1
            except Exception:
                logger.exception(f"Could not repair accepted request {request.id}")
        if repaired:
            logger.info(f"Repaired {repaired} accepted friend requests")
        return repaired
