import asyncio
import uuid

import pytest
from sqlalchemy import event, select

from app.models import Friend
from app.schemas.common import ActionResult
from app.schemas.friends import FriendRequestStatus, MarkDirection
from app.services.friends_service import RelationshipEngine, clamp_limit, is_valid_id
from tests.conftest import create_user


async def befriend(engine: RelationshipEngine, a: str, b: str) -> None:
    assert (await engine.send_request(a, b)).ok
    assert (await engine.accept_request(b, a)).ok


class TestHelpers:
    def test_valid_ids_are_uuids(self):
        assert is_valid_id(str(uuid.uuid4()))
        assert not is_valid_id("not-a-uuid")
        assert not is_valid_id("")
        assert not is_valid_id(None)

    def test_limit_is_clamped(self):
        assert clamp_limit(None) == 10
        assert clamp_limit(0) == 10
        assert clamp_limit(-3) == 1
        assert clamp_limit(500) == 20


class TestSendRequest:
    async def test_marks_both_sides_pending(self, container, alice, bob):
        engine = container.relationships
        result = await engine.send_request(alice, bob)

        assert result.ok
        assert bob in (await engine.get_pending_request_sets(alice)).outgoing
        assert alice in (await engine.get_pending_request_sets(bob)).incoming
        assert bob not in await engine.get_friend_ids(alice)
        assert alice not in await engine.get_friend_ids(bob)

    async def test_self_request_fails_even_for_unknown_user(self, container):
        ghost = str(uuid.uuid4())
        result = await container.relationships.send_request(ghost, ghost)
        assert result == ActionResult.failure("self_request")

    async def test_malformed_id(self, container, alice):
        result = await container.relationships.send_request(alice, "bob")
        assert result.code == "invalid_id"

    async def test_unknown_target(self, container, alice):
        result = await container.relationships.send_request(alice, str(uuid.uuid4()))
        assert result.code == "target_not_found"

    async def test_second_request_is_rejected(self, container, alice, bob):
        engine = container.relationships
        assert (await engine.send_request(alice, bob)).ok
        assert (await engine.send_request(alice, bob)).code == "already_requested"

    async def test_request_to_friend_is_rejected(self, container, alice, bob):
        engine = container.relationships
        await befriend(engine, alice, bob)
        assert (await engine.send_request(alice, bob)).code == "already_friends"
        assert (await engine.send_request(bob, alice)).code == "already_friends"

    async def test_rolls_back_when_a_mark_write_fails(self, container, alice, bob, monkeypatch):
        store = container.relationship_store
        original = store.add_mark_unless_friends

        async def failing(user_id, other_id, direction):
            if direction == MarkDirection.INCOMING:
                raise RuntimeError("store unavailable")
            return await original(user_id, other_id, direction)

        monkeypatch.setattr(store, "add_mark_unless_friends", failing)

        with pytest.raises(RuntimeError):
            await container.relationships.send_request(alice, bob)

        assert await store.find_pending_request(alice, bob) is None
        assert not await store.has_mark(alice, bob, MarkDirection.OUTGOING)
        assert not await store.has_mark(bob, alice, MarkDirection.INCOMING)

    async def test_refused_mark_undoes_earlier_writes(self, container, alice, bob, monkeypatch):
        store = container.relationship_store
        original = store.add_mark_unless_friends

        async def refuse_incoming(user_id, other_id, direction):
            if direction == MarkDirection.INCOMING:
                return False
            return await original(user_id, other_id, direction)

        monkeypatch.setattr(store, "add_mark_unless_friends", refuse_incoming)

        result = await container.relationships.send_request(alice, bob)

        assert result.code == "already_requested"
        assert await store.find_pending_request(alice, bob) is None
        assert not await store.has_mark(alice, bob, MarkDirection.OUTGOING)

    async def test_accept_before_marks_land_keeps_the_request(self, container, alice, bob, monkeypatch):
        relationships = container.relationships
        store = container.relationship_store
        original = store.add_mark_unless_friends

        async def accept_first(user_id, other_id, direction):
            if direction == MarkDirection.OUTGOING:
                assert (await relationships.accept_request(bob, alice)).ok
            return await original(user_id, other_id, direction)

        monkeypatch.setattr(store, "add_mark_unless_friends", accept_first)

        assert (await relationships.send_request(alice, bob)).ok

        assert await store.has_request_with_status(alice, bob, FriendRequestStatus.ACCEPTED)
        assert await store.are_friends(alice, bob)
        assert not (await relationships.get_pending_request_sets(alice)).outgoing
        assert not (await relationships.get_pending_request_sets(bob)).incoming

    async def test_request_allowed_again_after_decline(self, container, alice, bob):
        engine = container.relationships
        await engine.send_request(alice, bob)
        assert (await engine.decline_request(bob, alice)).ok
        assert (await engine.send_request(alice, bob)).ok

    async def test_decline_blocks_new_request_when_configured(self, container, alice, bob):
        engine = RelationshipEngine(
            container.identity_store, container.relationship_store, allow_request_after_decline=False
        )
        await engine.send_request(alice, bob)
        await engine.decline_request(bob, alice)
        assert (await engine.send_request(alice, bob)).code == "previously_declined"


class TestAcceptRequest:
    async def test_creates_friendship_and_clears_pending(self, container, alice, bob):
        engine = container.relationships
        await engine.send_request(alice, bob)

        result = await engine.accept_request(bob, alice)

        assert result.ok
        assert bob in await engine.get_friend_ids(alice)
        assert alice in await engine.get_friend_ids(bob)
        for user, other in ((alice, bob), (bob, alice)):
            pending = await engine.get_pending_request_sets(user)
            assert other not in pending.incoming
            assert other not in pending.outgoing

    async def test_crossed_requests_resolve_together(self, container, alice, bob):
        engine = container.relationships
        await engine.send_request(alice, bob)
        await engine.send_request(bob, alice)

        assert (await engine.accept_request(bob, alice)).ok

        store = container.relationship_store
        assert await store.find_pending_request(bob, alice) is None
        for user in (alice, bob):
            pending = await engine.get_pending_request_sets(user)
            assert not pending.incoming and not pending.outgoing

    async def test_simultaneous_crossed_requests_make_one_friendship(self, container, session_factory, alice, bob):
        relationships = container.relationships
        sent = await asyncio.gather(relationships.send_request(alice, bob), relationships.send_request(bob, alice))
        assert all(result.ok for result in sent)

        accepted = await asyncio.gather(
            relationships.accept_request(bob, alice), relationships.accept_request(alice, bob)
        )
        assert any(result.ok for result in accepted)

        async with session_factory() as session:
            rows = [tuple(row) for row in await session.execute(select(Friend.user_id, Friend.friend_id))]
        assert sorted(rows) == sorted([(alice, bob), (bob, alice)])
        assert await relationships.get_friend_ids(alice) == {bob}
        assert not (await relationships.get_pending_request_sets(alice)).incoming
        assert not (await relationships.get_pending_request_sets(bob)).incoming
        assert await relationships.resume_accepted_requests() == 0

    async def test_without_pending_request(self, container, alice, bob):
        result = await container.relationships.accept_request(bob, alice)
        assert result.code == "no_pending_request"

    async def test_self_accept(self, container, alice):
        assert (await container.relationships.accept_request(alice, alice)).code == "self_accept"

    async def test_unknown_sender(self, container, bob):
        result = await container.relationships.accept_request(bob, str(uuid.uuid4()))
        assert result.code == "sender_not_found"

    async def test_accepting_twice(self, container, alice, bob):
        engine = container.relationships
        await befriend(engine, alice, bob)
        assert (await engine.accept_request(bob, alice)).code == "already_friends"

    async def test_friendship_failure_restores_pending(self, container, alice, bob, monkeypatch):
        engine = container.relationships
        store = container.relationship_store
        await engine.send_request(alice, bob)

        async def broken(user_id, other_id):
            raise RuntimeError("write failed")

        monkeypatch.setattr(store, "add_friendship", broken)

        with pytest.raises(RuntimeError):
            await engine.accept_request(bob, alice)

        request = await store.find_pending_request(alice, bob)
        assert request is not None
        assert request.status == FriendRequestStatus.PENDING
        assert not await store.are_friends(alice, bob)

    async def test_cleanup_failure_is_repaired_later(self, container, alice, bob, monkeypatch):
        engine = container.relationships
        store = container.relationship_store
        await engine.send_request(alice, bob)

        async def broken(user_id, other_id):
            raise RuntimeError("marks unavailable")

        with monkeypatch.context() as m:
            m.setattr(store, "remove_pair_marks", broken)
            assert (await engine.accept_request(bob, alice)).ok

        assert await store.are_friends(alice, bob)
        assert bob in (await engine.get_pending_request_sets(alice)).outgoing

        assert await engine.resume_accepted_requests() == 1
        assert not (await engine.get_pending_request_sets(alice)).outgoing
        assert not (await engine.get_pending_request_sets(bob)).incoming
        assert await engine.resume_accepted_requests() == 0


class TestResumeAcceptedRequests:
    async def test_writes_missing_friendship_rows(self, container, alice, bob):
        store = container.relationship_store
        request_id = await store.create_pending_request(alice, bob)
        await store.transition_request(request_id, FriendRequestStatus.PENDING, FriendRequestStatus.ACCEPTED)

        repaired = await container.relationships.resume_accepted_requests()

        assert repaired == 1
        assert await store.are_friends(alice, bob)
        assert await store.are_friends(bob, alice)

    async def test_removed_friends_stay_removed(self, container, alice, bob):
        engine = container.relationships
        await befriend(engine, alice, bob)
        assert (await engine.remove_friend(alice, bob)).ok

        assert await engine.resume_accepted_requests() == 0
        assert bob not in await engine.get_friend_ids(alice)


class TestDeclineAndCancel:
    async def test_decline_clears_marks(self, container, alice, bob):
        engine = container.relationships
        await engine.send_request(alice, bob)

        assert (await engine.decline_request(bob, alice)).ok

        assert not (await engine.get_pending_request_sets(alice)).outgoing
        assert not (await engine.get_pending_request_sets(bob)).incoming
        assert await container.relationship_store.has_request_with_status(
            alice, bob, FriendRequestStatus.DECLINED
        )

    async def test_cancel_by_sender(self, container, alice, bob):
        engine = container.relationships
        await engine.send_request(alice, bob)

        assert (await engine.cancel_request(alice, bob)).ok
        assert (await engine.cancel_request(alice, bob)).code == "no_pending_request"
        assert (await engine.send_request(alice, bob)).ok

    async def test_failed_mark_cleanup_keeps_request_pending(self, container, engine, alice, bob):
        relationships = container.relationships
        store = container.relationship_store
        await relationships.send_request(alice, bob)

        def fail_mark_delete(conn, cursor, statement, parameters, context, executemany):
            if statement.startswith("DELETE FROM friend_request_marks"):
                raise RuntimeError("marks unavailable")

        event.listen(engine.sync_engine, "before_cursor_execute", fail_mark_delete)
        try:
            with pytest.raises(RuntimeError):
                await relationships.decline_request(bob, alice)
        finally:
            event.remove(engine.sync_engine, "before_cursor_execute", fail_mark_delete)

        assert await store.find_pending_request(alice, bob) is not None
        assert bob in (await relationships.get_pending_request_sets(alice)).outgoing
        assert alice in (await relationships.get_pending_request_sets(bob)).incoming

        assert (await relationships.decline_request(bob, alice)).ok
        assert not (await relationships.get_pending_request_sets(alice)).outgoing
        assert not (await relationships.get_pending_request_sets(bob)).incoming
        assert (await relationships.send_request(alice, bob)).ok

    async def test_self_codes(self, container, alice):
        engine = container.relationships
        assert (await engine.decline_request(alice, alice)).code == "self_decline"
        assert (await engine.cancel_request(alice, alice)).code == "self_cancel"


class TestRemoveFriend:
    async def test_removes_both_directions(self, container, alice, bob):
        engine = container.relationships
        await befriend(engine, alice, bob)

        assert (await engine.remove_friend(bob, alice)).ok
        assert not await engine.get_friend_ids(alice)
        assert not await engine.get_friend_ids(bob)
        assert (await engine.send_request(alice, bob)).ok

    async def test_not_friends(self, container, alice, bob):
        engine = container.relationships
        assert (await engine.remove_friend(alice, bob)).code == "not_friends"
        assert (await engine.remove_friend(alice, alice)).code == "self_remove"


class TestSearchUsers:
    async def test_annotates_relation(self, container, alice, bob, carol):
        engine = container.relationships
        dave = await create_user(container, "Dave")
        await befriend(engine, alice, bob)
        await engine.send_request(alice, carol)
        await engine.send_request(dave, alice)

        results = await engine.search_users("example.com", alice)

        by_id = {r.id: r for r in results}
        assert alice not in by_id
        assert by_id[bob].is_friend
        assert by_id[carol].outgoing_pending and not by_id[carol].is_friend
        assert by_id[dave].incoming_pending

    async def test_matches_name_case_insensitively(self, container, alice, bob):
        results = await container.relationships.search_users("BO", alice)
        assert [r.id for r in results] == [bob]

    async def test_short_query(self, container, alice):
        result = await container.relationships.search_users(" a ", alice)
        assert result == ActionResult.failure("invalid_query")

    async def test_wildcards_are_literal(self, container, alice, bob):
        assert await container.relationships.search_users("%%", alice) == []

    async def test_limit(self, container, alice):
        for i in range(25):
            await create_user(container, f"Member{i}")
        results = await container.relationships.search_users("member", alice, limit=100)
        assert len(results) == 20


class TestQueries:
    async def test_incoming_requests_and_relation(self, container, alice, bob, carol):
        engine = container.relationships
        await engine.send_request(alice, carol)
        await engine.send_request(bob, carol)

        incoming = await engine.list_incoming_requests(carol)
        assert {r.from_user.id for r in incoming} == {alice, bob}

        relation = await engine.relation_between(carol, alice)
        assert relation.incoming_pending and not relation.outgoing_pending and not relation.is_friend
        assert (await engine.relation_between(alice, carol)).outgoing_pending
