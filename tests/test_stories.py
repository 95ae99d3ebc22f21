from datetime import timedelta

from app.services.story_service import STORY_TTL, derive_media_type
from app.utils.time_utils import ensure_aware, utcnow


class TestMediaType:
    def test_derived_from_url_path(self):
        assert derive_media_type("") == "none"
        assert derive_media_type(None) == "none"
        assert derive_media_type("https://cdn.test/stories/u/1-clip.MP4?sig=abc") == "video"
        assert derive_media_type("https://cdn.test/stories/u/1-photo.jpg") == "image"


class TestStories:
    async def test_create_sets_expiry(self, container, alice):
        before = utcnow()
        created = await container.stories.create_story(alice, "At the beach", "")

        assert created.id
        assert before + STORY_TTL <= ensure_aware(created.expires_at) <= utcnow() + STORY_TTL

    async def test_validation(self, container, alice):
        assert (await container.stories.create_story(alice, " ", None)).code == "missing_content"
        assert (await container.stories.create_story(alice, "x" * 301, None)).code == "text_too_long"

    async def test_feed_groups_by_author(self, container, alice, bob):
        stories = container.stories
        first = await stories.create_story(alice, "one", "")
        await stories.create_story(bob, "", "https://cdn.test/stories/b/1-clip.webm")
        latest = await stories.create_story(alice, "two", "")

        feed = await stories.feed()

        assert [group.user.id for group in feed] == [alice, bob]
        assert [item.id for item in feed[0].items] == [latest.id, first.id]
        assert feed[1].items[0].media_type == "video"

    async def test_expired_stories_are_hidden_and_purged(self, container, alice, bob):
        now = utcnow()
        expired = await container.story_store.create_story(
            alice, "old", "", "none", now - timedelta(hours=30), now - timedelta(hours=6)
        )
        await container.stories.create_story(bob, "fresh", "")

        feed = await container.stories.feed()
        assert [group.user.id for group in feed] == [bob]
        assert (await container.stories.mark_viewed(expired.id, bob)).code == "not_found"

        assert await container.stories.purge_expired() == 1
        assert await container.story_store.get_story(expired.id) is None

    async def test_views_counted_once_per_viewer(self, container, alice, bob, carol):
        created = await container.stories.create_story(alice, "hello", "")

        for viewer in (bob, bob, carol):
            assert (await container.stories.mark_viewed(created.id, viewer)).ok

        story = await container.story_store.get_story(created.id)
        assert story.views_count == 2

    async def test_view_missing_story(self, container, bob):
        assert (await container.stories.mark_viewed("missing", bob)).code == "not_found"
