import asyncio

from app.schemas.common import ActionResult
from app.schemas.posts import ClassifierResult, ClientVerdict, Verdict, VerdictTag
from app.services.moderation_service import (
    NOT_APPLICABLE_SUMMARY,
    ModerationPipeline,
    is_not_applicable,
    normalize_client_verdict,
    score_to_percent,
    tag_for_status,
)
from app.utils.exceptions import ClassifierError

CLASSIFIED_TAGS = {
    VerdictTag.VERIFIED,
    VerdictTag.MISLEADING,
    VerdictTag.FALSE,
    VerdictTag.OUTDATED,
    VerdictTag.UNVERIFIED,
}

FACTUAL_CLAIM = "Local election results certified Tuesday, turnout 42%."


class TestHeuristics:
    """Posts skipped before reaching the classifier."""

    def test_personal_post_is_not_applicable(self):
        assert is_not_applicable("Happy birthday mom! ❤️")

    def test_numbers_are_a_factual_signal(self):
        assert not is_not_applicable(FACTUAL_CLAIM)

    def test_media_only_post(self):
        assert is_not_applicable("", "https://cdn.test/posts/u/1-cat.png")

    def test_long_text_without_signal_is_classified(self):
        text = "We spent the whole afternoon walking along the river and talking about the old days " * 2
        assert not is_not_applicable(text)


class TestVerdictMapping:
    def test_score_scale(self):
        assert score_to_percent(None) is None
        assert score_to_percent(0) == 0
        assert score_to_percent(2.5) == 50
        assert score_to_percent(3.33) == 67
        assert score_to_percent(5) == 100
        assert score_to_percent(9) == 100
        assert score_to_percent(-1) == 0

    def test_out_of_range_scores(self):
        assert score_to_percent(float("nan")) is None
        assert score_to_percent(float("inf")) is None
        assert score_to_percent(1e308) == 100
        assert score_to_percent(-1e308) == 0

    def test_status_tags(self):
        assert tag_for_status("Verified") == VerdictTag.VERIFIED
        assert tag_for_status("debunked") == VerdictTag.FALSE
        assert tag_for_status("something else") == VerdictTag.UNVERIFIED
        assert tag_for_status(None) == VerdictTag.UNVERIFIED

    def test_client_verdict_is_normalized(self):
        verdict = normalize_client_verdict(
            ClientVerdict(fact_check_status="misleading", credibility_score=3, summary="x" * 300)
        )
        assert verdict.tag == VerdictTag.MISLEADING
        assert verdict.score == 60
        assert len(verdict.summary) == 200

    def test_client_tag_used_when_status_missing(self):
        verdict = normalize_client_verdict(ClientVerdict(tag=VerdictTag.OUTDATED))
        assert verdict.tag == VerdictTag.OUTDATED
        assert normalize_client_verdict(ClientVerdict(tag=VerdictTag.PENDING)).tag == VerdictTag.UNVERIFIED


class TestCreatePost:
    async def test_factual_post_is_pending_then_classified(self, container, alice, classifier):
        created = await container.moderation.create_post(alice, FACTUAL_CLAIM)

        assert created.tag == VerdictTag.PENDING
        assert await container.runner.drain(timeout=5)

        post = await container.content.get_post(created.id)
        assert post.ai.tag in CLASSIFIED_TAGS
        assert post.ai.tag == VerdictTag.VERIFIED
        assert post.ai.score == 100
        assert classifier.calls == [FACTUAL_CLAIM]

    async def test_personal_post_becomes_not_applicable(self, container, alice, classifier):
        created = await container.moderation.create_post(alice, "Happy birthday mom! ❤️")

        assert created.tag == VerdictTag.PENDING
        await container.runner.drain(timeout=5)

        post = await container.content.get_post(created.id)
        assert post.ai.tag == VerdictTag.NOT_APPLICABLE
        assert post.ai.summary == NOT_APPLICABLE_SUMMARY
        assert post.ai.score is None
        assert classifier.calls == []

    async def test_validation(self, container, alice):
        pipeline = container.moderation
        assert await pipeline.create_post(alice, "   ", "") == ActionResult.failure("missing_content")
        assert (await pipeline.create_post(alice, "a" * 2001)).code == "text_too_long"

    async def test_media_only_post(self, container, alice):
        created = await container.moderation.create_post(alice, "", "https://cdn.test/posts/a/1-dog.jpg")
        assert created.media_url == "https://cdn.test/posts/a/1-dog.jpg"
        await container.runner.drain(timeout=5)
        post = await container.content.get_post(created.id)
        assert post.ai.tag == VerdictTag.NOT_APPLICABLE

    async def test_trusted_client_verdict_skips_analysis(self, container, alice, classifier):
        created = await container.moderation.create_post(
            alice, FACTUAL_CLAIM, client_verdict=ClientVerdict(fact_check_status="outdated", credibility_score=2)
        )

        assert created.tag == VerdictTag.OUTDATED
        assert container.runner.pending == 0
        post = await container.content.get_post(created.id)
        assert post.ai.score == 40
        assert classifier.calls == []

    async def test_huge_client_score_is_clamped(self, container, alice):
        created = await container.moderation.create_post(
            alice, FACTUAL_CLAIM, client_verdict=ClientVerdict(fact_check_status="verified", credibility_score=1e308)
        )

        post = await container.content.get_post(created.id)
        assert post.ai.tag == VerdictTag.VERIFIED
        assert post.ai.score == 100

    async def test_untrusted_client_verdict_is_ignored(self, container, alice, classifier):
        pipeline = ModerationPipeline(
            container.content_store, classifier, container.moderation.scheduler, trust_client_verdicts=False
        )
        created = await pipeline.create_post(
            alice, FACTUAL_CLAIM, client_verdict=ClientVerdict(fact_check_status="verified", credibility_score=5)
        )

        assert created.tag == VerdictTag.PENDING
        await container.runner.drain(timeout=5)
        assert classifier.calls == [FACTUAL_CLAIM]


class TestAnalysisFailures:
    async def test_classifier_error_leaves_post_pending(self, container, alice, classifier):
        classifier.error = ClassifierError("rate limited")

        created = await container.moderation.create_post(alice, FACTUAL_CLAIM)
        await container.runner.drain(timeout=5)

        post = await container.content_store.get_post(created.id)
        assert post.ai_tag == VerdictTag.PENDING
        assert post.ai_error == "rate limited"

    async def test_analyze_never_raises(self, container, classifier):
        classifier.error = RuntimeError("boom")
        verdict = await container.moderation.analyze(FACTUAL_CLAIM)
        assert verdict.tag == VerdictTag.PENDING
        assert verdict.error == "boom"

    async def test_non_finite_classifier_score(self, container, alice, classifier):
        classifier.result = ClassifierResult(fact_check_status="misleading", credibility_score=float("nan"))

        verdict = await container.moderation.analyze(FACTUAL_CLAIM)
        assert verdict.tag == VerdictTag.MISLEADING
        assert verdict.score is None

        created = await container.moderation.create_post(alice, FACTUAL_CLAIM)
        await container.runner.drain(timeout=5)
        post = await container.content.get_post(created.id)
        assert post.ai.tag == VerdictTag.MISLEADING
        assert post.ai.score is None

    async def test_error_does_not_overwrite_existing_tag(self, container, alice, classifier):
        created = await container.moderation.create_post(
            alice, FACTUAL_CLAIM, client_verdict=ClientVerdict(fact_check_status="verified", credibility_score=5)
        )
        classifier.error = ClassifierError("timeout")

        await container.moderation.analyze_and_store(created.id, FACTUAL_CLAIM)

        post = await container.content_store.get_post(created.id)
        assert post.ai_tag == VerdictTag.VERIFIED
        assert post.ai_error == "timeout"


class TestBackfill:
    async def test_reanalyses_pending_posts(self, container, alice, classifier):
        classifier.error = ClassifierError("down")
        created = await container.moderation.create_post(alice, FACTUAL_CLAIM)
        await container.runner.drain(timeout=5)

        classifier.error = None
        attempted = await container.moderation.backfill_pending(limit=5)

        assert attempted == 1
        post = await container.content.get_post(created.id)
        assert post.ai.tag == VerdictTag.VERIFIED

    async def test_listing_own_posts_backfills(self, container, alice, classifier):
        classifier.error = ClassifierError("down")
        await container.moderation.create_post(alice, FACTUAL_CLAIM)
        await container.runner.drain(timeout=5)
        classifier.error = None

        posts = await container.moderation.list_user_posts(alice, viewer_id=alice)

        assert [p.ai.tag for p in posts] == [VerdictTag.VERIFIED]

    async def test_concurrent_analysis_of_one_post_runs_once(self, container, alice, classifier):
        post = await container.content_store.create_post(alice, FACTUAL_CLAIM, "", Verdict.pending())
        classifier.gate = asyncio.Event()

        first = asyncio.create_task(container.moderation.analyze_and_store(post.id, FACTUAL_CLAIM))
        await asyncio.sleep(0)
        second = await container.moderation.analyze_and_store(post.id, FACTUAL_CLAIM)
        classifier.gate.set()
        verdict = await first

        assert second is None
        assert verdict.tag == VerdictTag.VERIFIED
        assert classifier.calls == [FACTUAL_CLAIM]

    async def test_verdict_write_is_last_writer_wins(self, container, alice):
        post = await container.content_store.create_post(alice, FACTUAL_CLAIM, "", Verdict.pending())
        pipeline = container.moderation

        assert await pipeline.update_post_ai(post.id, Verdict(tag=VerdictTag.MISLEADING, summary="a", score=60))
        assert await pipeline.update_post_ai(post.id, Verdict(tag=VerdictTag.FALSE, summary="b", score=0))

        stored = await container.content_store.get_post(post.id)
        assert (stored.ai_tag, stored.ai_summary, stored.ai_score) == (VerdictTag.FALSE, "b", 0)
        assert stored.ai_updated_at is not None

    async def test_update_missing_post(self, container):
        missing = "00000000-0000-0000-0000-000000000000"
        assert not await container.moderation.update_post_ai(missing, Verdict(tag=VerdictTag.VERIFIED))
