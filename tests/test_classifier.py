import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from app.services.classifier_service import CREDIBILITY_INSTRUCTIONS, CredibilityClassifier
from app.utils.exceptions import ClassifierError


class FakeCompletions:
    """Stands in for `client.chat.completions`; replays queued replies or raises queued errors."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_classifier(completions: FakeCompletions, max_attempts: int = 3) -> CredibilityClassifier:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return CredibilityClassifier(client=client, model="test-model", max_attempts=max_attempts, backoff_seconds=0)


class TestCredibilityClassifier:
    async def test_parses_and_normalizes_reply(self):
        completions = FakeCompletions(json.dumps({
            "fact_check_status": " Misleading ",
            "credibility_score": 3,
            "summary": "Partly true.",
            "sources": [f"https://example.org/{i}" for i in range(8)],
        }))

        result = await make_classifier(completions).classify("Bridge closed all week")

        assert result.fact_check_status == "misleading"
        assert result.credibility_score == 3
        assert len(result.sources) == 5

        request = completions.requests[0]
        assert request["model"] == "test-model"
        assert request["response_format"] == {"type": "json_object"}
        assert request["messages"][0]["content"] == CREDIBILITY_INSTRUCTIONS
        assert "Bridge closed all week" in request["messages"][1]["content"]

    async def test_retries_transient_failures(self):
        completions = FakeCompletions(
            OpenAIError("overloaded"),
            json.dumps({"fact_check_status": "verified", "credibility_score": 5, "summary": "ok"}),
        )

        result = await make_classifier(completions).classify("claim")

        assert result.fact_check_status == "verified"
        assert len(completions.requests) == 2

    async def test_gives_up_after_last_attempt(self):
        completions = FakeCompletions(OpenAIError("down"), OpenAIError("down"))

        with pytest.raises(ClassifierError, match="down"):
            await make_classifier(completions, max_attempts=2).classify("claim")
        assert len(completions.requests) == 2

    async def test_malformed_reply_is_a_classifier_error(self):
        completions = FakeCompletions("not json", "[1, 2]")

        with pytest.raises(ClassifierError):
            await make_classifier(completions, max_attempts=2).classify("claim")
