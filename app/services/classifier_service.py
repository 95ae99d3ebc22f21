import json
import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings
from app.schemas.posts import ClassifierResult
from app.utils.exceptions import ClassifierError

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

CREDIBILITY_INSTRUCTIONS = """
You are a strict fact-checker for a social app.

Return ONLY a JSON object with the keys "fact_check_status", "credibility_score",
"summary" and "sources".

SCORING RULES (mandatory):
- verified    => credibility_score MUST be 5
- misleading  => credibility_score MUST be 3
- outdated    => credibility_score MUST be 2
- unverified  => credibility_score MUST be 1
- debunked    => credibility_score MUST be 0

STATUS RULES:
- "verified" only if multiple reliable sources clearly support the claim (or one authoritative primary source).
- "debunked" if reliable sources clearly contradict the claim.
- "outdated" if it used to be true but is no longer true.
- "misleading" if partly true but missing key context, cherry-picked, or phrased to imply something false.
- "unverified" if sources are insufficient, conflicting, or not reputable.

"summary" is one or two sentences. "sources" lists up to 5 URLs you relied on.
"""


def build_llm_client(provider: Optional[str] = None) -> AsyncOpenAI:
    provider = provider or settings.llm_provider
    if provider == "groq":
        return AsyncOpenAI(
            base_url=GROQ_BASE_URL,
            api_key=settings.groq_api_key.get_secret_value(),
            timeout=settings.classifier_timeout_seconds,
        )
    return AsyncOpenAI(
        api_key=settings.openai_api_key.get_secret_value(),
        timeout=settings.classifier_timeout_seconds,
    )


class CredibilityClassifier:
    """
    Credibility classifier on top of an OpenAI-compatible chat completions API.

    Transient failures are retried with exponential backoff; anything still
    failing after the last attempt surfaces as ClassifierError.
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None,
                 max_attempts: Optional[int] = None, backoff_seconds: float = 1.0):
        self._client = client
        self.model = model or settings.moderation_model
        self._request = retry(
            stop=stop_after_attempt(max_attempts or settings.classifier_max_attempts),
            wait=wait_exponential(multiplier=backoff_seconds, max=10),
            retry=retry_if_exception_type((OpenAIError, ValueError)),
            reraise=True,
        )(self._request_once)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_llm_client()
        return self._client

    async def _request_once(self, text: str) -> ClassifierResult:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": CREDIBILITY_INSTRUCTIONS},
                {"role": "user", "content": f"Claim: {text}"},
            ],
            response_format={"type": "json_object"},
            temperature=0,
        )
        content = response.choices[0].message.content or "{}"
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Classifier returned a non-object payload")
        data["fact_check_status"] = str(data.get("fact_check_status", "")).strip().lower()
        data["sources"] = [str(s) for s in (data.get("sources") or [])][:5]
        data["summary"] = str(data.get("summary") or "")
        return ClassifierResult.model_validate(data)

    async def classify(self, text: str) -> ClassifierResult:
        try:
            return await self._request(text)
        except (OpenAIError, ValueError) as e:
            logger.warning(f"Credibility classifier failed: {e}")
            raise ClassifierError(str(e) or e.__class__.__name__) from e
