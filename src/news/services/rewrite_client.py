"""
Rewrite Client
Rewrites article titles and descriptions through an OpenAI-compatible
chat-completion service. Owns the rate-limit retry policy.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
import structlog

from ...core.retry import Sleep, retry_on_rate_limit
from ...exceptions import BatchAlignmentError, RewriteServiceError
from ...utils.string_utils import strip_code_fences, truncate_text
from ..models.article import DEFAULT_TITLE, RewrittenArticle
from ..prompts import SYSTEM_PROMPT, build_batch_prompt, build_single_prompt

logger = structlog.get_logger(__name__)

FALLBACK_TITLE_LENGTH = 100


@dataclass
class ParseResult:
    """Outcome of parsing a rewrite response; the fallback branch is explicit."""
    value: Any
    used_fallback: bool
    reason: Optional[str] = None


def _load_json(raw: str) -> Any:
    return json.loads(strip_code_fences(raw or ""))


def fallback_rewrite(
    title: Optional[str] = None,
    description: Optional[str] = None,
    raw_text: Optional[str] = None
) -> RewrittenArticle:
    fallback_title = (
        (title or "").strip()
        or truncate_text((raw_text or "").strip(), FALLBACK_TITLE_LENGTH)
        or truncate_text((description or "").strip(), FALLBACK_TITLE_LENGTH)
        or DEFAULT_TITLE
    )
    return RewrittenArticle(title=fallback_title, description=description or "")


def parse_rewrite_response(
    raw: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    raw_text: Optional[str] = None
) -> ParseResult:
    try:
        data = _load_json(raw)
    except json.JSONDecodeError as e:
        return ParseResult(fallback_rewrite(title, description, raw_text), True, f"invalid JSON: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("title"), str):
        return ParseResult(fallback_rewrite(title, description, raw_text), True, "expected an object with a title")

    fallback = fallback_rewrite(title, description, raw_text)
    rewritten = RewrittenArticle(
        title=data["title"].strip() or fallback.title,
        description=str(data.get("description") or "").strip(),
    )
    return ParseResult(rewritten, False)


def parse_batch_response(raw: str, items: List[Dict[str, str]]) -> ParseResult:
    """
    Parse a batch response. Unparseable output echoes the input items unchanged.

    Raises:
        BatchAlignmentError: the parsed array length differs from the request
    """
    echoed = [
        RewrittenArticle(title=item.get("title") or "", description=item.get("description") or "")
        for item in items
    ]
    try:
        data = _load_json(raw)
    except json.JSONDecodeError as e:
        return ParseResult(echoed, True, f"invalid JSON: {e}")

    if not isinstance(data, list) or not all(isinstance(entry, dict) for entry in data):
        return ParseResult(echoed, True, "expected an array of objects")

    if len(data) != len(items):
        raise BatchAlignmentError(expected=len(items), received=len(data))

    rewritten = [
        RewrittenArticle(
            title=str(entry.get("title") or "").strip(),
            description=str(entry.get("description") or "").strip(),
        )
        for entry in data
    ]
    return ParseResult(rewritten, False)


class RewriteClient:
    """Single and batched rewrites with bounded exponential backoff on HTTP 429"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_name: str = "gpt-3.5-turbo-0125",
        temperature: float = 0.5,
        max_tokens: int = 2000,
        max_retries: int = 3,
        base_delay: float = 1.5,
        timeout: float = 60.0,
        client: Optional[openai.AsyncOpenAI] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep
        # SDK retries off: this client owns the retry policy
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def _request_completion(self, user_prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt}
                ]
            )
        except openai.RateLimitError:
            raise
        except openai.APIError as e:
            raise RewriteServiceError(f"Rewrite request failed: {e}", details={"error": str(e)}) from e

        if not response.choices:
            raise RewriteServiceError("Rewrite service returned no choices")
        return response.choices[0].message.content or ""

    async def _complete(self, user_prompt: str) -> str:
        return await retry_on_rate_limit(
            lambda: self._request_completion(user_prompt),
            rate_limit_errors=(openai.RateLimitError,),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self.sleep,
        )

    async def rewrite(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        raw_text: Optional[str] = None
    ) -> RewrittenArticle:
        prompt = build_single_prompt(title, description, raw_text)
        content = await self._complete(prompt)

        result = parse_rewrite_response(content, title, description, raw_text)
        if result.used_fallback:
            logger.warning("Rewrite service returned unusable output, using fallback", reason=result.reason)
        return result.value

    async def rewrite_batch(self, items: List[Dict[str, str]]) -> List[RewrittenArticle]:
        if not items:
            return []

        prompt = build_batch_prompt(items)
        content = await self._complete(prompt)

        result = parse_batch_response(content, items)
        if result.used_fallback:
            logger.warning("Rewrite batch returned unusable output, echoing input", reason=result.reason, count=len(items))
        else:
            logger.info("Rewrite batch completed", count=len(items), model=self.model_name)
        return result.value
