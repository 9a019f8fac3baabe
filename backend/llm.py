"""
Completion collaborator: a prompt goes in, the model's raw text comes out.
Provider failures are translated into the application's error taxonomy here so
the parser and summary generator never see provider-specific exceptions.
"""
import logging
from typing import Awaitable, Callable

import anthropic

import config
from errors import (
    AppError,
    InternalError,
    UpstreamAuthFailed,
    UpstreamNetworkError,
    UpstreamParseFailed,
    UpstreamRateLimited,
)

logger = logging.getLogger(__name__)

Completion = Callable[[str], Awaitable[str]]

_client: anthropic.AsyncAnthropic | None = None


def get_client() -> anthropic.AsyncAnthropic:
    global _client
    if _client is None:
        # No automatic retries; the UI offers a manual retry instead
        _client = anthropic.AsyncAnthropic(
            api_key=config.ANTHROPIC_API_KEY,
            timeout=config.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return _client


def classify_provider_error(error: Exception) -> AppError:
    """Map a provider failure onto rate-limit, auth, parse, network or internal errors."""
    if isinstance(error, AppError):
        return error
    if isinstance(error, anthropic.RateLimitError):
        return UpstreamRateLimited()
    if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return UpstreamAuthFailed()
    if isinstance(error, (anthropic.APITimeoutError, anthropic.APIConnectionError)):
        return UpstreamNetworkError()

    text = str(error).lower()
    if "quota" in text or "rate limit" in text or "429" in text:
        return UpstreamRateLimited()
    if "api_key" in text or "api key" in text or "authentication" in text or "401" in text:
        return UpstreamAuthFailed()
    if "json" in text:
        return UpstreamParseFailed()
    if "network" in text or "timeout" in text or "fetch" in text or "connection" in text:
        return UpstreamNetworkError()
    return InternalError("AI 처리 중 오류가 발생했습니다. 잠시 후 다시 시도해주세요.")


async def complete(prompt: str, max_tokens: int = config.LLM_PARSE_MAX_TOKENS) -> str:
    """Send a single-turn prompt and return the concatenated text blocks."""
    if not config.ANTHROPIC_API_KEY or config.ANTHROPIC_API_KEY == "your-api-key-here":
        raise UpstreamAuthFailed("AI 서비스 API 키가 설정되지 않았습니다.")

    try:
        response = await get_client().messages.create(
            model=config.LLM_MODEL,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as e:
        logger.error(f"Completion request failed: {e}")
        raise classify_provider_error(e) from e

    text = "".join(block.text for block in response.content if block.type == "text")
    logger.debug(f"Completion response: {text}")
    return text
