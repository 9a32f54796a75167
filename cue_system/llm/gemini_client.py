"""Gemini API client with exponential backoff and rate limiting."""

import asyncio
import functools
import json
import random
import re
from typing import Any, Callable, Optional

import google.generativeai as genai
from google.generativeai.types.generation_types import BlockedPromptException
from loguru import logger

from cue_system.config.settings import settings
from cue_system.llm.rate_limiter import RateLimiter, get_shared_rate_limiter


def _exponential_backoff(func: Callable) -> Callable:
    """
    Decorator implementing exponential backoff with jitter for async API calls.

    Retries failed requests up to 5 times with exponentially increasing delays.
    Base delay: 1.0s, exponential factor: 2, jitter: 0-10% of delay.
    Blocked prompts are not retried.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Any:
        max_retries = 5
        base_delay = 1.0

        for retry in range(max_retries):
            try:
                return await func(*args, **kwargs)
            except BlockedPromptException:
                raise
            except Exception as e:
                if retry == max_retries - 1:
                    logger.error(f"Max retries exceeded for {func.__name__}: {e}")
                    raise

                delay = base_delay * (2 ** retry)
                jitter = random.uniform(0, delay * 0.1)
                total_delay = delay + jitter

                logger.warning(
                    f"Retry {retry + 1}/{max_retries} for {func.__name__} "
                    f"after {total_delay:.2f}s: {e}"
                )
                await asyncio.sleep(total_delay)

        raise RuntimeError(f"Unexpected retry loop exit in {func.__name__}")

    return wrapper


def extract_json_object(response_text: str) -> Optional[dict]:
    """
    Extract a JSON object from an LLM response, handling markdown blocks.

    Args:
        response_text: Raw response text from LLM.

    Returns:
        Parsed JSON object, or None if parsing fails.
    """
    text = (response_text or "").strip()

    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if json_match:
        text = json_match.group(1).strip()

    object_match = re.search(r"\{[\s\S]*\}", text)
    if object_match:
        text = object_match.group(0)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"JSON parse error: {e}")
        return None
    return parsed if isinstance(parsed, dict) else None


class GeminiClient:
    """
    Google Gemini API client with rate limiting and error handling.

    Attributes:
        model_name: Gemini model identifier
        rate_limiter: Shared RPM/TPM limiter
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Raises:
            ValueError: If API key is not configured
        """
        key = api_key or settings.gemini_api_key
        if not key:
            raise ValueError("GEMINI_API_KEY not configured in environment")

        genai.configure(api_key=key)
        self.model_name = model_name or settings.gemini_model
        self.rate_limiter = rate_limiter or get_shared_rate_limiter()

        logger.bind(component="GeminiClient").info(
            f"Gemini client initialized with model {self.model_name}"
        )

    @_exponential_backoff
    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
    ) -> str:
        """
        Generate content from Gemini API with exponential backoff.

        Args:
            prompt: Input prompt for content generation
            system_instruction: Optional system prompt
            temperature: Sampling temperature (0.0-1.0). Lower = more deterministic

        Returns:
            Generated text content
        """
        # Rough estimate: ~4 characters per token
        await self.rate_limiter.wait(len(prompt) // 4 + 1)

        model = genai.GenerativeModel(self.model_name, system_instruction=system_instruction)
        response = await model.generate_content_async(
            prompt,
            generation_config=genai.types.GenerationConfig(temperature=temperature),
        )
        return response.text

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
    ) -> Optional[dict]:
        """Generate content and parse the JSON object it contains."""
        text = await self.generate_content(prompt, system_instruction, temperature)
        return extract_json_object(text)
