"""
AI Schema Providers

Interchangeable generate/refine backends behind one SchemaProvider interface:
- ClaudeSchemaProvider (anthropic SDK)
- OpenAISchemaProvider (openai SDK, JSON response format)

The provider is chosen by explicit configuration and injected into the
orchestrator. Every SDK failure is re-raised as ProviderError with a kind from
a closed set so failure classification never has to read error text.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import anthropic
import openai

from ..models.types import FactSheet
from ..refinement.sanitizer import sanitize_refined_candidate
from .prompts import (
    REFINE_SYSTEM_PROMPT,
    build_generation_prompt,
    build_generation_system_prompt,
    build_refinement_prompt,
)

logger = logging.getLogger(__name__)

MAX_TOKENS = 8000
TEMPERATURE = 0.0
REFINE_TEMPERATURE = 0.2
RETRYABLE_KINDS = ("rate_limit", "network", "timeout")


class ProviderErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    API_ERROR = "api_error"
    EMPTY_RESPONSE = "empty_response"
    INVALID_RESPONSE = "invalid_response"
    INSUFFICIENT_CONTENT = "insufficient_content"
    NOT_CONFIGURED = "not_configured"


class ProviderError(Exception):
    """AI backend failure with a closed-set kind."""

    def __init__(self, message: str, kind: ProviderErrorKind):
        super().__init__(message)
        self.kind = kind


def _clean_json(text: str) -> List[Dict[str, Any]]:
    """Strip markdown fences, parse JSON and return the list of schemas."""
    cleaned = re.sub(r"```(?:json)?\s*", "", text or "").strip()
    cleaned = cleaned.rstrip("`").strip()
    if not cleaned:
        raise ProviderError("AI returned an empty response", ProviderErrorKind.EMPTY_RESPONSE)

    try:
        data = json.loads(cleaned)
    except ValueError:
        # Prose around the object: fall back to the outermost braces
        match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if not match:
            raise ProviderError("AI response was not valid JSON", ProviderErrorKind.INVALID_RESPONSE)
        try:
            data = json.loads(match.group(0))
        except ValueError as e:
            raise ProviderError(f"AI response was not valid JSON: {e}", ProviderErrorKind.INVALID_RESPONSE)

    if isinstance(data, dict) and data.get("error"):
        message = str(data["error"])
        if "insufficient" in message.lower():
            raise ProviderError(message, ProviderErrorKind.INSUFFICIENT_CONTENT)
        raise ProviderError(message, ProviderErrorKind.INVALID_RESPONSE)

    if isinstance(data, dict) and "schemas" in data:
        schemas = data["schemas"]
    elif isinstance(data, dict) and "@type" in data:
        schemas = [data]
    elif isinstance(data, list):
        schemas = data
    else:
        raise ProviderError("AI response had no schemas", ProviderErrorKind.INVALID_RESPONSE)

    if not isinstance(schemas, list):
        raise ProviderError("AI response schemas were not a list", ProviderErrorKind.INVALID_RESPONSE)
    return [schema for schema in schemas if isinstance(schema, dict)]


class SchemaProvider(ABC):
    """
    Generate / refine capability shared by every AI backend.

    Subclasses implement _complete(); prompt building, response parsing,
    retries and sanitizing of refinements live here.
    """

    name = "base"

    def __init__(self, model: str, max_retries: int = 3, retry_delay: float = 1.0):
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.call_count = 0

    @abstractmethod
    async def _complete(self, system: str, prompt: str, temperature: float) -> str:
        """Return the raw text of one completion or raise ProviderError."""

    async def _complete_with_retry(self, system: str, prompt: str, temperature: float) -> str:
        for attempt in range(self.max_retries):
            try:
                text = await self._complete(system, prompt, temperature)
                self.call_count += 1
                return text
            except ProviderError as e:
                if e.kind.value not in RETRYABLE_KINDS or attempt == self.max_retries - 1:
                    raise
                wait_time = self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"{self.name} call failed (attempt {attempt + 1}/{self.max_retries}), "
                    f"retrying in {wait_time}s: {e}"
                )
                await asyncio.sleep(wait_time)
        raise ProviderError(f"{self.name} call failed", ProviderErrorKind.API_ERROR)

    async def generate(
        self,
        facts: FactSheet,
        requested_type: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Candidate JSON-LD objects for a page. May be empty."""
        system = build_generation_system_prompt(requested_type)
        prompt = build_generation_prompt(facts, requested_type, options)

        logger.info(f"Generating {requested_type} schema for {facts.url} with {self.name} ({self.model})")
        text = await self._complete_with_retry(system, prompt, TEMPERATURE)
        candidates = _clean_json(text)
        logger.info(f"{self.name} returned {len(candidates)} candidate(s) for {facts.url}")
        return candidates

    async def refine(
        self,
        candidates: List[Dict[str, Any]],
        url: str,
        refinement_count: int,
        original_facts: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[List[Dict[str, Any]], List[str]]:
        """
        Improve existing candidates.

        Returns:
            (refined candidates, change summary)
        """
        prompt = build_refinement_prompt(candidates, url, refinement_count, original_facts, options)
        text = await self._complete_with_retry(REFINE_SYSTEM_PROMPT, prompt, REFINE_TEMPERATURE)
        refined = _clean_json(text)
        if not refined:
            raise ProviderError("AI returned no refined schemas", ProviderErrorKind.EMPTY_RESPONSE)

        sanitized: List[Dict[str, Any]] = []
        changes: List[str] = []
        for index, candidate in enumerate(refined):
            original = candidates[index] if index < len(candidates) else {}
            clean, removals = sanitize_refined_candidate(
                original, candidate, original_facts, refinement_number=refinement_count + 1
            )
            changes.extend(_describe_changes(original, clean))
            changes.extend(removals)
            sanitized.append(clean)

        return sanitized, changes


def _describe_changes(original: Dict[str, Any], refined: Dict[str, Any]) -> List[str]:
    changes = [f"Added {key}" for key in refined if key not in original]
    changes += [
        f"Updated {key}" for key in refined
        if key in original and refined[key] != original[key]
    ]
    return changes


# =============================================================================
# CLAUDE
# =============================================================================

class ClaudeSchemaProvider(SchemaProvider):
    """Schema provider backed by the Anthropic Messages API."""

    name = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
        **kwargs,
    ):
        super().__init__(model or self.DEFAULT_MODEL, **kwargs)
        if client is None and not api_key:
            raise ProviderError("ANTHROPIC_API_KEY not provided", ProviderErrorKind.NOT_CONFIGURED)
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def _complete(self, system: str, prompt: str, temperature: float) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise ProviderError(f"Claude rate limit: {e}", ProviderErrorKind.RATE_LIMIT) from e
        except anthropic.APITimeoutError as e:
            raise ProviderError("Claude request timed out", ProviderErrorKind.TIMEOUT) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(f"Claude connection error: {e}", ProviderErrorKind.NETWORK) from e
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise ProviderError(f"Claude API error: {e}", ProviderErrorKind.API_ERROR) from e

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        logger.info(
            f"Claude call: {response.usage.input_tokens} in, {response.usage.output_tokens} out"
        )
        return content


# =============================================================================
# OPENAI
# =============================================================================

class OpenAISchemaProvider(SchemaProvider):
    """Schema provider backed by OpenAI chat completions in JSON mode."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        refine_model: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[openai.AsyncOpenAI] = None,
        **kwargs,
    ):
        super().__init__(model or self.DEFAULT_MODEL, **kwargs)
        if client is None and not api_key:
            raise ProviderError("OPENAI_API_KEY not provided", ProviderErrorKind.NOT_CONFIGURED)
        self.refine_model = refine_model or self.model
        self.client = client or openai.AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete(self, system: str, prompt: str, temperature: float) -> str:
        model = self.refine_model if system == REFINE_SYSTEM_PROMPT else self.model
        try:
            response = await self.client.chat.completions.create(
                model=model,
                temperature=temperature,
                max_tokens=MAX_TOKENS,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.RateLimitError as e:
            raise ProviderError(f"OpenAI rate limit: {e}", ProviderErrorKind.RATE_LIMIT) from e
        except openai.APITimeoutError as e:
            raise ProviderError("OpenAI request timed out", ProviderErrorKind.TIMEOUT) from e
        except openai.APIConnectionError as e:
            raise ProviderError(f"OpenAI connection error: {e}", ProviderErrorKind.NETWORK) from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise ProviderError(f"OpenAI API error: {e}", ProviderErrorKind.API_ERROR) from e

        if not response.choices:
            raise ProviderError("OpenAI returned no choices", ProviderErrorKind.EMPTY_RESPONSE)
        return response.choices[0].message.content or ""


def create_schema_provider(settings) -> SchemaProvider:
    """Build the provider named by settings.AI_PROVIDER."""
    provider = (settings.AI_PROVIDER or "").lower()
    if provider in ("anthropic", "claude"):
        return ClaudeSchemaProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            timeout=settings.AI_TIMEOUT,
        )
    if provider == "openai":
        return OpenAISchemaProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            refine_model=settings.OPENAI_REFINE_MODEL,
            timeout=settings.AI_TIMEOUT,
        )
    raise ProviderError(f"Unknown AI provider: {settings.AI_PROVIDER}", ProviderErrorKind.NOT_CONFIGURED)
