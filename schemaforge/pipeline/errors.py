"""
Failure Classification

Maps any exception raised inside the generation pipeline to exactly one
FailureReason and one FailureStage.

Order of precedence:
1. Typed collaborator errors (AnalyzerError, ProviderError, ShapeValidationError,
   ledger errors) map through fixed tables.
2. Timeouts are recognised by exception type.
3. Anything else falls back to keyword heuristics over the message, checked
   in pipeline order so ties resolve toward the earliest stage.
"""

import asyncio
from enum import Enum, IntEnum
from typing import Optional, Tuple

from ..billing import InsufficientFunds, LedgerError
from ..integrations.content_analyzer import AnalyzerError, AnalyzerErrorKind
from ..integrations.providers import ProviderError, ProviderErrorKind
from ..validation.shape import ShapeValidationError


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    SCRAPER_ERROR = "scraper_error"
    AI_ERROR = "ai_error"
    VALIDATION_ERROR = "validation_error"
    INSUFFICIENT_CONTENT = "insufficient_content"
    NETWORK_ERROR = "network_error"
    RATE_LIMIT = "rate_limit"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    CONTENT_MISMATCH = "content_mismatch"
    UNKNOWN = "unknown"


class FailureStage(str, Enum):
    SCRAPING = "scraping"
    AI_GENERATION = "ai_generation"
    VALIDATION = "validation"
    POST_PROCESSING = "post_processing"
    UNKNOWN = "unknown"


class PipelineStep(IntEnum):
    URL_CHECK = 1
    CONTENT_ANALYSIS = 2
    COMPATIBILITY = 3
    CREDIT_RESERVATION = 4
    AI_GENERATION = 5
    SHAPE_VALIDATION = 6
    SCORING = 7
    PERSIST = 8


STEP_STAGES = {
    PipelineStep.URL_CHECK: FailureStage.SCRAPING,
    PipelineStep.CONTENT_ANALYSIS: FailureStage.SCRAPING,
    PipelineStep.COMPATIBILITY: FailureStage.VALIDATION,
    PipelineStep.CREDIT_RESERVATION: FailureStage.POST_PROCESSING,
    PipelineStep.AI_GENERATION: FailureStage.AI_GENERATION,
    PipelineStep.SHAPE_VALIDATION: FailureStage.VALIDATION,
    PipelineStep.SCORING: FailureStage.POST_PROCESSING,
    PipelineStep.PERSIST: FailureStage.POST_PROCESSING,
}

ANALYZER_REASONS = {
    AnalyzerErrorKind.UNREACHABLE: FailureReason.NETWORK_ERROR,
    AnalyzerErrorKind.ROBOTS_DISALLOWED: FailureReason.SCRAPER_ERROR,
    AnalyzerErrorKind.TIMEOUT: FailureReason.TIMEOUT,
    AnalyzerErrorKind.PARSE_ERROR: FailureReason.SCRAPER_ERROR,
}

PROVIDER_REASONS = {
    ProviderErrorKind.RATE_LIMIT: FailureReason.RATE_LIMIT,
    ProviderErrorKind.TIMEOUT: FailureReason.TIMEOUT,
    ProviderErrorKind.NETWORK: FailureReason.NETWORK_ERROR,
    ProviderErrorKind.API_ERROR: FailureReason.AI_ERROR,
    ProviderErrorKind.EMPTY_RESPONSE: FailureReason.AI_ERROR,
    ProviderErrorKind.INVALID_RESPONSE: FailureReason.AI_ERROR,
    ProviderErrorKind.INSUFFICIENT_CONTENT: FailureReason.INSUFFICIENT_CONTENT,
    ProviderErrorKind.NOT_CONFIGURED: FailureReason.AI_ERROR,
}

# (keywords, reason, stage) in pipeline order; first match wins
KEYWORD_RULES = [
    (("robots", "scrap", "crawl", "parse html", "fetch"), FailureReason.SCRAPER_ERROR, FailureStage.SCRAPING),
    (("econnrefused", "enotfound", "dns", "connection", "network", "unreachable"),
     FailureReason.NETWORK_ERROR, FailureStage.SCRAPING),
    (("timeout", "timed out"), FailureReason.TIMEOUT, None),
    (("insufficient content", "not enough content", "too short", "thin content"),
     FailureReason.INSUFFICIENT_CONTENT, FailureStage.AI_GENERATION),
    (("rate limit", "429", "too many requests"), FailureReason.RATE_LIMIT, FailureStage.AI_GENERATION),
    (("openai", "anthropic", "claude", "completion", "model", "ai "), FailureReason.AI_ERROR, FailureStage.AI_GENERATION),
    (("invalid schema", "validation", "json-ld", "@context", "@type"),
     FailureReason.VALIDATION_ERROR, FailureStage.VALIDATION),
    (("credit", "balance"), FailureReason.INSUFFICIENT_CREDITS, FailureStage.POST_PROCESSING),
]

PUBLIC_MESSAGES = {
    FailureReason.INSUFFICIENT_CREDITS: "Insufficient credits. Purchase more credits to generate schemas.",
    FailureReason.CONTENT_MISMATCH: "The page content does not support the requested schema type.",
}


def stage_for_step(step: Optional[int]) -> FailureStage:
    if step is None:
        return FailureStage.UNKNOWN
    try:
        return STEP_STAGES[PipelineStep(step)]
    except ValueError:
        return FailureStage.UNKNOWN


def classify_failure(error: BaseException, step: Optional[int] = None) -> Tuple[FailureReason, FailureStage]:
    """
    Classify a pipeline failure.

    Args:
        error: Exception raised by the pipeline
        step: Numbered pipeline step (1-8) that was running, if known

    Returns:
        (reason, stage)
    """
    step_stage = stage_for_step(step)

    if isinstance(error, AnalyzerError):
        return ANALYZER_REASONS[error.kind], FailureStage.SCRAPING
    if isinstance(error, ProviderError):
        return PROVIDER_REASONS[error.kind], FailureStage.AI_GENERATION
    if isinstance(error, ShapeValidationError):
        return FailureReason.VALIDATION_ERROR, FailureStage.VALIDATION
    if isinstance(error, InsufficientFunds):
        return FailureReason.INSUFFICIENT_CREDITS, FailureStage.POST_PROCESSING
    if isinstance(error, LedgerError):
        return FailureReason.UNKNOWN, FailureStage.POST_PROCESSING

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return FailureReason.TIMEOUT, step_stage

    message = str(error).lower()
    for keywords, reason, stage in KEYWORD_RULES:
        if any(keyword in message for keyword in keywords):
            return reason, stage or step_stage

    return FailureReason.UNKNOWN, step_stage


def public_message(reason: FailureReason) -> str:
    """Caller-facing message for a failure; never includes exception text."""
    if reason in PUBLIC_MESSAGES:
        return PUBLIC_MESSAGES[reason]
    return f"Schema generation failed ({reason.value})"
