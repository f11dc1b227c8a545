"""
Batch Generation

Runs the generation pipeline sequentially over several URLs with a fixed
pause between requests. One URL's failure never stops the batch.

    batch = BatchGenerator(orchestrator, max_urls=10, pacing_seconds=1.0)

    async for event in batch.iter_batch(urls, "Auto", account_id):
        ...                      # processing / success / failed / summary

    summary = await batch.run(urls, "Auto", account_id)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from ..database.models import BillingPolicy
from ..models.errors import BatchTooLarge, SchemaForgeError
from ..models.types import GenerationRequest, GenerationResult
from .errors import FailureReason
from .orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    total: int
    successful: int = 0
    failed: int = 0
    credits_used: int = 0
    results: List[GenerationResult] = field(default_factory=list)

    def add(self, result: GenerationResult) -> None:
        self.results.append(result)
        self.credits_used += result.credits_used
        if result.success:
            self.successful += 1
        else:
            self.failed += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "credits_used": self.credits_used,
            "results": [result.to_dict() for result in self.results],
        }


class BatchGenerator:
    """Sequential, paced generation over a list of URLs."""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        max_urls: int = 10,
        pacing_seconds: float = 1.0,
    ):
        self.orchestrator = orchestrator
        self.max_urls = max_urls
        self.pacing_seconds = pacing_seconds

    def check_size(self, urls: List[str]) -> None:
        if not urls:
            raise BatchTooLarge("At least one URL is required", max_urls=self.max_urls)
        if len(urls) > self.max_urls:
            raise BatchTooLarge(
                f"Maximum of {self.max_urls} URLs per batch ({len(urls)} given)",
                max_urls=self.max_urls,
            )

    async def iter_batch(
        self,
        urls: List[str],
        requested_type: str,
        account_id: str,
        options: Optional[Mapping[str, Any]] = None,
        billing_policy: Optional[BillingPolicy] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield progress events for each URL followed by a summary event.

        Events:
            {"type": "processing", "index", "url"}
            {"type": "success" | "failed", "index", "url", "result"}
            {"type": "summary", "summary"}
        """
        self.check_size(urls)
        summary = BatchSummary(total=len(urls))

        async for event in self._process(urls, requested_type, account_id, options, billing_policy, summary):
            yield event

        yield {"type": "summary", "summary": summary.to_dict()}

    async def run(
        self,
        urls: List[str],
        requested_type: str,
        account_id: str,
        options: Optional[Mapping[str, Any]] = None,
        billing_policy: Optional[BillingPolicy] = None,
    ) -> BatchSummary:
        """Run a whole batch and return the aggregate summary."""
        self.check_size(urls)
        summary = BatchSummary(total=len(urls))
        async for _ in self._process(urls, requested_type, account_id, options, billing_policy, summary):
            pass
        return summary

    async def _process(
        self,
        urls: List[str],
        requested_type: str,
        account_id: str,
        options: Optional[Mapping[str, Any]],
        billing_policy: Optional[BillingPolicy],
        summary: BatchSummary,
    ) -> AsyncIterator[Dict[str, Any]]:
        for index, url in enumerate(urls):
            if index > 0 and self.pacing_seconds > 0:
                await asyncio.sleep(self.pacing_seconds)

            yield {"type": "processing", "index": index, "url": url}

            result = await self._generate_one(url, requested_type, account_id, options, billing_policy)
            summary.add(result)

            yield {
                "type": "success" if result.success else "failed",
                "index": index,
                "url": url,
                "result": result.to_dict(),
            }

        logger.info(
            f"Batch complete for {account_id}: {summary.successful}/{summary.total} succeeded, "
            f"{summary.credits_used} credit(s) used"
        )

    async def _generate_one(
        self,
        url: str,
        requested_type: str,
        account_id: str,
        options: Optional[Mapping[str, Any]],
        billing_policy: Optional[BillingPolicy],
    ) -> GenerationResult:
        try:
            request = GenerationRequest(
                url=url,
                requested_type=requested_type,
                account_id=account_id,
                options=options or {},
                billing_policy=billing_policy,
            )
            return await self.orchestrator.generate(request)
        except SchemaForgeError as e:
            logger.info(f"Batch item rejected for {url}: {e.message}")
            return GenerationResult(
                success=False,
                url=url,
                requested_type=requested_type,
                rejection_code=e.code,
                message=e.message,
            )
        except Exception as e:
            logger.error(f"Batch item failed unexpectedly for {url}: {e}")
            return GenerationResult(
                success=False,
                url=url,
                requested_type=requested_type,
                failure_reason=FailureReason.UNKNOWN.value,
                message="Schema generation failed (unknown)",
            )
