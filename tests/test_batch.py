"""
Test Suite: Batch Generation

Tests per-URL isolation, size limits, the progress event stream and the
aggregate summary.
"""

import pytest

from schemaforge.models import BatchTooLarge
from schemaforge.pipeline import BatchGenerator


URLS = [
    "https://example.org/blog/one",
    "https://example.org/blog/two",
    "https://example.org/blog/three",
]


@pytest.fixture
def batch(orchestrator) -> BatchGenerator:
    return BatchGenerator(orchestrator, max_urls=3, pacing_seconds=0)


class TestBatchSize:
    """Test the URL count limits."""

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, batch, funded_account):
        with pytest.raises(BatchTooLarge):
            await batch.run([], "Auto", funded_account)

    @pytest.mark.asyncio
    async def test_oversized_batch_rejected(self, batch, funded_account, ledger):
        with pytest.raises(BatchTooLarge) as exc_info:
            await batch.run(URLS + ["https://example.org/blog/four"], "Auto", funded_account)

        assert "Maximum of 3" in exc_info.value.message
        assert ledger.balance(funded_account) == 5, "Rejected batch must not touch credits"

    @pytest.mark.asyncio
    async def test_stream_checks_size_before_first_event(self, batch, funded_account):
        events = batch.iter_batch([], "Auto", funded_account)

        with pytest.raises(BatchTooLarge):
            await events.__anext__()


class TestBatchRun:
    """Test sequential processing and the summary."""

    @pytest.mark.asyncio
    async def test_all_succeed(self, batch, funded_account, ledger):
        summary = await batch.run(URLS, "Auto", funded_account)

        assert summary.total == 3
        assert summary.successful == 3
        assert summary.failed == 0
        assert summary.credits_used == 3
        assert ledger.balance(funded_account) == 2
        assert [r.url for r in summary.results] == URLS, "Results must keep input order"

    @pytest.mark.asyncio
    async def test_one_bad_url_does_not_stop_batch(self, batch, funded_account):
        urls = [URLS[0], "/relative/path", URLS[2]]

        summary = await batch.run(urls, "Auto", funded_account)

        assert summary.successful == 2
        assert summary.failed == 1
        assert summary.results[1].rejection_code == "invalid_request"
        assert summary.results[1].failure_reason is None, "Rejections stay outside the failure taxonomy"
        assert summary.credits_used == 2

    @pytest.mark.asyncio
    async def test_repeated_url_is_rejected_not_failed(self, batch, funded_account, ledger):
        summary = await batch.run([URLS[0], URLS[0]], "Article", funded_account)

        rejected = summary.results[1]
        assert not rejected.success
        assert rejected.rejection_code == "duplicate_schema_type"
        assert rejected.failure_reason is None
        assert rejected.to_dict()["rejection_code"] == "duplicate_schema_type"
        assert ledger.balance(funded_account) == 4

    @pytest.mark.asyncio
    async def test_running_out_of_credits_mid_batch(self, orchestrator, ledger):
        account_id = ledger.open_account("acct-low", initial_balance=2)
        batch = BatchGenerator(orchestrator, max_urls=3, pacing_seconds=0)

        summary = await batch.run(URLS, "Auto", account_id)

        assert summary.successful == 2
        assert summary.results[2].failure_reason == "insufficient_credits"
        assert ledger.balance(account_id) == 0

    @pytest.mark.asyncio
    async def test_summary_to_dict(self, batch, funded_account):
        summary = await batch.run(URLS[:1], "Article", funded_account)
        data = summary.to_dict()

        assert data["total"] == 1
        assert data["successful"] == 1
        assert data["results"][0]["final_type"] == "Article"


class TestBatchStream:
    """Test the progress event sequence."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, batch, funded_account):
        urls = [URLS[0], "not a url"]

        events = [event async for event in batch.iter_batch(urls, "Auto", funded_account)]

        assert [e["type"] for e in events] == ["processing", "success", "processing", "failed", "summary"]
        assert events[1]["result"]["record_id"]
        assert events[3]["index"] == 1
        assert events[4]["summary"]["successful"] == 1
        assert events[4]["summary"]["failed"] == 1
