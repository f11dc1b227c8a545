#!/usr/bin/env python3
"""
Schema Generation Runner

Runs one generation through the full pipeline from the command line:
1. URL check and content analysis
2. Compatibility gate
3. AI generation (provider from AI_PROVIDER)
4. Validation and scoring

Usage:
    # Set environment variables first:
    export ANTHROPIC_API_KEY=your_key

    # Generate:
    python scripts/run_generation.py https://example.com/blog/post

    # With options:
    python scripts/run_generation.py https://example.com/faq \
        --type FAQPage \
        --account local-cli \
        --billing metered \
        --output schema.json
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from schemaforge.billing import AccountNotFound, BillingPolicy, CreditLedger
from schemaforge.database import RecordStore, create_db_engine, create_session_factory, init_db
from schemaforge.integrations import ContentAnalyzer, ProviderError, create_schema_provider
from schemaforge.models import GenerationRequest, SchemaForgeError
from schemaforge.pipeline import GenerationOrchestrator, PipelineLimits
from schemaforge.utils.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_generation(
    url: str,
    schema_type: str = "Auto",
    account_id: str = "local-cli",
    billing: str = "exempt",
    output: str = None,
):
    """Generate schema for one URL and print the result."""

    load_dotenv()
    settings = get_settings()

    try:
        provider = create_schema_provider(settings)
    except ProviderError as e:
        print(f"ERROR: {e}")
        print("\nSet AI_PROVIDER and the matching API key (ANTHROPIC_API_KEY or OPENAI_API_KEY).")
        return None

    engine = create_db_engine()
    init_db(engine)
    session_factory = create_session_factory(engine)

    ledger = CreditLedger(session_factory)
    policy = BillingPolicy(billing)
    try:
        ledger.balance(account_id)
    except AccountNotFound:
        ledger.open_account(account_id, billing_policy=policy)
        print(f"Opened {policy.value} account {account_id}")

    print(f"\n{'='*70}")
    print("SCHEMAFORGE - SCHEMA GENERATION")
    print(f"{'='*70}")
    print(f"URL:          {url}")
    print(f"Schema type:  {schema_type}")
    print(f"Account:      {account_id} ({policy.value})")
    print(f"AI provider:  {provider.name} ({provider.model})")
    print(f"{'='*70}\n")

    async with ContentAnalyzer(
        user_agent=settings.SCRAPER_USER_AGENT,
        respect_robots=settings.RESPECT_ROBOTS_TXT,
        url_check_timeout=settings.URL_CHECK_TIMEOUT,
        scrape_timeout=settings.SCRAPE_TIMEOUT,
    ) as analyzer:
        orchestrator = GenerationOrchestrator(
            analyzer=analyzer,
            provider=provider,
            ledger=ledger,
            store=RecordStore(session_factory),
            limits=PipelineLimits.from_settings(settings),
        )
        try:
            request = GenerationRequest(
                url=url,
                requested_type=schema_type,
                account_id=account_id,
                billing_policy=policy,
            )
            result = await orchestrator.generate(request)
        except SchemaForgeError as e:
            print(f"✗ Rejected: {e.message}")
            return None

    if not result.success:
        print(f"✗ Generation failed: {result.message}")
        print(f"  Reason: {result.failure_reason} (stage: {result.failure_stage}, step: {result.failure_step})")
        if result.suggested_types:
            print(f"  Try instead: {', '.join(result.suggested_types)}")
        return None

    print(f"✓ Generated {result.final_type} ({len(result.candidates)} schema(s))")
    print(f"✓ Score: {result.score.overall_score}/100 ({result.score.compliance_tier})")
    for suggestion in result.score.suggestions[:5]:
        print(f"  - {suggestion}")
    print(f"✓ Credits used: {result.credits_used}, balance: {ledger.balance(account_id)}")
    print()
    print(result.html_script_tags)

    if output:
        Path(output).write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        print(f"\nResult saved to: {output}")

    return result


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate JSON-LD structured data for a URL"
    )
    parser.add_argument(
        "url",
        help="Page URL (e.g., https://example.com/blog/post)"
    )
    parser.add_argument(
        "--type",
        default="Auto",
        help="Schema.org type to generate (default: Auto)"
    )
    parser.add_argument(
        "--account",
        default="local-cli",
        help="Account id to bill (created if missing)"
    )
    parser.add_argument(
        "--billing",
        default="exempt",
        choices=["exempt", "metered"],
        help="Billing policy for this run (default: exempt)"
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the full result as JSON to this file"
    )

    args = parser.parse_args()

    result = asyncio.run(run_generation(
        url=args.url,
        schema_type=args.type,
        account_id=args.account,
        billing=args.billing,
        output=args.output,
    ))

    sys.exit(0 if result else 1)


if __name__ == "__main__":
    main()
