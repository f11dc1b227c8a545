"""
Generation Orchestrator

Runs one generation request through the numbered pipeline:

    1. URL check          (analyzer.validate_url, bounded by URL_CHECK_TIMEOUT)
    2. Content analysis   (analyzer.analyze, bounded by SCRAPE_TIMEOUT)
    3. Compatibility gate (pure; a mismatch returns before any credit is touched)
    4. Credit reservation (skipped for exempt accounts and already-paid URLs)
    5. Record creation + AI generation
    6. Shape validation   (keep valid candidates; none left is a failure)
    7. Scoring            (primary candidate + compliance signal)
    8. Claim the type slot, persist success and commit (or refund, when a
       concurrent generation already paid for the URL) in one transaction

Any failure after step 4 refunds the reservation (unless step 8 committed it),
marks the record failed with a classified reason/stage, and returns a public
message. Refund failures are logged for manual reconciliation and never
replace the original failure.

Also exposes refine(), recalculate_score(), preview_score() and
delete_schema_type() for records produced by generate().
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..billing import CreditLedger, ReservationToken
from ..compatibility import check_compatibility
from ..database.models import GenerationRecord, GenerationStatus
from ..database.repository import RecordStore
from ..integrations.content_analyzer import ContentAnalyzer
from ..integrations.providers import ProviderError, ProviderErrorKind, SchemaProvider
from ..models.errors import (
    DuplicateSchemaType,
    GenerationRejected,
    RegenerationLimitReached,
    SchemaTypeLimitReached,
)
from ..models.types import (
    AUTO_TYPE,
    GenerationRequest,
    GenerationResult,
    RefinementResult,
    detect_type,
)
from ..refinement import RefinementFailed, RefinementLimiter
from ..scoring import ComplianceSignal, SchemaScore, calculate_schema_score
from ..validation import ComplianceValidator, ShapeValidationError, ShapeValidator
from .errors import (
    FailureReason,
    FailureStage,
    PipelineStep,
    classify_failure,
    public_message,
)
from .events import EventBus, GenerationSucceeded

logger = logging.getLogger(__name__)


@dataclass
class PipelineLimits:
    """Limits and timeouts applied by the orchestrator."""
    credits_per_generation: int = 1
    max_schema_types_per_url: int = 10
    max_refinements: int = 2
    url_check_timeout: float = 15.0
    scrape_timeout: float = 30.0
    ai_timeout: float = 120.0

    @classmethod
    def from_settings(cls, settings) -> "PipelineLimits":
        return cls(
            credits_per_generation=settings.CREDITS_PER_GENERATION,
            max_schema_types_per_url=settings.MAX_SCHEMA_TYPES_PER_URL,
            max_refinements=settings.MAX_REFINEMENTS,
            url_check_timeout=settings.URL_CHECK_TIMEOUT,
            scrape_timeout=settings.SCRAPE_TIMEOUT,
            ai_timeout=settings.AI_TIMEOUT,
        )


def _record_type(record: GenerationRecord) -> str:
    return record.final_type or record.requested_type


class GenerationOrchestrator:
    """
    Sequences a generation request and keeps the credit and record invariants.

    Usage:
        orchestrator = GenerationOrchestrator(analyzer, provider, ledger, store)
        result = await orchestrator.generate(GenerationRequest(url, "Auto", account_id))
    """

    def __init__(
        self,
        analyzer: ContentAnalyzer,
        provider: SchemaProvider,
        ledger: CreditLedger,
        store: RecordStore,
        shape_validator: Optional[ShapeValidator] = None,
        compliance_validator: Optional[ComplianceValidator] = None,
        events: Optional[EventBus] = None,
        limits: Optional[PipelineLimits] = None,
        refinement_limiter: Optional[RefinementLimiter] = None,
    ):
        self.analyzer = analyzer
        self.provider = provider
        self.ledger = ledger
        self.store = store
        self.shape_validator = shape_validator or ShapeValidator()
        self.compliance_validator = compliance_validator or ComplianceValidator(self.shape_validator)
        self.events = events or EventBus()
        self.limits = limits or PipelineLimits()
        self.refinement_limiter = refinement_limiter or RefinementLimiter(
            store,
            max_refinements=self.limits.max_refinements,
            compliance_validator=self.compliance_validator,
        )

    # =========================================================================
    # GENERATE
    # =========================================================================

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Run the full pipeline for one request.

        Raises:
            GenerationRejected subclasses for business-rule rejections
            (duplicate type, regeneration cap, type cap). Most are made before
            any work; a type slot lost to a concurrent or Auto generation is
            detected at record creation or step 8, after which the credit is
            refunded and the pending record discarded.
            Every other failure is returned as an unsuccessful result.
        """
        started = time.monotonic()
        deletion_count, already_paid = self._preflight(request)

        step = PipelineStep.URL_CHECK
        token: Optional[ReservationToken] = None
        record_id: Optional[str] = None
        committed = False

        try:
            # Step 1: reachability and crawler permission
            check = await asyncio.wait_for(
                self.analyzer.validate_url(request.url), timeout=self.limits.url_check_timeout
            )

            # Step 2: fact sheet
            step = PipelineStep.CONTENT_ANALYSIS
            facts = await asyncio.wait_for(
                self.analyzer.analyze(request.url, html=check.html or None),
                timeout=self.limits.scrape_timeout,
            )

            # Step 3: compatibility gate, before any credit is touched
            step = PipelineStep.COMPATIBILITY
            compatibility = check_compatibility(request.requested_type, facts)
            if not compatibility.compatible:
                logger.info(
                    f"Content mismatch for {request.url} ({request.requested_type}): "
                    f"suggesting {', '.join(compatibility.suggested_types)}"
                )
                return GenerationResult(
                    success=False,
                    url=request.url,
                    requested_type=request.requested_type,
                    processing_time_ms=self._elapsed_ms(started),
                    failure_reason=FailureReason.CONTENT_MISMATCH.value,
                    failure_stage=FailureStage.VALIDATION.value,
                    failure_step=int(step),
                    message=compatibility.reason,
                    suggested_types=compatibility.suggested_types,
                )

            # Step 4: reservation
            step = PipelineStep.CREDIT_RESERVATION
            token = self.ledger.reserve(
                request.account_id,
                self.limits.credits_per_generation,
                description=f"Schema generation: {request.requested_type} for {request.url}",
                policy=request.billing_policy,
                already_paid=already_paid,
            )

            # Step 5: record + AI generation
            step = PipelineStep.AI_GENERATION
            record_id = self.store.create(
                request.account_id,
                request.url,
                request.requested_type,
                options=dict(request.options),
                deletion_count=deletion_count,
                ai_model_provider=self.provider.name,
                claim_type=None if request.is_auto else request.requested_type,
            )
            candidates = await asyncio.wait_for(
                self.provider.generate(facts, request.requested_type, request.options),
                timeout=self.limits.ai_timeout,
            )
            if not candidates:
                raise ProviderError("AI returned no schemas", ProviderErrorKind.EMPTY_RESPONSE)

            # Step 6: shape validation
            step = PipelineStep.SHAPE_VALIDATION
            valid = await self._valid_candidates(candidates)

            # Step 7: scoring
            step = PipelineStep.SCORING
            score = self.refinement_limiter.score(valid)
            final_type = (detect_type(valid) or AUTO_TYPE) if request.is_auto else request.requested_type

            # Step 8: type slot, success and commit share one transaction
            step = PipelineStep.PERSIST
            credits_used = token.amount if token else 0
            processing_time_ms = self._elapsed_ms(started)
            with self.store.scope() as db:
                paid_before = self.store.claim_success(
                    db,
                    record_id,
                    request.account_id,
                    request.url,
                    final_type,
                    candidates=valid,
                    score=score.to_dict(),
                    processing_time_ms=processing_time_ms,
                    source_metadata=facts.verification_metadata(),
                )
                if token and paid_before:
                    # Another generation for this URL committed first
                    self.ledger.refund(token, "already_paid", db=db)
                    credits_used = 0
                elif token:
                    self.ledger.commit(token, db=db)
                self.store.update(record_id, db=db, credits_used=credits_used)
            committed = True

        except GenerationRejected as e:
            logger.info(f"Generation rejected for {request.url} at step {int(step)}: {e.message}")
            self._refund(token, committed, e.code)
            if record_id:
                self.store.discard(record_id)
            raise

        except asyncio.CancelledError:
            logger.warning(f"Generation cancelled for {request.url} at step {int(step)}")
            self._unwind(token, committed, record_id, FailureReason.UNKNOWN, FailureStage.UNKNOWN,
                         step, "cancelled", started)
            raise

        except Exception as e:
            reason, stage = classify_failure(e, step)
            logger.warning(
                f"Generation failed for {request.url} at step {int(step)} "
                f"({reason.value}/{stage.value}): {e}"
            )
            self._unwind(token, committed, record_id, reason, stage, step, str(e), started)
            return GenerationResult(
                success=False,
                url=request.url,
                requested_type=request.requested_type,
                record_id=record_id,
                processing_time_ms=self._elapsed_ms(started),
                failure_reason=reason.value,
                failure_stage=stage.value,
                failure_step=int(step),
                message=public_message(reason),
            )

        logger.info(
            f"Generated {final_type} for {request.url}: score {score.overall_score}, "
            f"{credits_used} credit(s), {processing_time_ms}ms"
        )
        self.events.publish(GenerationSucceeded(
            record_id=record_id,
            account_id=request.account_id,
            url=request.url,
            final_type=final_type,
            credits_used=credits_used,
        ))

        return GenerationResult(
            success=True,
            url=request.url,
            requested_type=request.requested_type,
            record_id=record_id,
            final_type=final_type,
            candidates=valid,
            score=score,
            credits_used=credits_used,
            processing_time_ms=processing_time_ms,
        )

    def _preflight(self, request: GenerationRequest) -> Tuple[int, bool]:
        """
        Apply the per-URL business rules.

        Returns:
            (deletion_count for the new record, whether the URL is already paid for)
        """
        records = self.store.find_for_url(request.account_id, request.url)
        already_paid = any(r.status == GenerationStatus.SUCCESS for r in records)
        requested = request.requested_type
        deletion_count = 0

        if not request.is_auto:
            same_type = [r for r in records if _record_type(r) == requested]
            live = [r for r in same_type if not r.is_deleted]
            if live:
                if any(r.deletion_count for r in live):
                    raise RegenerationLimitReached(
                        f'Schema type "{requested}" has already been regenerated once for this URL',
                        schema_type=requested,
                    )
                raise DuplicateSchemaType(
                    f'Schema type "{requested}" already exists for this URL',
                    schema_type=requested,
                )
            if same_type:
                deletion_count = 1

        active_types = {_record_type(r) for r in records if not r.is_deleted}
        active_types.discard(requested)
        if len(active_types) >= self.limits.max_schema_types_per_url:
            raise SchemaTypeLimitReached(
                f"Maximum of {self.limits.max_schema_types_per_url} schema types per URL reached",
                max_schema_types=self.limits.max_schema_types_per_url,
            )

        return deletion_count, already_paid

    async def _valid_candidates(self, candidates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        results = self.shape_validator.validate_many(candidates)
        if inspect.isawaitable(results):
            results = await results

        valid = [c for c, result in zip(candidates, results) if result.is_valid]
        rejected = len(candidates) - len(valid)
        if rejected:
            logger.info(f"Shape validation dropped {rejected} of {len(candidates)} candidate(s)")
        if not valid:
            raise ShapeValidationError(
                "No generated schema passed validation",
                errors=[issue.to_dict() for result in results for issue in result.errors][:20],
            )
        return valid

    def _unwind(
        self,
        token: Optional[ReservationToken],
        committed: bool,
        record_id: Optional[str],
        reason: FailureReason,
        stage: FailureStage,
        step: PipelineStep,
        error_message: str,
        started: float,
    ) -> None:
        """Refund, then mark the record failed and release its type slot. Never raises."""
        self._refund(token, committed, reason.value)

        if record_id:
            try:
                self.store.update(
                    record_id,
                    status=GenerationStatus.FAILED,
                    live_type=None,
                    failure_reason=reason.value,
                    failure_stage=stage.value,
                    failure_step=int(step),
                    error_message=error_message[:1000],
                    credits_used=0,
                    processing_time_ms=self._elapsed_ms(started),
                )
            except Exception as update_error:
                logger.error(f"Could not mark record {record_id} as failed: {update_error}")

    def _refund(self, token: Optional[ReservationToken], committed: bool, reason: str) -> None:
        if not token or committed:
            return
        try:
            self.ledger.refund(token, reason)
        except Exception as refund_error:
            logger.error(
                f"MANUAL RECONCILIATION REQUIRED: refund of reservation {token.reservation_id} "
                f"({token.amount} credit(s), account {token.account_id}) failed: {refund_error}"
            )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    # =========================================================================
    # REFINE / RESCORE / DELETE
    # =========================================================================

    async def refine(
        self,
        record_id: str,
        candidates: Optional[List[Dict[str, Any]]] = None,
        url: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        account_id: Optional[str] = None,
    ) -> RefinementResult:
        """
        Refine a successful record's candidates. Never touches the ledger.

        Raises:
            RecordNotFound, RecordAccessDenied, RefinementLimitReached,
            RefinementConflict, RefinementFailed
        """
        record = self.store.get_owned(record_id, account_id)
        if record.status != GenerationStatus.SUCCESS or record.is_deleted:
            raise RefinementFailed("Only active, successful schemas can be refined", record_id=record_id)
        self.refinement_limiter.ensure_can_refine(record)

        current = candidates or list(record.candidates or [])
        try:
            refined, changes = await asyncio.wait_for(
                self.provider.refine(
                    current,
                    url or record.url,
                    record.refinement_count or 0,
                    record.source_metadata or {},
                    options,
                ),
                timeout=self.limits.ai_timeout,
            )
        except (ProviderError, asyncio.TimeoutError) as e:
            reason, _ = classify_failure(e, PipelineStep.AI_GENERATION)
            logger.error(f"Refinement failed for {record_id} ({reason.value}): {e}")
            raise RefinementFailed("Schema refinement failed", record_id=record_id, reason=reason.value) from e

        try:
            valid = await self._valid_candidates(refined)
        except ShapeValidationError as e:
            raise RefinementFailed(
                "Refined schemas failed validation", record_id=record_id,
                reason=FailureReason.VALIDATION_ERROR.value,
            ) from e

        score = self.refinement_limiter.after_refine(record, valid)
        stored = self.store.get(record_id)

        return RefinementResult(
            record_id=record_id,
            candidates=valid,
            score=score,
            refinement_count=stored.refinement_count,
            remaining_refinements=self.refinement_limiter.remaining(stored),
            change_summary=changes,
        )

    def recalculate_score(
        self,
        record_id: str,
        candidates: List[Dict[str, Any]],
        account_id: Optional[str] = None,
    ) -> SchemaScore:
        """Rescore hand-edited candidates and store them together with the new score."""
        self.store.get_owned(record_id, account_id)
        score = self.refinement_limiter.score(candidates)
        self.store.update(record_id, candidates=candidates, score=score.to_dict())
        logger.info(f"Recalculated score for {record_id}: {score.overall_score}")
        return score

    def preview_score(
        self,
        candidate: Dict[str, Any],
        compliance: Optional[ComplianceSignal] = None,
    ) -> SchemaScore:
        """Score without touching the ledger or record store."""
        if compliance is None:
            compliance = self.compliance_validator.check(candidate)
        return calculate_schema_score(candidate, compliance)

    def delete_schema_type(self, record_id: str, account_id: Optional[str] = None) -> GenerationRecord:
        """Soft delete a record, allowing one regeneration of its type."""
        return self.store.soft_delete(record_id, account_id)
