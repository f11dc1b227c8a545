"""
Refinement Limiter

Bounds how many times a generation record's candidates may be refined and
keeps candidate content and score consistent:

    limiter.ensure_can_refine(record)           # raises past the limit
    refined = await provider.refine(...)
    score = limiter.after_refine(record, refined)

after_refine rescores the primary candidate and persists candidates, score
and the incremented count in one conditional write. If another refinement
landed first the write is rejected, so two concurrent refinements cannot
both pass the limit. Refinements never touch the credit ledger.
"""

import logging
from typing import Any, Dict, List, Optional

from ..database.models import GenerationRecord
from ..database.repository import RecordStore
from ..models.errors import SchemaForgeError
from ..scoring import SchemaScore, calculate_schema_score

logger = logging.getLogger(__name__)

MAX_REFINEMENTS = 2


class RefinementLimitReached(SchemaForgeError):
    code = "refinement_limit_reached"

    def __init__(self, max_refinements: int):
        super().__init__(
            f"Maximum of {max_refinements} refinements reached for this schema",
            max_refinements=max_refinements,
        )
        self.max_refinements = max_refinements


class RefinementConflict(SchemaForgeError):
    """Another refinement updated the record since it was read."""
    code = "refinement_conflict"


class RefinementFailed(SchemaForgeError):
    """The refine operation itself failed; the record is unchanged."""
    code = "refinement_failed"


class RefinementLimiter:
    """
    Guards the refinement count of generation records.

    Args:
        store: Record store used for the optimistic write
        max_refinements: Refinements allowed per record
        compliance_validator: Optional object with check(candidate) -> ComplianceSignal
    """

    def __init__(
        self,
        store: RecordStore,
        max_refinements: int = MAX_REFINEMENTS,
        compliance_validator: Optional[Any] = None,
    ):
        self.store = store
        self.max_refinements = max_refinements
        self.compliance_validator = compliance_validator

    def can_refine(self, record: GenerationRecord) -> bool:
        return (record.refinement_count or 0) < self.max_refinements

    def remaining(self, record: GenerationRecord) -> int:
        return max(0, self.max_refinements - (record.refinement_count or 0))

    def ensure_can_refine(self, record: GenerationRecord) -> None:
        if not self.can_refine(record):
            logger.info(
                f"Refinement rejected for {record.id}: "
                f"{record.refinement_count}/{self.max_refinements} used"
            )
            raise RefinementLimitReached(self.max_refinements)

    def score(self, candidates: List[Dict[str, Any]]) -> SchemaScore:
        """Score the primary candidate, with compliance input when available."""
        primary = candidates[0] if candidates else {}
        compliance = self.compliance_validator.check(primary) if self.compliance_validator else None
        return calculate_schema_score(primary, compliance)

    def after_refine(self, record: GenerationRecord, candidates: List[Dict[str, Any]]) -> SchemaScore:
        """
        Rescore and persist refined candidates together with their score.

        Raises:
            RefinementLimitReached: the record is already at the limit
            RefinementConflict: the refinement count changed since `record` was read
        """
        self.ensure_can_refine(record)

        expected = record.refinement_count or 0
        score = self.score(candidates)

        if not self.store.apply_refinement(record.id, expected, candidates, score.to_dict()):
            raise RefinementConflict(
                "This schema was refined by another request; reload it and try again",
                record_id=record.id,
            )

        logger.info(
            f"Refinement {expected + 1}/{self.max_refinements} stored for {record.id} "
            f"(score {score.overall_score})"
        )
        return score
