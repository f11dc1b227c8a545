"""
Schema Quality Scoring

Pure, deterministic 0-100 scoring of a JSON-LD candidate:

    from schemaforge.scoring import calculate_schema_score, ComplianceSignal

    score = calculate_schema_score(candidate, ComplianceSignal(error_count=0, warning_count=1))
    score.overall_score       # 0-100
    score.breakdown           # required / recommended / advanced / content
    score.action_items        # prioritized remediation steps
"""

from .compliance import ComplianceSignal, ComplianceTier, compliance_tier
from .properties import advanced_properties_for, declared_type
from .schema_score import (
    ActionItem,
    ScoreBreakdown,
    SchemaScore,
    calculate_schema_score,
)

__all__ = [
    "calculate_schema_score",
    "SchemaScore",
    "ScoreBreakdown",
    "ActionItem",
    # Compliance
    "ComplianceSignal",
    "ComplianceTier",
    "compliance_tier",
    # Properties
    "advanced_properties_for",
    "declared_type",
]
