"""
Compliance Tiers

Maps a structural compliance signal (error and warning counts) to an
additive bonus or penalty on the overall schema score.

    errors  warnings   tier                      bonus
    0       0          perfect                   +10
    0       1-2        good                      +7
    0       3+         acceptable                +5
    1       any        minor_issues              0
    2-3     any        non_compliant             -5
    4+      any        severely_non_compliant    -10

No signal means "perfect": upstream sanitization already guarantees
baseline compliance.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ComplianceSignal:
    """Error and warning counts from a compliance validator."""
    error_count: int = 0
    warning_count: int = 0

    def __post_init__(self):
        if self.error_count < 0 or self.warning_count < 0:
            raise ValueError("Compliance counts cannot be negative")


@dataclass(frozen=True)
class ComplianceTier:
    name: str
    bonus: int
    label: str


PERFECT = ComplianceTier("perfect", 10, "Perfect compliance")
GOOD = ComplianceTier("good", 7, "Good compliance")
ACCEPTABLE = ComplianceTier("acceptable", 5, "Acceptable compliance")
MINOR_ISSUES = ComplianceTier("minor_issues", 0, "Minor compliance issues")
NON_COMPLIANT = ComplianceTier("non_compliant", -5, "Non-compliant")
SEVERELY_NON_COMPLIANT = ComplianceTier("severely_non_compliant", -10, "Severely non-compliant")


def compliance_tier(signal: Optional[ComplianceSignal]) -> ComplianceTier:
    """Tier for a compliance signal (None defaults to perfect)."""
    if signal is None:
        return PERFECT

    errors, warnings = signal.error_count, signal.warning_count
    if errors == 0:
        if warnings == 0:
            return PERFECT
        if warnings <= 2:
            return GOOD
        return ACCEPTABLE
    if errors == 1:
        return MINOR_ISSUES
    if errors <= 3:
        return NON_COMPLIANT
    return SEVERELY_NON_COMPLIANT
