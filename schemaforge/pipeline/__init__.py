"""
Generation Pipeline

URL -> fact sheet -> compatibility gate -> credit reservation -> AI candidates
-> validation -> scoring -> committed record, with refund-on-failure.
"""

from .errors import (
    FailureReason,
    FailureStage,
    PipelineStep,
    STEP_STAGES,
    classify_failure,
    public_message,
)
from .events import EventBus, GenerationSucceeded, LibraryRecorder
from .orchestrator import GenerationOrchestrator, PipelineLimits
from .batch import BatchGenerator, BatchSummary

__all__ = [
    "GenerationOrchestrator",
    "PipelineLimits",
    "BatchGenerator",
    "BatchSummary",
    # Events
    "EventBus",
    "GenerationSucceeded",
    "LibraryRecorder",
    # Failure classification
    "FailureReason",
    "FailureStage",
    "PipelineStep",
    "STEP_STAGES",
    "classify_failure",
    "public_message",
]
