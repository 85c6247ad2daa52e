from __future__ import annotations

from .outcome import PipelineOutcome, RunStatus, StepOutcome, StepPolicy, StepRecord, StepStatus
from .runner import run_pipeline
from .steps import STEPS, Step

__all__ = [
    "PipelineOutcome",
    "RunStatus",
    "STEPS",
    "Step",
    "StepOutcome",
    "StepPolicy",
    "StepRecord",
    "StepStatus",
    "run_pipeline",
]
