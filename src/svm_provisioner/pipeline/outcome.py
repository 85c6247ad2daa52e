from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..models import ProvisioningRequest


class StepPolicy(str, Enum):
    FATAL = "fatal"  # failure stops the pipeline
    DEGRADED = "degraded"  # failure is recorded, the pipeline continues


class StepStatus(str, Enum):
    CREATED = "created"
    SKIPPED_ALREADY_EXISTS = "skipped_already_exists"
    FAILED_FATAL = "failed_fatal"
    FAILED_DEGRADED = "failed_degraded"

    @property
    def failed(self) -> bool:
        return self in (StepStatus.FAILED_FATAL, StepStatus.FAILED_DEGRADED)


class RunStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    status: StepStatus
    reason: Optional[str] = None
    dry_run: bool = False

    @classmethod
    def failure(cls, policy: StepPolicy, reason: str) -> "StepOutcome":
        status = StepStatus.FAILED_FATAL if policy is StepPolicy.FATAL else StepStatus.FAILED_DEGRADED
        return cls(status=status, reason=reason)


@dataclass(frozen=True)
class StepRecord:
    step: str
    kind: str
    policy: StepPolicy
    outcome: StepOutcome


@dataclass
class PipelineOutcome:
    """Ordered record of every step the pipeline attempted. The only input to reporting."""

    request: ProvisioningRequest
    dry_run: bool = False
    records: List[StepRecord] = field(default_factory=list)

    def add(self, record: StepRecord) -> None:
        self.records.append(record)

    def get(self, step: str) -> Optional[StepRecord]:
        return next((r for r in self.records if r.step == step), None)

    @property
    def step_names(self) -> List[str]:
        return [r.step for r in self.records]

    @property
    def fatal(self) -> Optional[StepRecord]:
        return next((r for r in self.records if r.outcome.status is StepStatus.FAILED_FATAL), None)

    @property
    def degraded(self) -> List[StepRecord]:
        return [r for r in self.records if r.outcome.status is StepStatus.FAILED_DEGRADED]

    @property
    def status(self) -> RunStatus:
        if self.fatal is not None:
            return RunStatus.FAILED
        if self.degraded:
            return RunStatus.DEGRADED
        return RunStatus.SUCCESS

    @property
    def share_path(self) -> Optional[str]:
        if self.status is RunStatus.FAILED:
            return None
        return self.request.share_path

    @property
    def nfs_path(self) -> Optional[str]:
        if self.status is RunStatus.FAILED or not self.request.features.nfs_enabled:
            return None
        record = self.get("nfs_export")
        if record is None or record.outcome.status.failed:
            return None
        return self.request.nfs_path

    def as_dict(self) -> Dict[str, Any]:
        fatal = self.fatal
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "cluster": self.request.cluster,
            "svm": self.request.svm,
            "steps": [
                {
                    "step": r.step,
                    "kind": r.kind,
                    "policy": r.policy.value,
                    "status": r.outcome.status.value,
                    "reason": r.outcome.reason,
                    "dry_run": r.outcome.dry_run,
                }
                for r in self.records
            ],
            "fatal": {"step": fatal.step, "reason": fatal.outcome.reason} if fatal else None,
            "share_path": self.share_path,
            "nfs_path": self.nfs_path,
        }
