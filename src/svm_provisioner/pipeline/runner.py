from __future__ import annotations

import logging
from typing import Sequence

from ..credentials import Credential
from ..logging import StepTimers, log_event
from ..models import ProvisioningRequest
from ..ontap.client import ControlPlaneClient
from ..ontap.resources import describe
from ..ontap.session import ClusterSession
from ..util.errors import ControlPlaneError
from .outcome import PipelineOutcome, StepOutcome, StepRecord, StepStatus
from .steps import STEPS, Step, StepContext

LOG = logging.getLogger(__name__)


def _run_step(step: Step, ctx: StepContext, *, dry_run: bool, timers: StepTimers) -> StepOutcome:
    log_event(LOG, logging.INFO, f"Starting {step.name}", step=step.name, phase="start", timers=timers)
    try:
        descriptor = step.build(ctx.request)
        if step.check is not None and step.check(ctx, descriptor):
            log_event(
                LOG,
                logging.INFO,
                f"{step.kind} already exists; skipping",
                step=step.name,
                phase="skipped",
                timers=timers,
            )
            return StepOutcome(status=StepStatus.SKIPPED_ALREADY_EXISTS)

        for description, call in step.actions(ctx, descriptor):
            if dry_run:
                log_event(
                    LOG,
                    logging.INFO,
                    f"Would {description}",
                    step=step.name,
                    phase="dry_run",
                    resource=describe(descriptor),
                )
                continue
            LOG.debug("Calling control plane: %s", description, extra={"step": step.name, "phase": "call"})
            call()
    except ControlPlaneError as e:
        outcome = StepOutcome.failure(step.policy, str(e))
        log_event(
            LOG,
            logging.ERROR if outcome.status is StepStatus.FAILED_FATAL else logging.WARNING,
            f"{step.name} failed ({step.policy.value}): {e}",
            step=step.name,
            phase="error",
            timers=timers,
            policy=step.policy.value,
        )
        return outcome

    log_event(
        LOG,
        logging.INFO,
        f"{step.kind} {'planned' if dry_run else 'created'}",
        step=step.name,
        phase="complete",
        timers=timers,
        dry_run=dry_run,
    )
    return StepOutcome(status=StepStatus.CREATED, dry_run=dry_run)


def run_pipeline(
    client: ControlPlaneClient,
    session: ClusterSession,
    request: ProvisioningRequest,
    *,
    domain_credential: Credential,
    dry_run: bool = False,
    steps: Sequence[Step] = STEPS,
) -> PipelineOutcome:
    """
    Run the fixed provisioning steps in order against an open session.

    - A step with an existence check is skipped when its resource is already there;
      a skip never stops later steps.
    - A fatal step failure stops the run; a degraded one is recorded and the run goes on.
    - Optional steps the request did not ask for are left out of the outcome.
    - In dry-run mode every mutating call is logged instead of made; existence checks still run.

    The session is borrowed: it is neither opened nor closed here.
    """
    ctx = StepContext(client=client, session=session, request=request, domain_credential=domain_credential)
    outcome = PipelineOutcome(request=request, dry_run=dry_run)
    timers = StepTimers()

    for step in steps:
        if not step.requested(request):
            LOG.debug("Step not requested", extra={"step": step.name, "phase": "not_requested"})
            continue
        result = _run_step(step, ctx, dry_run=dry_run, timers=timers)
        outcome.add(StepRecord(step=step.name, kind=step.kind, policy=step.policy, outcome=result))
        if result.status is StepStatus.FAILED_FATAL:
            LOG.error(
                "Stopping after fatal failure",
                extra={"step": step.name, "phase": "abort", "remaining": len(steps) - len(outcome.records)},
            )
            break

    LOG.info("Pipeline finished", extra={"status": outcome.status.value, "steps": outcome.step_names})
    return outcome
