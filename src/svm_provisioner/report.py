from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .pipeline.outcome import PipelineOutcome, RunStatus, StepRecord, StepStatus
from .util.serialization import stable_json_dumps

SUMMARY_SCHEMA_VERSION = "1"

_STATUS_STYLE = {
    StepStatus.CREATED: ("created", "green"),
    StepStatus.SKIPPED_ALREADY_EXISTS: ("already existed", "cyan"),
    StepStatus.FAILED_FATAL: ("FAILED (fatal)", "bold red"),
    StepStatus.FAILED_DEGRADED: ("failed (degraded)", "yellow"),
}

_RUN_STYLE = {
    RunStatus.SUCCESS: ("Provisioning succeeded", "green"),
    RunStatus.DEGRADED: ("Provisioning succeeded with warnings", "yellow"),
    RunStatus.FAILED: ("Provisioning failed", "red"),
}


def status_label(record: StepRecord) -> str:
    if record.outcome.dry_run and record.outcome.status is StepStatus.CREATED:
        return "would create"
    return _STATUS_STYLE[record.outcome.status][0]


def render_outcome(
    outcome: PipelineOutcome,
    *,
    console: Any = None,
    disconnect_error: Optional[BaseException] = None,
) -> None:
    """Print the per-step table, the overall verdict and the access paths."""
    from rich.console import Console
    from rich.markup import escape
    from rich.panel import Panel
    from rich.table import Table

    console = console or Console()
    title = "Provisioning plan (dry run)" if outcome.dry_run else "Provisioning report"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Policy")
    table.add_column("Result")
    table.add_column("Detail")
    for idx, record in enumerate(outcome.records, start=1):
        style = _STATUS_STYLE[record.outcome.status][1]
        table.add_row(
            str(idx),
            record.step,
            record.policy.value,
            f"[{style}]{status_label(record)}[/{style}]",
            escape(record.outcome.reason or ""),
        )
    console.print(table)

    headline, color = _RUN_STYLE[outcome.status]
    lines = [f"[{color}]{headline}[/{color}]"]
    fatal = outcome.fatal
    if fatal is not None:
        lines.append(f"Stopped at step '{fatal.step}': {escape(fatal.outcome.reason or '')}")
    for record in outcome.degraded:
        lines.append(f"Degraded: '{record.step}': {escape(record.outcome.reason or '')}")
    if outcome.share_path:
        lines.append(f"CIFS share: {outcome.share_path}")
    if outcome.nfs_path:
        lines.append(f"NFS export: {outcome.nfs_path}")
    if disconnect_error is not None:
        lines.append(f"[yellow]Warning: {escape(str(disconnect_error))}[/yellow]")
    console.print(Panel.fit("\n".join(lines), title=outcome.request.svm))


def build_summary(outcome: PipelineOutcome, *, disconnect_error: Optional[BaseException] = None) -> Dict[str, Any]:
    summary = outcome.as_dict()
    summary["schema_version"] = SUMMARY_SCHEMA_VERSION
    summary["finished_at"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
    summary["disconnect_error"] = str(disconnect_error) if disconnect_error is not None else None
    return summary


def write_summary(
    path: Path, outcome: PipelineOutcome, *, disconnect_error: Optional[BaseException] = None
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(stable_json_dumps(build_summary(outcome, disconnect_error=disconnect_error)), encoding="utf-8")
    return path
