from __future__ import annotations

import logging
import sys
from typing import List, Optional

from .config import RunConfig, load_run_config
from .credentials import resolve_cluster_credential, resolve_domain_credential
from .logging import LogConfig, setup_logging
from .models import ProvisioningRequest
from .ontap.client import ControlPlaneClient, OntapRestClient
from .ontap.session import SessionScope
from .pipeline import PipelineOutcome, RunStatus, run_pipeline
from .report import render_outcome, write_summary
from .resolver import prompts
from .resolver.resolver import MODE_BATCH, build_request, check_values, resolve
from .selector import select_resource
from .util.errors import ExitCode, as_exit_code

LOG = logging.getLogger(__name__)

_EXIT_BY_STATUS = {
    RunStatus.SUCCESS: ExitCode.OK,
    RunStatus.DEGRADED: ExitCode.DEGRADED,
    RunStatus.FAILED: ExitCode.PROVISION_FAILED,
}


def _header(cfg: RunConfig) -> None:
    from rich.panel import Panel

    subtitle = "dry run: no changes will be made" if cfg.dry_run else None
    prompts.console().print(
        Panel.fit(
            "ONTAP SVM provisioning\nSVM, DNS, volume, LIF, CIFS server, share, optional ACL/NFS, snapshot.",
            title="svm-prov",
            subtitle=subtitle,
        )
    )


def _rerun_args(request: ProvisioningRequest) -> str:
    from rich.markup import escape

    args = f"--batch \"{request.as_batch_string()}\""
    if request.search_domains:
        args += f" --search-domain \"{','.join(request.search_domains)}\""
    return escape(args)


def provision(cfg: RunConfig, *, client: Optional[ControlPlaneClient] = None) -> PipelineOutcome:
    """
    Resolve the request, open one cluster session, fill any deferred fields from the
    cluster, and run the pipeline. The session is closed exactly once on every path
    where it was opened.
    """
    resolution = resolve(cfg.supplied, batch=cfg.batch, interactive=cfg.interactive)
    # Everything except cluster-picked fields is checked before any remote call.
    check_values(resolution.values, pending=resolution.deferred)

    cluster_credential = resolve_cluster_credential(cfg.username, interactive=resolution.interactive)
    domain_credential = resolve_domain_credential(interactive=resolution.interactive)

    client = client or OntapRestClient(verify_ssl=cfg.verify_ssl, timeout=cfg.timeout, job_timeout=cfg.job_timeout)
    scope = SessionScope(client, str(resolution.values["cluster"]), cluster_credential)
    with scope as session:
        values = dict(resolution.values)
        for field in resolution.deferred:
            values[field] = select_resource(client, session, field)
        request = build_request(values)
        LOG.info(
            "Provisioning request resolved",
            extra={"mode": resolution.mode, "svm": request.svm, "cluster": request.cluster, "dry_run": cfg.dry_run},
        )
        outcome = run_pipeline(client, session, request, domain_credential=domain_credential, dry_run=cfg.dry_run)

    render_outcome(outcome, console=prompts.console(), disconnect_error=scope.disconnect_error)
    if cfg.summary_json:
        path = write_summary(cfg.summary_json, outcome, disconnect_error=scope.disconnect_error)
        LOG.info("Wrote run summary", extra={"path": str(path)})
    if resolution.mode != MODE_BATCH:
        prompts.console().print(f"[dim]Re-run non-interactively with: {_rerun_args(request)}[/dim]")
    return outcome


def main(argv: Optional[List[str]] = None) -> None:
    try:
        cfg = load_run_config(argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs, log_file=cfg.log_file))
        _header(cfg)
        outcome = provision(cfg)
        sys.exit(int(_EXIT_BY_STATUS[outcome.status]))
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("", file=sys.stderr)
        LOG.warning("Interrupted by operator")
        sys.exit(int(ExitCode.INTERRUPTED))
    except Exception as e:
        # Map to consistent exit code and log
        setup_logging(LogConfig())
        LOG.error("Provisioning aborted: %s", e, extra={"error": str(e), "error_type": type(e).__name__})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
