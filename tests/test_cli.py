from __future__ import annotations

import json

import pytest

from svm_provisioner import cli
from svm_provisioner.config import RunConfig
from svm_provisioner.pipeline import RunStatus
from svm_provisioner.util.errors import ConfigurationError, ControlPlaneError, SelectionError, SessionError

from conftest import CLUSTER_CREDENTIAL, DOMAIN_CREDENTIAL, INTERACTIVE_ANSWERS, SAMPLE_BATCH, STRICT_ANSWERS


def test_bad_batch_makes_no_remote_call(fake_cp, credentials_env, quiet_console) -> None:
    cfg = RunConfig(batch="c1, svmA, aggr1")
    with pytest.raises(ConfigurationError):
        cli.provision(cfg, client=fake_cp)
    assert fake_cp.calls == []


def test_batch_missing_credentials_makes_no_remote_call(fake_cp, clean_env, quiet_console) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        cli.provision(RunConfig(batch=SAMPLE_BATCH), client=fake_cp)
    assert "SVM_PROV_PASSWORD" in excinfo.value.missing_fields
    assert fake_cp.calls == []


def test_batch_run_provisions_and_disconnects(fake_cp, credentials_env, quiet_console) -> None:
    outcome = cli.provision(RunConfig(batch=SAMPLE_BATCH), client=fake_cp)

    assert outcome.status is RunStatus.SUCCESS
    assert fake_cp.calls[0] == "connect"
    assert fake_cp.calls[-1] == "disconnect"
    assert fake_cp.disconnects == 1
    assert fake_cp.domain_credentials == [DOMAIN_CREDENTIAL]
    out = quiet_console.getvalue()
    assert "Provisioning succeeded" in out
    assert "\\\\SMBX\\data" in out
    assert "Re-run non-interactively" not in out


def test_fatal_failure_still_disconnects_once(fake_cp, credentials_env, quiet_console) -> None:
    fake_cp.failures["create_volume"] = ControlPlaneError("create volume: no space")
    outcome = cli.provision(RunConfig(batch=SAMPLE_BATCH), client=fake_cp)
    assert outcome.status is RunStatus.FAILED
    assert fake_cp.disconnects == 1
    assert "Stopped at step 'volume'" in quiet_console.getvalue()


def test_unexpected_error_still_disconnects_once(fake_cp, credentials_env, quiet_console) -> None:
    fake_cp.failures["configure_dns"] = RuntimeError("unexpected")
    with pytest.raises(RuntimeError):
        cli.provision(RunConfig(batch=SAMPLE_BATCH), client=fake_cp)
    assert fake_cp.disconnects == 1


def test_connect_failure_skips_pipeline_and_disconnect(fake_cp, credentials_env, quiet_console) -> None:
    fake_cp.failures["connect"] = SessionError("connect: TLS handshake failed")
    with pytest.raises(SessionError):
        cli.provision(RunConfig(batch=SAMPLE_BATCH), client=fake_cp)
    assert fake_cp.calls == ["connect"]
    assert fake_cp.disconnects == 0


def test_disconnect_failure_is_reported_without_changing_status(
    fake_cp, credentials_env, quiet_console, tmp_path
) -> None:
    fake_cp.failures["disconnect"] = SessionError("logout failed")
    summary = tmp_path / "out" / "summary.json"
    outcome = cli.provision(RunConfig(batch=SAMPLE_BATCH, summary_json=summary), client=fake_cp)

    assert outcome.status is RunStatus.SUCCESS
    assert "logout failed" in quiet_console.getvalue()
    data = json.loads(summary.read_text(encoding="utf-8"))
    assert data["disconnect_error"] == "logout failed"
    assert data["status"] == "success"


def test_interactive_run_selects_from_cluster(fake_cp, clean_env, scripted) -> None:
    script = scripted(
        *INTERACTIVE_ANSWERS,
        "",  # search domains
        False,  # NFS
        False,  # ACL
        CLUSTER_CREDENTIAL.username,
        CLUSTER_CREDENTIAL.password,
        DOMAIN_CREDENTIAL.username,
        DOMAIN_CREDENTIAL.password,
        "2",  # aggregate
        "1",  # home node
    )
    outcome = cli.provision(RunConfig(interactive=True), client=fake_cp)

    assert not script.answers
    assert outcome.request.aggregate == "aggr2"
    assert outcome.request.home_node == "node1"
    assert outcome.request.search_domains == ("dom.local",)
    assert fake_cp.calls.index("list_aggregates") < fake_cp.calls.index("svm_exists")
    assert fake_cp.disconnects == 1


def test_interactive_rerun_hint_carries_search_domains(fake_cp, credentials_env, scripted, quiet_console) -> None:
    scripted(*INTERACTIVE_ANSWERS, "", False, False, "1", "1")
    outcome = cli.provision(RunConfig(interactive=True), client=fake_cp)

    out = quiet_console.getvalue()
    assert f"--batch \"{outcome.request.as_batch_string()}\"" in out
    assert "--search-domain \"dom.local\"" in out


def test_strict_rerun_hint_has_no_search_domain(fake_cp, credentials_env, scripted, quiet_console) -> None:
    scripted("s", *STRICT_ANSWERS)
    cli.provision(RunConfig(), client=fake_cp)
    out = quiet_console.getvalue()
    assert "Re-run non-interactively with: --batch" in out
    assert "--search-domain" not in out


def test_interactive_invalid_value_fails_before_connect(fake_cp, clean_env, scripted) -> None:
    answers = list(INTERACTIVE_ANSWERS)
    answers[answers.index("100g")] = "huge"
    scripted(*answers, "", False, False)
    with pytest.raises(ConfigurationError) as excinfo:
        cli.provision(RunConfig(interactive=True), client=fake_cp)
    assert "volume_size" in excinfo.value.invalid_fields
    assert fake_cp.calls == []


def test_selection_failure_disconnects(fake_cp, credentials_env, scripted) -> None:
    fake_cp.nodes = []
    scripted(*INTERACTIVE_ANSWERS, "", False, False, "1")
    with pytest.raises(SelectionError):
        cli.provision(RunConfig(interactive=True), client=fake_cp)
    assert fake_cp.disconnects == 1
    assert "create_svm" not in fake_cp.calls


@pytest.mark.parametrize(
    "status, code",
    [(RunStatus.SUCCESS, 0), (RunStatus.DEGRADED, 5), (RunStatus.FAILED, 1)],
)
def test_main_exit_code_follows_run_status(monkeypatch, status, code) -> None:
    class _Outcome:
        pass

    outcome = _Outcome()
    outcome.status = status
    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "_header", lambda cfg: None)
    monkeypatch.setattr(cli, "provision", lambda cfg: outcome)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--batch", SAMPLE_BATCH])
    assert excinfo.value.code == code


@pytest.mark.parametrize(
    "error, code",
    [
        (ConfigurationError("bad"), 2),
        (SessionError("down"), 3),
        (SelectionError("none"), 4),
        (KeyboardInterrupt(), 130),
    ],
)
def test_main_maps_errors_to_exit_codes(monkeypatch, error, code) -> None:
    def _raise(cfg):
        raise error

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "_header", lambda cfg: None)
    monkeypatch.setattr(cli, "provision", _raise)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--batch", SAMPLE_BATCH])
    assert excinfo.value.code == code
