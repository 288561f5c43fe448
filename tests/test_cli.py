"""Tests for the command-line front end"""

import json

import pytest

from ntpcheck.app.cli import EXIT_FAILED, EXIT_OK, main


@pytest.fixture
def run_cli(tmp_path, capsys):
    log_file = tmp_path / "logs" / "cli.log"

    def run(*argv):
        code = main([*argv, "--log-file", str(log_file)])
        return code, capsys.readouterr().out

    run.log_file = log_file
    return run


def test_text_report(run_cli, udp_responder, live):
    responder = udp_responder(live(stratum=1, ref_id=b"GPS\x00"))
    code, out = run_cli("127.0.0.1", "--port", str(responder.port), "--no-dns")

    assert code == EXIT_OK
    assert "Stratum:           1 (primary reference)" in out
    assert "Reference ID:      GPS" in out
    assert "Offset:" in out and "Delay:" in out
    assert run_cli.log_file.exists()


def test_json_report(run_cli, udp_responder, live):
    responder = udp_responder(live())
    code, out = run_cli("127.0.0.1", "--port", str(responder.port), "--no-dns", "--json")

    data = json.loads(out)
    assert code == EXIT_OK
    assert len(data) == 1
    assert data[0]["ok"] is True
    assert data[0]["result"]["server"] == "127.0.0.1"
    assert data[0]["error"] is None


def test_offset_breach_fail_action(run_cli, udp_responder, live):
    responder = udp_responder(live(skew_millis=10_000))
    code, out = run_cli(
        "127.0.0.1", "--port", str(responder.port), "--no-dns",
        "--max-offset", "1000", "--offset-action", "fail", "--json",
    )

    data = json.loads(out)
    assert code == EXIT_FAILED
    assert data[0]["result"]["failed"] is True
    assert data[0]["result"]["offset_breach"]["kind"] == "offset_exceeded"


def test_offset_breach_report_action(run_cli, udp_responder, live):
    responder = udp_responder(live(skew_millis=10_000))
    code, out = run_cli(
        "127.0.0.1", "--port", str(responder.port), "--no-dns",
        "--max-offset", "1000", "--offset-action", "report",
    )
    assert code == EXIT_OK
    assert "WARNING: offset" in out


def test_offset_breach_silent_action(run_cli, udp_responder, live):
    responder = udp_responder(live(skew_millis=10_000))
    code, out = run_cli(
        "127.0.0.1", "--port", str(responder.port), "--no-dns",
        "--max-offset", "1000", "--offset-action", "silent",
    )
    assert code == EXIT_OK
    assert "WARNING" not in out


def test_timeout_reported(run_cli, udp_responder):
    responder = udp_responder(lambda request: None)
    code, out = run_cli("127.0.0.1", "--port", str(responder.port), "--timeout", "0.2")
    assert code == EXIT_FAILED
    assert "ERROR [timeout]" in out


def test_targets_file(run_cli, udp_responder, live, tmp_path):
    first = udp_responder(live(stratum=1, ref_id=b"GPS\x00"))
    second = udp_responder(live(li=3))
    targets = tmp_path / "targets.yaml"
    targets.write_text(
        f"targets:\n  - server: 127.0.0.1\n    port: {first.port}\n  - server: 127.0.0.1\n    port: {second.port}\n"
    )

    code, out = run_cli("--targets", str(targets), "--no-dns", "--json")

    data = json.loads(out)
    assert code == EXIT_FAILED
    assert [d["ok"] for d in data] == [True, False]
    assert data[1]["error"]["kind"] == "alarm_condition"


def test_fallback_needs_single_server(run_cli):
    with pytest.raises(SystemExit) as excinfo:
        run_cli("a.example.org", "b.example.org", "--fallback", "192.0.2.1")
    assert excinfo.value.code == 2


def test_missing_targets_file(run_cli, tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        run_cli("--targets", str(tmp_path / "missing.yaml"))
    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    "argv",
    [
        ("--log-level", "bogus"),
        ("--port", "70000"),
        ("--port", "0"),
        ("--timeout", "0"),
        ("--timeout", "-1"),
        ("--max-offset", "-5"),
        ("--workers", "0"),
    ],
)
def test_invalid_values_are_usage_errors(run_cli, argv):
    with pytest.raises(SystemExit) as excinfo:
        run_cli("127.0.0.1", *argv)
    assert excinfo.value.code == 2


def test_log_level_case_insensitive(run_cli, udp_responder, live):
    responder = udp_responder(live())
    code, _ = run_cli("127.0.0.1", "--port", str(responder.port), "--no-dns", "--log-level", "debug")
    assert code == EXIT_OK
