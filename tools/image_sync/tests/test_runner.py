import subprocess

import pytest

from image_sync.errors import CopyError, CopyTimeout
from image_sync.orchestrator import SyncOrchestrator
from image_sync.runner import CommandRunner, format_command
from image_sync.summary import Status
from image_sync.tests.fakes import FakeSession


def raising(exc):
    def run(cmd, capture_output=True, text=True, timeout=None):
        raise exc

    return run


def test_timeout_raises_copy_timeout(monkeypatch) -> None:
    monkeypatch.setattr(
        "image_sync.runner.subprocess.run", raising(subprocess.TimeoutExpired(["skopeo"], 5))
    )
    runner = CommandRunner(secrets=["s3cret"])

    with pytest.raises(CopyTimeout) as exc:
        runner.run(["skopeo", "copy", "--dest-creds", "cnb:s3cret", "a", "b"], timeout=5)

    assert exc.value.retryable
    assert exc.value.reason.startswith("timeout: ")
    assert "s3cret" not in exc.value.reason


def test_missing_tool_raises_copy_error(monkeypatch) -> None:
    monkeypatch.setattr("image_sync.runner.subprocess.run", raising(FileNotFoundError("skopeo")))

    with pytest.raises(CopyError) as exc:
        CommandRunner().run(["skopeo", "--version"])

    assert not exc.value.retryable
    assert "命令不存在: skopeo" in exc.value.reason


def test_stderr_is_masked(monkeypatch) -> None:
    def run(cmd, capture_output=True, text=True, timeout=None):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="bad creds cnb:s3cret")

    monkeypatch.setattr("image_sync.runner.subprocess.run", run)
    result = CommandRunner(secrets=["s3cret"]).run(["skopeo", "inspect"])

    assert not result.ok
    assert result.stderr == "bad creds cnb:***"


def test_format_command_quotes_and_masks() -> None:
    line = format_command(["skopeo", "copy", "--src-creds", "u:p w", "x"], ["p w"])
    assert line == "skopeo copy --src-creds 'u:***' x"


def test_timeout_becomes_failed_outcome_and_batch_continues(config, monkeypatch) -> None:
    def run(cmd, capture_output=True, text=True, timeout=None):
        if any("nginx" in part for part in cmd):
            raise subprocess.TimeoutExpired(cmd, timeout)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("image_sync.runner.subprocess.run", run)
    orchestrator = SyncOrchestrator(config, session=FakeSession(404))
    summary = orchestrator.run(["nginx:latest", "mysql:8.0"])

    assert summary.total == 2
    assert [o.reference for o in summary.success] == ["mysql:8.0"]
    assert [o.status for o in summary.failed] == [Status.FAILED]
    assert summary.failed[0].reason.startswith("timeout:")
    assert summary.exit_code == 1


def test_missing_tool_becomes_failed_outcome(config, monkeypatch) -> None:
    monkeypatch.setattr("image_sync.runner.subprocess.run", raising(FileNotFoundError("skopeo")))
    summary = SyncOrchestrator(config, session=FakeSession(404)).run(["nginx"])

    assert len(summary.failed) == 1
    assert summary.failed[0].reason == "CopyError: 命令不存在: skopeo"
