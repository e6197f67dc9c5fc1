"""Tests for the transcriptq command line."""

import pytest
from click.testing import CliRunner

from transcriptq import cli as cli_module
from transcriptq.cli import cli
from transcriptq.models import JobStatus
from transcriptq.storage import Storage


@pytest.fixture
def env(data_dir, tmp_path, monkeypatch):
    resource_dir = tmp_path / "resources"
    (resource_dir / "uploads").mkdir(parents=True)
    (resource_dir / "uploads" / "lesson.mp3").write_bytes(b"ID3" + b"\x00" * 64)
    monkeypatch.setenv("TRANSCRIPTQ_DATA_DIR", data_dir)
    monkeypatch.setenv("TRANSCRIPTQ_RESOURCE_DIR", str(resource_dir))
    monkeypatch.delenv("TRANSCRIPTQ_SMTP_HOST", raising=False)
    return data_dir


@pytest.fixture
def runner():
    return CliRunner()


def test_submit_and_status(env, runner):
    result = runner.invoke(cli, ["submit", "OBS-42", "uploads/lesson.mp3", "--owner", "t@example.org"])
    assert result.exit_code == 0, result.output
    assert "queued" in result.output

    storage = Storage(env)
    [job_id] = storage.queue_snapshot()
    job = storage.get_job(job_id)
    assert job.resource.size == 67
    assert job.resource.mime_type == "audio/mpeg"

    result = runner.invoke(cli, ["status", job_id])
    assert result.exit_code == 0
    assert "pending" in result.output


def test_submit_missing_resource(env, runner):
    result = runner.invoke(cli, ["submit", "OBS-42", "uploads/nope.mp3", "--owner", "t@example.org"])
    assert result.exit_code == 1
    assert Storage(env).queue_snapshot() == []


def test_status_unknown_job(env, runner):
    result = runner.invoke(cli, ["status", "missing"])
    assert result.exit_code == 1


def test_list_and_stats(env, runner):
    runner.invoke(cli, ["submit", "OBS-1", "uploads/lesson.mp3", "--owner", "t@example.org"])
    result = runner.invoke(cli, ["list", "--status", "pending"])
    assert result.exit_code == 0
    assert "pending" in result.output

    result = runner.invoke(cli, ["stats"])
    assert result.exit_code == 0
    assert "Pending:      1" in result.output


def test_config_set(env, runner):
    result = runner.invoke(cli, ["config", "set", "batch-size", "10"])
    assert result.exit_code == 0
    assert Storage(env).get_config().batch_size == 10

    result = runner.invoke(cli, ["config", "set", "batch-size", "zero"])
    assert result.exit_code == 1

    result = runner.invoke(cli, ["config", "set", "colour", "blue"])
    assert result.exit_code == 1
    assert "Unknown config key" in result.output


def test_schedule_install(env, runner):
    result = runner.invoke(cli, ["schedule", "install", "--every", "30"])
    assert result.exit_code == 0
    result = runner.invoke(cli, ["schedule", "show"])
    assert "every 30 minutes" in result.output

    result = runner.invoke(cli, ["schedule", "install", "--every", "7"])
    assert result.exit_code != 0


def test_tick_and_outbox(service, client, make_job, runner, monkeypatch):
    monkeypatch.setattr(cli_module, "get_service", lambda: service)
    job_id = make_job()

    result = runner.invoke(cli, ["tick"])
    assert result.exit_code == 0
    assert "submitted 1" in result.output

    client.succeed("handle-1", "Hello world")
    runner.invoke(cli, ["tick"])
    assert service.storage.get_job(job_id).status == JobStatus.COMPLETE

    result = runner.invoke(cli, ["outbox"])
    assert "Your transcription is ready" in result.output
