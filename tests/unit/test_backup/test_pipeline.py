"""Tests for the backup pipeline state machine."""
from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from mongodb_s3_backup.backup import pipeline as pipeline_module
from mongodb_s3_backup.backup import scratch, stages
from mongodb_s3_backup.backup.job import BackupJob, JobState
from mongodb_s3_backup.backup.pipeline import BackupPipeline, run_backup
from mongodb_s3_backup.core.exceptions import (
    CleanupFailure,
    LateFault,
    ProcessFailure,
    ScratchFailure,
    UploadFailure,
)
from mongodb_s3_backup.core.settings import BackupSettings

SUCCESS_STATES = [
    JobState.PRE_CLEAN,
    JobState.DUMP,
    JobState.COMPRESS,
    JobState.UPLOAD,
    JobState.POST_CLEAN,
    JobState.DONE,
]


class FakeStages:
    """Stand-ins for the dump/compress/upload stages that touch the filesystem."""

    def __init__(self):
        self.calls = []
        self.dump_error = None
        self.compress_error = None
        self.upload_error = None
        self.upload_hook = None
        self.upload_client = None

    async def dump(self, settings, output_dir):
        self.calls.append("dump")
        (output_dir / settings.db).mkdir(parents=True)
        (output_dir / settings.db / "orders.bson").write_bytes(b"\x00" * 16)
        if self.dump_error:
            raise self.dump_error

    async def compress(self, working_dir, input_name, output_name, tar_path="tar"):
        self.calls.append("compress")
        if self.compress_error:
            raise self.compress_error
        (working_dir / output_name).write_bytes(b"archive")

    async def upload(self, settings, source_path, destination_key, client=None):
        self.calls.append("upload")
        self.upload_client = client
        assert source_path.exists()
        if self.upload_error:
            raise self.upload_error
        if self.upload_hook:
            self.upload_hook()
        return f"s3://{settings.bucket}/{destination_key}"


@pytest.fixture
def fake_stages(monkeypatch) -> FakeStages:
    fakes = FakeStages()
    monkeypatch.setattr(stages, "dump", fakes.dump)
    monkeypatch.setattr(stages, "compress", fakes.compress)
    monkeypatch.setattr(stages, "upload", fakes.upload)
    return fakes


@pytest.fixture
def removals(monkeypatch) -> list:
    """Record every remove_all call while still removing the paths."""
    calls = []
    real_remove_all = scratch.remove_all

    async def counting_remove_all(paths):
        calls.append(list(paths))
        return await real_remove_all(paths)

    monkeypatch.setattr(scratch, "remove_all", counting_remove_all)
    return calls


@pytest.fixture
def no_pre_clean(scratch_root) -> BackupSettings:
    return BackupSettings(scratch_root=scratch_root, pre_clean=False)


def _assert_cleaned(job) -> None:
    assert not job.backup_dir.exists()
    assert not job.archive_path.exists()


@pytest.mark.unit
class TestSuccessfulRun:
    """Happy path through every stage."""

    @pytest.mark.asyncio
    async def test_runs_stages_in_order(self, job, fake_stages, removals, no_pre_clean):
        result = await BackupPipeline(job, no_pre_clean).run()

        assert result.ok
        assert result.error is None
        assert fake_stages.calls == ["dump", "compress", "upload"]
        assert result.states == SUCCESS_STATES
        assert result.s3_uri == "s3://backups/mongodb/orders_2024_1_5_1704456000000.tar.gz"
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_passes_injected_client_to_upload(self, job, fake_stages, no_pre_clean):
        client = object()

        await BackupPipeline(job, no_pre_clean, s3_client=client).run()

        assert fake_stages.upload_client is client

    @pytest.mark.asyncio
    async def test_pre_clean_removes_stale_paths(self, monkeypatch, job, fake_stages, backup_settings):
        job.backup_dir.mkdir(parents=True)
        (job.backup_dir / "stale.bson").write_text("old")
        job.archive_path.write_bytes(b"old archive")
        seen = {}
        real_dump = fake_stages.dump

        async def checking_dump(settings, output_dir):
            seen["stale_dir"] = job.backup_dir.exists()
            seen["stale_archive"] = job.archive_path.exists()
            await real_dump(settings, output_dir)

        monkeypatch.setattr(stages, "dump", checking_dump)
        result = await BackupPipeline(job, backup_settings).run()

        assert result.ok
        assert seen == {"stale_dir": False, "stale_archive": False}
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_run_twice_is_rejected(self, job, fake_stages, no_pre_clean):
        backup = BackupPipeline(job, no_pre_clean)
        await backup.run()

        with pytest.raises(RuntimeError):
            await backup.run()

    @pytest.mark.asyncio
    async def test_result_serializes(self, job, fake_stages, no_pre_clean):
        result = await BackupPipeline(job, no_pre_clean).run()

        data = result.to_dict()
        assert data["status"] == "success"
        assert data["error_code"] is None
        assert data["states"] == ["pre_clean", "dump", "compress", "upload", "post_clean", "done"]


@pytest.mark.unit
class TestStageFailures:
    """A failing stage aborts the sequence but cleanup still runs once."""

    @pytest.mark.asyncio
    async def test_dump_failure_skips_later_stages(self, job, fake_stages, removals, no_pre_clean):
        fake_stages.dump_error = ProcessFailure(stage="dump", exit_code=1, command="mongodump")

        result = await BackupPipeline(job, no_pre_clean).run()

        assert not result.ok
        assert result.error is fake_stages.dump_error
        assert fake_stages.calls == ["dump"]
        assert result.states == [
            JobState.PRE_CLEAN,
            JobState.DUMP,
            JobState.ABORTED,
            JobState.POST_CLEAN,
            JobState.DONE,
        ]
        assert result.s3_uri is None
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_compress_failure(self, job, fake_stages, removals, no_pre_clean):
        fake_stages.compress_error = ProcessFailure(stage="compress", exit_code=2, command="tar")

        result = await BackupPipeline(job, no_pre_clean).run()

        assert result.error.exit_code == 2
        assert fake_stages.calls == ["dump", "compress"]
        assert JobState.UPLOAD not in result.states
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_upload_failure(self, job, fake_stages, removals, no_pre_clean):
        cause = ConnectionResetError(104, "Connection reset by peer")
        fake_stages.upload_error = UploadFailure(cause, key=job.destination_key)

        result = await BackupPipeline(job, no_pre_clean).run()

        assert isinstance(result.error, UploadFailure)
        assert result.error.cause is cause
        assert result.states[-3:] == [JobState.ABORTED, JobState.POST_CLEAN, JobState.DONE]
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_raise_for_error(self, job, fake_stages, no_pre_clean):
        fake_stages.dump_error = ProcessFailure(stage="dump", exit_code=1)

        result = await BackupPipeline(job, no_pre_clean).run()

        with pytest.raises(ProcessFailure):
            result.raise_for_error()

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_after_cleanup(self, job, fake_stages, removals, no_pre_clean):
        fake_stages.dump_error = KeyError("db")
        backup = BackupPipeline(job, no_pre_clean)

        with pytest.raises(KeyError):
            await backup.run()

        assert backup.states[-2:] == [JobState.ABORTED, JobState.POST_CLEAN]
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_unusable_scratch_root_is_reported(
        self, tmp_path, mongodb_settings, s3_settings, fixed_now, fake_stages, removals, caplog
    ):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        root = blocker / "scratch"
        job = BackupJob.create(mongodb_settings, s3_settings, scratch_root=root, now=fixed_now)
        caplog.set_level(logging.ERROR, logger="mongodb_s3_backup.backup.pipeline")

        result = await BackupPipeline(job, BackupSettings(scratch_root=root)).run()

        assert not result.ok
        assert isinstance(result.error, ScratchFailure)
        assert isinstance(result.error.cause, NotADirectoryError)
        assert result.error.extra["path"] == str(root)
        assert fake_stages.calls == []
        assert result.states == [
            JobState.PRE_CLEAN,
            JobState.ABORTED,
            JobState.POST_CLEAN,
            JobState.DONE,
        ]
        assert len(removals) == 2
        assert any(r.getMessage() == f"Cannot prepare scratch directory {root}" for r in caplog.records)


@pytest.mark.unit
class TestCleanupFailures:
    """How cleanup failures relate to the job's error."""

    @pytest.fixture
    def failing_cleanup(self, monkeypatch, job):
        failure = CleanupFailure(job.archive_path, PermissionError(13, "Permission denied"))

        async def remove_all(paths):
            return [failure]

        monkeypatch.setattr(scratch, "remove_all", remove_all)
        return failure

    @pytest.mark.asyncio
    async def test_cleanup_failure_becomes_error_of_successful_job(
        self, job, fake_stages, failing_cleanup, no_pre_clean
    ):
        result = await BackupPipeline(job, no_pre_clean).run()

        assert result.error is failing_cleanup
        assert result.s3_uri is not None
        assert result.states[-1] == JobState.DONE

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_mask_stage_error(
        self, job, fake_stages, failing_cleanup, no_pre_clean
    ):
        fake_stages.dump_error = ProcessFailure(stage="dump", exit_code=1)

        result = await BackupPipeline(job, no_pre_clean).run()

        assert result.error is fake_stages.dump_error


@pytest.mark.unit
class TestLateFaults:
    """Errors escaping the upload's result channel are raised, not returned."""

    @pytest.mark.asyncio
    async def test_callback_error_after_upload_returns(self, job, fake_stages, removals, no_pre_clean):
        def broken_pipe():
            raise BrokenPipeError(32, "Broken pipe")

        fake_stages.upload_hook = lambda: asyncio.get_running_loop().call_soon(broken_pipe)
        backup = BackupPipeline(job, no_pre_clean)

        with pytest.raises(LateFault) as exc_info:
            await backup.run()

        assert isinstance(exc_info.value.cause, BrokenPipeError)
        assert exc_info.value.stage == "upload"
        assert len(removals) == 1
        assert JobState.POST_CLEAN in backup.states
        assert JobState.DONE not in backup.states
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_transfer_thread_error(self, job, fake_stages, removals, no_pre_clean):
        def transfer():
            raise ConnectionResetError(104, "Connection reset by peer")

        def start_transfer():
            thread = threading.Thread(target=transfer)
            thread.start()
            thread.join()

        fake_stages.upload_hook = start_transfer
        backup = BackupPipeline(job, no_pre_clean)

        with pytest.raises(LateFault) as exc_info:
            await backup.run()

        assert isinstance(exc_info.value.cause, ConnectionResetError)
        assert len(removals) == 1
        _assert_cleaned(job)

    @pytest.mark.asyncio
    async def test_loop_handler_restored_after_late_fault(self, job, fake_stages, no_pre_clean):
        loop = asyncio.get_running_loop()
        handler_before = loop.get_exception_handler()
        hook_before = threading.excepthook

        def broken_pipe():
            raise BrokenPipeError(32, "Broken pipe")

        fake_stages.upload_hook = lambda: loop.call_soon(broken_pipe)

        with pytest.raises(LateFault):
            await BackupPipeline(job, no_pre_clean).run()

        assert loop.get_exception_handler() is handler_before
        assert threading.excepthook is hook_before


@pytest.mark.unit
class TestRunBackup:
    """The run_backup convenience entry point."""

    @pytest.mark.asyncio
    async def test_builds_job_and_runs(self, mongodb_settings, s3_settings, backup_settings, fake_stages):
        result = await run_backup(mongodb_settings, s3_settings, backup_settings)

        assert result.ok
        assert result.job.archive_name.startswith("orders_")
        assert result.job.archive_name.endswith(".tar.gz")
        assert result.job.scratch_root == backup_settings.scratch_root

    @pytest.mark.asyncio
    async def test_uses_default_backup_settings(self, monkeypatch, mongodb_settings, s3_settings, scratch_root):
        monkeypatch.setenv("BACKUP_SCRATCH_ROOT", str(scratch_root))
        seen = {}

        async def fake_run(self):
            seen["scratch_root"] = self.job.scratch_root
            return "result"

        monkeypatch.setattr(pipeline_module.BackupPipeline, "run", fake_run)

        assert await run_backup(mongodb_settings, s3_settings) == "result"
        assert seen["scratch_root"] == scratch_root
