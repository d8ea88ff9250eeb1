import pytest
import threading
import uuid

from conftest import FakeSummarizer, FakeTranscriber, ManualJobRunner, RecordingConnection, make_transcript
from meetflow.core.enums import Stage, StageStatus
from meetflow.core.errors import (
    JobNotFoundError,
    JobNotRetryableError,
    JobTerminalError,
    PermanentError,
    SourceMissingError,
    TransientError,
)


# --- Cancel ---

def test_cancel_during_transcription_ends_cancelled_without_minutes(build_pipeline, audio_ref):
    """
    Cancel arrives while TRANSCRIPTION is RUNNING: the call finishes, its result is
    discarded at the stage boundary and MINUTES never runs.
    """
    # 1. Arrange
    runner = ManualJobRunner()
    holder = {}
    transcriber = FakeTranscriber(on_call=lambda _n: holder["service"].cancel_job(holder["job_id"]))
    summarizer = FakeSummarizer()
    service = build_pipeline(transcriber, summarizer, runner=runner)
    holder["service"] = service
    viewer = RecordingConnection("viewer")

    job_id = service.create_job(audio_ref)
    holder["job_id"] = job_id
    service.subscribe(viewer, job_id)

    # 2. Act
    runner.run_pending()

    # 3. Assert
    record = service.get_job(job_id)
    assert record.stage == Stage.CANCELLED
    assert record.transcript is None
    assert record.error is None
    assert summarizer.calls == []
    assert "completed" not in viewer.stages()
    assert viewer.messages[-1][0] == "job:complete"
    assert viewer.messages[-1][1]["stage"] == "cancelled"
    assert [n for n, _ in viewer.messages].count("job:complete") == 1


@pytest.mark.parametrize("error", [PermanentError("bad media"), KeyError("segments")])
def test_cancel_wins_over_a_failing_stage(build_pipeline, audio_ref, error):
    """
    The running call fails after the cancel was requested: the job still ends
    CANCELLED and the error never reaches the record or the subscribers.
    """
    runner = ManualJobRunner()
    holder = {}
    transcriber = FakeTranscriber(
        outcomes=[error],
        on_call=lambda _n: holder["service"].cancel_job(holder["job_id"]),
    )
    owner = RecordingConnection("owner", owner_id="alice")
    service = build_pipeline(transcriber, runner=runner)
    holder["service"] = service
    job_id = service.create_job(audio_ref, owner_id="alice")
    holder["job_id"] = job_id
    service.subscribe(owner, job_id)

    runner.run_pending()

    record = service.get_job(job_id)
    assert record.stage == Stage.CANCELLED
    assert record.error is None
    assert record.failed_stage is None
    assert "failed" not in owner.stages()
    assert all("error" not in payload for _, payload in owner.messages)
    assert [n for n, _ in owner.messages].count("job:complete") == 1


def test_cancel_stops_transient_retries_early(build_pipeline, audio_ref):
    runner = ManualJobRunner()
    holder = {}
    transcriber = FakeTranscriber(
        outcomes=[TransientError("503 temporarily unavailable")],
        on_call=lambda n: n == 1 and holder["service"].cancel_job(holder["job_id"]),
    )
    service = build_pipeline(transcriber, runner=runner)
    holder["service"] = service
    job_id = service.create_job(audio_ref)
    holder["job_id"] = job_id

    runner.run_pending()

    assert service.get_job(job_id).stage == Stage.CANCELLED
    assert len(transcriber.calls) == 1

def test_cancel_before_the_flow_starts(build_pipeline, audio_ref):
    runner = ManualJobRunner()
    transcriber = FakeTranscriber()
    service = build_pipeline(transcriber, runner=runner)
    job_id = service.create_job(audio_ref)

    returned = service.cancel_job(job_id)
    assert returned.cancel_requested is True
    runner.run_pending()

    assert service.get_job(job_id).stage == Stage.CANCELLED
    assert transcriber.calls == []


def test_cancel_of_idle_persisted_job_is_applied(build_pipeline, audio_ref):
    """
    A job with no active flow (e.g. after a restart) still reaches CANCELLED.
    """
    stalled = ManualJobRunner()
    first = build_pipeline(runner=stalled)
    job_id = first.create_job(audio_ref)
    stalled.pending.clear()

    transcriber = FakeTranscriber()
    second = build_pipeline(transcriber)
    second.cancel_job(job_id)

    assert second.get_job(job_id).stage == Stage.CANCELLED
    assert transcriber.calls == []


def test_cancel_terminal_job_is_rejected(build_pipeline, audio_ref):
    service = build_pipeline()
    job_id = service.create_job(audio_ref)

    with pytest.raises(JobTerminalError) as exc:
        service.cancel_job(job_id)

    assert exc.value.error_code == "JOB_TERMINAL"
    assert service.get_job(job_id).stage == Stage.COMPLETED


def test_cancel_unknown_job(build_pipeline):
    service = build_pipeline()

    with pytest.raises(JobNotFoundError):
        service.cancel_job(uuid.uuid4())


# --- Retry ---

def test_retry_after_minutes_failure_does_not_rerun_transcription(build_pipeline, audio_ref):
    # 1. Arrange - minutes fail permanently on the first attempt
    transcriber = FakeTranscriber()
    summarizer = FakeSummarizer(outcomes=[PermanentError("quota exhausted")])
    service = build_pipeline(transcriber, summarizer)
    job_id = service.create_job(audio_ref)

    failed = service.get_job(job_id)
    assert failed.stage == Stage.FAILED
    assert failed.failed_stage == Stage.MINUTES

    # 2. Act
    summarizer.outcomes = ["# Minutes"]
    summarizer.calls.clear()
    service.retry_job(job_id)

    # 3. Assert
    record = service.get_job(job_id)
    assert record.stage == Stage.COMPLETED
    assert record.attempt == 2
    assert record.minutes == "# Minutes"
    assert record.error is None
    assert len(transcriber.calls) == 1
    assert len(summarizer.calls) == 1


def test_retry_resumes_at_the_failed_stage_never_upload(build_pipeline, audio_ref):
    transcriber = FakeTranscriber(outcomes=[PermanentError("decoder crashed"), make_transcript()])
    service = build_pipeline(transcriber)
    job_id = service.create_job(audio_ref)
    assert service.get_job(job_id).failed_stage == Stage.TRANSCRIPTION

    viewer = RecordingConnection("viewer")
    service.subscribe(viewer, job_id)
    resumed = service.retry_job(job_id)

    assert resumed.stage == Stage.TRANSCRIPTION
    assert resumed.status == StageStatus.PENDING
    assert viewer.stages()[0] == "transcription"
    assert "upload" not in viewer.stages()
    assert service.get_job(job_id).stage == Stage.COMPLETED
    assert len(transcriber.calls) == 2


def test_retry_requires_the_source_file(build_pipeline, storage, audio_ref):
    service = build_pipeline(FakeTranscriber(outcomes=[TransientError("timeout")]))
    job_id = service.create_job(audio_ref)
    assert service.get_job(job_id).failed_stage == Stage.TRANSCRIPTION

    storage.delete(audio_ref)

    with pytest.raises(SourceMissingError) as exc:
        service.retry_job(job_id)

    assert exc.value.error_code == "SOURCE_MISSING"
    record = service.get_job(job_id)
    assert record.stage == Stage.FAILED
    assert record.attempt == 1


def test_retry_of_minutes_does_not_need_the_source_file(build_pipeline, storage, audio_ref):
    summarizer = FakeSummarizer(outcomes=[PermanentError("bad prompt"), "# Minutes"])
    service = build_pipeline(summarizer=summarizer)
    job_id = service.create_job(audio_ref)

    storage.delete(audio_ref)
    service.retry_job(job_id)

    assert service.get_job(job_id).stage == Stage.COMPLETED


@pytest.mark.parametrize("cancel", [True, False])
def test_only_failed_jobs_can_be_retried(build_pipeline, audio_ref, cancel):
    runner = ManualJobRunner()
    service = build_pipeline(runner=runner)
    job_id = service.create_job(audio_ref)
    if cancel:
        service.cancel_job(job_id)
    runner.run_pending()

    with pytest.raises(JobNotRetryableError) as exc:
        service.retry_job(job_id)

    assert exc.value.error_code == "JOB_NOT_RETRYABLE"


def test_retry_unknown_job(build_pipeline):
    with pytest.raises(JobNotFoundError):
        build_pipeline().retry_job(uuid.uuid4())


def test_retry_publishes_under_the_job_emit_lock(build_pipeline, audio_ref):
    """
    The retry transition is written and published in the same critical section as
    the orchestrator's own transitions, so subscribers see it in persisted order.
    """
    runner = ManualJobRunner()
    service = build_pipeline(FakeTranscriber(outcomes=[PermanentError("decoder crashed")]), runner=runner)
    job_id = service.create_job(audio_ref)
    runner.run_pending()
    assert service.get_job(job_id).stage == Stage.FAILED

    viewer = RecordingConnection("viewer")
    service.subscribe(viewer, job_id)
    retry = threading.Thread(target=service.retry_job, args=(job_id,))

    with service.orchestrator._emit_lock(job_id):
        retry.start()
        retry.join(timeout=0.2)
        assert retry.is_alive()
        assert viewer.messages == []

    retry.join(timeout=5)
    assert not retry.is_alive()
    assert viewer.stages() == ["transcription"]
    assert viewer.messages[0][1]["attempt"] == 2
    assert service.get_job(job_id).attempt == 2
