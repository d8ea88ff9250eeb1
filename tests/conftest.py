# File: tests/conftest.py

import pytest
import os
import sys
import tempfile
import threading
import sqlalchemy
from sqlalchemy import text
from sqlalchemy_utils import database_exists, create_database

# 1. Force a throwaway SQLite database before the settings module is imported
TEST_DATA_DIR = tempfile.mkdtemp(prefix="meetflow-tests-")
os.environ["USE_SQLITE"] = "true"
os.environ["SQLITE_URL"] = f"sqlite:///{os.path.join(TEST_DATA_DIR, 'meetflow_test.db')}"
os.environ["MEETFLOW_DATA_DIR"] = TEST_DATA_DIR

# 2. Add project root to path
sys.path.append(os.getcwd())

# 3. Import Settings
from meetflow.core.config.settings import settings
from meetflow.core.database.connection import build_engine, build_session_factory
from meetflow.core.jobs.service.runner import IJobRunner
from meetflow.features.broadcast.domain.interfaces import IConnection
from meetflow.features.diarization.domain.interfaces import IDiarizer, ISpeakerNamer
from meetflow.features.minutes.domain.interfaces import ISummarizer, ITokenizer
from meetflow.features.transcription.domain.interfaces import ITranscriptionProvider

# 4. Create Test Engine
TEST_ENGINE = build_engine(settings.DATABASE_URL)
TestingSessionLocal = build_session_factory(TEST_ENGINE)


@pytest.fixture(scope="session", autouse=True)
def global_setup():
    """
    Runs once per test session.
    Ensures DB exists and all tables are registered and created.
    """
    if not database_exists(TEST_ENGINE.url):
        create_database(TEST_ENGINE.url)

    # Import all models to ensure they are registered
    from meetflow.core.database.base import Base
    import meetflow.core.jobs.data.sql_models  # noqa: F401

    Base.metadata.create_all(bind=TEST_ENGINE)

    yield


@pytest.fixture(scope="function", autouse=True)
def clean_db(global_setup):
    """
    Runs before EVERY test.
    """
    from meetflow.core.database.base import Base

    Base.metadata.create_all(bind=TEST_ENGINE)

    with TEST_ENGINE.connect() as conn:
        trans = conn.begin()
        inspector = sqlalchemy.inspect(TEST_ENGINE)
        for table in inspector.get_table_names():
            conn.execute(text(f'DELETE FROM "{table}";'))
        trans.commit()

    yield


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def repository(session_factory):
    from meetflow.core.jobs.data.repository import SqlJobRepository
    return SqlJobRepository(session_factory=session_factory)


@pytest.fixture
def storage(tmp_path):
    from meetflow.features.storage.data.local_fs import LocalFileStorage
    return LocalFileStorage(root=tmp_path / "artifacts")


@pytest.fixture
def audio_ref(storage):
    """A recording already persisted in storage."""
    return storage.store(b"RIFF....WAVEfmt fake meeting audio", suffix=".wav")


# --- Fakes for the external providers ---

def make_transcript(with_speakers: bool = True):
    from meetflow.features.transcription.domain.models import Speaker, TranscriptSegment, TranscriptionResult

    segments = [
        TranscriptSegment(0.0, 4.0, "Good morning everyone, let's review the launch plan.", "SPEAKER_00", 0.9),
        TranscriptSegment(4.0, 9.0, "Marketing needs the final copy by Friday.", "SPEAKER_01", 0.8),
        TranscriptSegment(9.0, 12.0, "Agreed, I will send it on Thursday.", "SPEAKER_00", 0.85),
    ]
    speakers = []
    if with_speakers:
        speakers = [
            Speaker("SPEAKER_00", name="Alice", confidence=0.9, is_unknown=False),
            Speaker("SPEAKER_01", name="Bob", confidence=0.8, is_unknown=False),
        ]
    return TranscriptionResult(segments=segments, speakers=speakers, language="en", model_used="fake")


class FakeTranscriber(ITranscriptionProvider):
    """
    Scripted speech-to-text provider.
    `outcomes` is consumed one per call: an exception instance is raised, anything else returned.
    The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes=None, on_call=None, progress_steps=(50,)):
        self.outcomes = list(outcomes) if outcomes else [make_transcript()]
        self.on_call = on_call
        self.progress_steps = progress_steps
        self.calls = []
        self._lock = threading.Lock()

    def transcribe(self, audio_ref, language_hint=None, on_progress=None):
        with self._lock:
            self.calls.append(audio_ref)
            index = min(len(self.calls), len(self.outcomes)) - 1
        if self.on_call:
            self.on_call(len(self.calls))
        if on_progress:
            for step in self.progress_steps:
                on_progress(step)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeSummarizer(ISummarizer):
    def __init__(self, outcomes=None, on_call=None):
        self.outcomes = list(outcomes) if outcomes else ["# Meeting Minutes\n\n- Launch copy due Friday"]
        self.on_call = on_call
        self.calls = []

    @property
    def model_name(self):
        return "fake-llm"

    def summarize(self, segments, template, speakers=()):
        self.calls.append(template)
        index = min(len(self.calls), len(self.outcomes)) - 1
        if self.on_call:
            self.on_call(len(self.calls))
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class WordTokenizer(ITokenizer):
    """One token per whitespace-separated word."""

    def count_tokens(self, text):
        return len(text.split())


class RecordingConnection(IConnection):
    def __init__(self, connection_id, owner_id=None, fail=False):
        self._connection_id = connection_id
        self._owner_id = owner_id
        self.fail = fail
        self.messages = []
        self._lock = threading.Lock()

    @property
    def connection_id(self):
        return self._connection_id

    @property
    def owner_id(self):
        return self._owner_id

    def send(self, event_name, payload):
        if self.fail:
            raise ConnectionError("socket closed")
        with self._lock:
            self.messages.append((event_name, payload))

    def stages(self):
        return [payload["stage"] for _, payload in self.messages]


class FakeDiarizer(IDiarizer):
    """Returns fixed speaker turns, or raises `error` when given one."""

    def __init__(self, turns=(), error=None):
        self.turns = list(turns)
        self.error = error
        self.calls = []

    def identify_speakers(self, audio_path, num_speakers=None):
        from meetflow.features.diarization.domain.models import DiarizationResult, SpeakerSegment

        self.calls.append(audio_path)
        if self.error is not None:
            raise self.error
        segments = [SpeakerSegment(start, end, label) for start, end, label in self.turns]
        return DiarizationResult(
            source_file=str(audio_path),
            num_speakers=len({label for _, _, label in self.turns}),
            segments=segments,
        )


class FakeNamer(ISpeakerNamer):
    def __init__(self, suggestions=(), error=None):
        self.suggestions = list(suggestions)
        self.error = error
        self.calls = []

    def suggest_names(self, transcript_lines, labels):
        self.calls.append((list(transcript_lines), list(labels)))
        if self.error is not None:
            raise self.error
        return self.suggestions


class ManualJobRunner(IJobRunner):
    """Queues flows until the test calls run_pending(), so subscribers can join first."""

    def __init__(self):
        self.pending = []

    def submit(self, job_id, flow):
        self.pending.append((job_id, flow))

    def run_pending(self):
        while self.pending:
            _job_id, flow = self.pending.pop(0)
            flow()

    def wait(self, job_id, timeout=None):
        return True

    def shutdown(self, wait=True):
        self.pending.clear()


@pytest.fixture
def no_sleep_policy():
    from meetflow.core.jobs.service.retry import RetryPolicy
    return RetryPolicy(max_retries=2, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def build_pipeline(repository, storage, no_sleep_policy):
    """
    Factory wiring a PipelineService around fakes.
    Defaults to the inline runner so every flow finishes before the call returns.
    """
    from meetflow.core.jobs.service.runner import InlineJobRunner
    from meetflow.features.broadcast.service.broadcaster import ProgressBroadcaster
    from meetflow.features.minutes.service.executor import MinutesExecutor
    from meetflow.features.pipeline.service.api import PipelineService
    from meetflow.features.pipeline.service.cancellation import CancellationRegistry
    from meetflow.features.pipeline.service.controller import CancelRetryController
    from meetflow.features.pipeline.service.orchestrator import PipelineOrchestrator
    from meetflow.features.quality.service.scorer import score_transcript
    from meetflow.features.transcription.service.executor import TranscriptionExecutor

    created = []

    def _build(transcriber=None, summarizer=None, runner=None, scorer=score_transcript):
        transcriber = transcriber or FakeTranscriber()
        summarizer = summarizer or FakeSummarizer()
        broadcaster = ProgressBroadcaster()
        cancellation = CancellationRegistry()
        orchestrator = PipelineOrchestrator(
            repository=repository,
            storage=storage,
            transcription_executor=TranscriptionExecutor(
                transcriber, retry_policy=no_sleep_policy, sleep=lambda _s: None
            ),
            minutes_executor=MinutesExecutor(
                summarizer, retry_policy=no_sleep_policy, sleep=lambda _s: None
            ),
            broadcaster=broadcaster,
            cancellation=cancellation,
            runner=runner or InlineJobRunner(),
            scorer=scorer,
        )
        controller = CancelRetryController(repository, storage, orchestrator, cancellation)
        service = PipelineService(repository, storage, orchestrator, controller, broadcaster)
        created.append(service)
        return service

    yield _build

    for service in created:
        service.shutdown(wait=True)
