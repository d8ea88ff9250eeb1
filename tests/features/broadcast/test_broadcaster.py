import threading
import uuid

from conftest import RecordingConnection
from meetflow.core.enums import Stage, StageStatus
from meetflow.features.broadcast.data.queue_connection import QueueConnection
from meetflow.features.broadcast.data.room_registry import RoomRegistry
from meetflow.features.broadcast.domain.models import COMPLETE_EVENT, STEP_EVENT, ProgressEvent
from meetflow.features.broadcast.service.broadcaster import ProgressBroadcaster


def _event(job_id, stage=Stage.TRANSCRIPTION, status=StageStatus.RUNNING, progress=10, **kwargs):
    return ProgressEvent(job_id=job_id, stage=stage, status=status, progress=progress, **kwargs)


def test_publish_reaches_every_member_of_the_room_only():
    broadcaster = ProgressBroadcaster()
    job_a, job_b = uuid.uuid4(), uuid.uuid4()
    viewer_1, viewer_2, other = RecordingConnection("c1"), RecordingConnection("c2"), RecordingConnection("c3")
    broadcaster.subscribe(viewer_1, job_a)
    broadcaster.subscribe(viewer_2, job_a)
    broadcaster.subscribe(other, job_b)

    delivered = broadcaster.publish(_event(job_a))

    assert delivered == 2
    assert len(viewer_1.messages) == 1
    assert len(viewer_2.messages) == 1
    assert other.messages == []
    name, payload = viewer_1.messages[0]
    assert name == STEP_EVENT
    assert payload["jobId"] == str(job_a)
    assert payload["stage"] == "transcription"
    assert payload["status"] == "running"
    assert payload["progress"] == 10
    assert "emittedAt" in payload


def test_events_arrive_in_publish_order():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_id)

    for progress in (0, 25, 50, 75):
        broadcaster.publish(_event(job_id, progress=progress))

    assert [p["progress"] for _, p in viewer.messages] == [0, 25, 50, 75]


def test_no_history_replay_on_subscribe():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    broadcaster.publish(_event(job_id, progress=30))

    late = RecordingConnection("late")
    broadcaster.subscribe(late, job_id)
    assert late.messages == []

    broadcaster.publish(_event(job_id, progress=60))
    assert [p["progress"] for _, p in late.messages] == [60]


def test_only_one_terminal_event_per_attempt():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_id)

    first = broadcaster.publish(_event(job_id, Stage.COMPLETED, StageStatus.DONE, 100))
    second = broadcaster.publish(_event(job_id, Stage.FAILED, StageStatus.FAILED, 100, error="late failure"))

    assert first == 1
    assert second == 0
    assert viewer.messages == [(COMPLETE_EVENT, viewer.messages[0][1])]
    assert broadcaster.has_terminal(job_id)


def test_retried_attempt_may_terminate_again():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_id)

    broadcaster.publish(_event(job_id, Stage.FAILED, StageStatus.FAILED, 40, attempt=1))
    broadcaster.publish(_event(job_id, Stage.COMPLETED, StageStatus.DONE, 100, attempt=2))

    assert [p["stage"] for _, p in viewer.messages] == ["failed", "completed"]


def test_terminal_bookkeeping_keeps_one_entry_per_job():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_id)

    for attempt in (1, 2, 3):
        broadcaster.publish(_event(job_id, Stage.FAILED, StageStatus.FAILED, 40, attempt=attempt))

    assert len(broadcaster._terminal_sent) == 1
    assert broadcaster.has_terminal(job_id, attempt=3)
    assert not broadcaster.has_terminal(job_id, attempt=4)
    assert len(viewer.messages) == 3


def test_late_terminal_event_of_an_older_attempt_is_refused():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_id)

    broadcaster.publish(_event(job_id, Stage.COMPLETED, StageStatus.DONE, 100, attempt=2))
    delivered = broadcaster.publish(_event(job_id, Stage.FAILED, StageStatus.FAILED, 40, attempt=1))

    assert delivered == 0
    assert [p["stage"] for _, p in viewer.messages] == ["completed"]


def test_error_text_only_reaches_the_owner():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    owner = RecordingConnection("owner-tab", owner_id="user-1")
    colleague = RecordingConnection("colleague-tab", owner_id="user-2")
    anonymous = RecordingConnection("anon")
    for connection in (owner, colleague, anonymous):
        broadcaster.subscribe(connection, job_id)

    broadcaster.publish(_event(job_id, Stage.FAILED, StageStatus.FAILED, 40,
                               error="Unsupported or corrupt media", owner_id="user-1"))

    assert owner.messages[0][1]["error"] == "Unsupported or corrupt media"
    assert "error" not in colleague.messages[0][1]
    assert "error" not in anonymous.messages[0][1]
    assert colleague.messages[0][1]["stage"] == "failed"


def test_failing_connection_is_dropped_without_blocking_others():
    broadcaster = ProgressBroadcaster()
    job_id = uuid.uuid4()
    broken = RecordingConnection("broken", fail=True)
    healthy = RecordingConnection("healthy")
    broadcaster.subscribe(broken, job_id)
    broadcaster.subscribe(healthy, job_id)

    assert broadcaster.publish(_event(job_id)) == 1
    assert len(healthy.messages) == 1
    assert [c.connection_id for c in broadcaster.registry.members(job_id)] == ["healthy"]


def test_unsubscribe_and_disconnect():
    broadcaster = ProgressBroadcaster()
    job_a, job_b = uuid.uuid4(), uuid.uuid4()
    viewer = RecordingConnection("c1")
    broadcaster.subscribe(viewer, job_a)
    broadcaster.subscribe(viewer, job_b)

    broadcaster.unsubscribe(viewer, job_a)
    assert broadcaster.publish(_event(job_a)) == 0
    assert broadcaster.registry.rooms_for("c1") == {job_b}

    broadcaster.disconnect(viewer)
    assert broadcaster.publish(_event(job_b)) == 0
    assert broadcaster.registry.rooms_for("c1") == set()


def test_room_registry_under_concurrent_churn():
    """
    Many threads joining and leaving while another publishes: publish always sees a
    consistent snapshot and the table ends empty.
    """
    registry = RoomRegistry()
    broadcaster = ProgressBroadcaster(registry)
    job_id = uuid.uuid4()
    errors = []

    def churn(n):
        try:
            for i in range(200):
                connection = RecordingConnection(f"c{n}-{i}")
                broadcaster.subscribe(connection, job_id)
                broadcaster.publish(_event(job_id, progress=i % 100))
                broadcaster.disconnect(connection)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=churn, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.members(job_id) == []


def test_queue_connection_drops_instead_of_blocking():
    connection = QueueConnection("q1", owner_id="user-1", maxsize=2)

    for progress in (10, 20, 30):
        connection.send(STEP_EVENT, {"jobId": "x", "progress": progress})

    assert connection.dropped == 1
    assert [p["progress"] for _, p in connection.drain()] == [10, 20]
    assert connection.drain() == []
