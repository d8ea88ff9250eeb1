import hashlib
import pytest

from meetflow.features.storage.data.local_fs import LocalFileStorage


@pytest.fixture
def temp_upload(tmp_path):
    """
    Creates a dummy file to simulate a user upload.
    """
    p = tmp_path / "standup.WAV"
    p.write_bytes(b"fake audio payload")
    return p


def test_store_is_content_addressed(storage):
    data = b"meeting audio"
    digest = hashlib.sha256(data).hexdigest()

    ref = storage.store(data, suffix="wav")

    assert ref == f"{digest[:2]}/{digest}.wav"
    assert storage.exists(ref)
    assert storage.fetch(ref) == data


def test_identical_payloads_share_one_reference(storage):
    assert storage.store(b"same", ".mp3") == storage.store(b"same", ".mp3")


def test_store_file_moves_upload_into_storage(storage, temp_upload):
    # 1. Act
    ref = storage.store_file(temp_upload)

    # 2. Assert - upload consumed, suffix normalised
    assert not temp_upload.exists()
    assert ref.endswith(".wav")
    assert storage.fetch(ref) == b"fake audio payload"
    assert not list(storage.root.rglob("*.part"))


def test_store_file_missing_upload_raises(storage, tmp_path):
    with pytest.raises(FileNotFoundError):
        storage.store_file(tmp_path / "nope.wav")


def test_delete_then_exists(storage):
    ref = storage.store(b"to be removed", ".wav")

    assert storage.delete(ref) is True
    assert storage.exists(ref) is False
    assert storage.delete(ref) is False
    with pytest.raises(FileNotFoundError):
        storage.fetch(ref)


def test_references_cannot_escape_the_root(tmp_path):
    storage = LocalFileStorage(root=tmp_path / "root")
    (tmp_path / "secret.txt").write_text("x")

    assert storage.exists("../secret.txt") is False
    with pytest.raises(ValueError):
        storage.local_path("../secret.txt")
