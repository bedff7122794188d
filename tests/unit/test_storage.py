"""
Unit tests for storage layer.
"""

import json
import threading
import time
from pathlib import Path

import pytest

from ledger.schema import CustodyRecord, DeploymentRecord, LedgerState, NetworkSnapshot
from ledger.storage import (
    FileLock, IntegrityError, JSONStorage, LockTimeoutError, SnapshotStorage, StorageError
)

ADDRESS = "0x" + "12" * 20


class TestFileLock:
    """Test file locking mechanism."""

    @pytest.fixture
    def temp_file(self, tmp_path):
        return tmp_path / "data.json"

    def test_file_lock_creation(self, temp_file):
        lock = FileLock(temp_file)

        assert lock.lock_file_path == temp_file.with_suffix('.json.lock')
        assert not lock.is_locked()

    def test_file_lock_acquire_release(self, temp_file):
        lock = FileLock(temp_file)

        assert lock.acquire()
        assert lock.is_locked()
        assert lock.lock_file_path.exists()

        lock.release()
        assert not lock.is_locked()
        assert not lock.lock_file_path.exists()

    def test_file_lock_is_reentrant(self, temp_file):
        lock = FileLock(temp_file)

        with lock:
            with lock:
                assert lock.is_locked()
            assert lock.is_locked()
        assert not lock.is_locked()

    def test_file_lock_timeout_on_foreign_lock(self, temp_file):
        # A lock file left by another process
        temp_file.with_suffix('.json.lock').touch()
        lock = FileLock(temp_file, timeout=0.2)

        with pytest.raises(LockTimeoutError):
            lock.acquire()
        assert not lock.is_locked()

    def test_file_lock_blocks_other_threads(self, temp_file):
        lock = FileLock(temp_file, timeout=5.0)
        events = []

        def worker():
            with lock:
                events.append("worker")

        with lock:
            thread = threading.Thread(target=worker)
            thread.start()
            time.sleep(0.1)
            events.append("main")

        thread.join()
        assert events == ["main", "worker"]


class TestJSONStorage:
    """Test JSON document storage."""

    @pytest.fixture(params=[False, True], ids=["plain", "compressed"])
    def storage(self, request, tmp_path):
        name = "doc.json.gz" if request.param else "doc.json"
        return JSONStorage(tmp_path / name, compressed=request.param, backup_count=3)

    def test_read_missing_file(self, storage):
        assert storage.read() == {}
        assert not storage.exists()
        assert storage.size() == 0

    def test_write_and_read(self, storage):
        checksum = storage.write({"a": 1, "nested": {"b": [1, 2]}})

        assert storage.read() == {"a": 1, "nested": {"b": [1, 2]}}
        assert storage.verify(checksum)
        assert not storage.verify("0" * 64)
        assert storage.size() > 0

    def test_update(self, storage):
        storage.write({"count": 1})
        storage.update(lambda data: {"count": data["count"] + 1})
        assert storage.read() == {"count": 2}

    def test_backups_rotate(self, storage):
        for i in range(6):
            storage.write({"i": i})

        backups = storage.list_backups()
        assert len(backups) == 3
        assert backups == sorted(backups, key=lambda p: p.name, reverse=True)

    def test_no_temp_file_left_behind(self, storage):
        storage.write({"a": 1})
        leftovers = [p for p in storage.file_path.parent.iterdir() if p.name.endswith('.tmp')]
        assert leftovers == []

    def test_restore_backup(self, tmp_path):
        storage = JSONStorage(tmp_path / "doc.json", backup_count=5)
        storage.write({"version": 1})
        storage.write({"version": 2})

        prefix = "doc_"
        timestamp = storage.list_backups()[0].name[len(prefix):-len(".json")]
        assert storage.restore_backup(timestamp)
        assert storage.read() == {"version": 1}
        assert not storage.restore_backup("19700101_000000_000000")

    def test_corrupt_file_raises_integrity_error(self, tmp_path):
        path = tmp_path / "doc.json"
        path.write_text("{not json")
        storage = JSONStorage(path)

        with pytest.raises(IntegrityError):
            storage.read()
        assert not storage.verify()

    def test_integrity_error_is_storage_error(self):
        assert issubclass(IntegrityError, StorageError)
        assert issubclass(LockTimeoutError, StorageError)


class TestSnapshotStorage:
    """Test snapshot persistence."""

    @pytest.fixture
    def snapshot(self):
        return NetworkSnapshot(
            block_number=3,
            accounts=[ADDRESS],
            nonces={ADDRESS: 1},
            deployments={
                ADDRESS: DeploymentRecord(
                    address=ADDRESS, contract_name="MockNFT", deployer=ADDRESS,
                    storage={"owner": ADDRESS}
                )
            }
        )

    def test_empty_storage_loads_default_snapshot(self, tmp_path):
        storage = SnapshotStorage(tmp_path / "net")
        assert not storage.exists()
        snapshot = storage.load_snapshot()
        assert snapshot.block_number == 0
        assert snapshot.deployments == {}

    def test_save_and_load(self, tmp_path, snapshot):
        storage = SnapshotStorage(tmp_path / "net")
        storage.save_snapshot(snapshot)

        loaded = storage.load_snapshot()
        assert loaded.block_number == 3
        assert loaded.nonces == {ADDRESS: 1}
        assert loaded.get_deployment(ADDRESS).contract_name == "MockNFT"
        assert (tmp_path / "net" / "network.json").exists()

    def test_compressed_storage(self, tmp_path, snapshot):
        storage = SnapshotStorage(tmp_path / "net", compressed=True)
        storage.save_snapshot(snapshot)

        assert (tmp_path / "net" / "network.json.gz").exists()
        assert storage.load_snapshot().block_number == 3
        assert storage.get_storage_info()['compressed'] is True

    def test_invalid_snapshot_raises_storage_error(self, tmp_path):
        storage = SnapshotStorage(tmp_path / "net")
        storage.save_raw({"block_number": -5})

        with pytest.raises(StorageError):
            storage.load_snapshot()

    def test_update_snapshot(self, tmp_path, snapshot):
        storage = SnapshotStorage(tmp_path / "net")
        storage.save_snapshot(snapshot)

        def bump(current):
            current.block_number += 1
            return current

        storage.update_snapshot(bump)
        assert storage.load_snapshot().block_number == 4

    @pytest.mark.parametrize("compressed", [False, True])
    def test_list_and_restore_backups(self, tmp_path, snapshot, compressed):
        storage = SnapshotStorage(tmp_path / "net", compressed=compressed)
        storage.save_snapshot(snapshot)
        snapshot.block_number = 10
        storage.save_snapshot(snapshot)

        timestamps = storage.list_backups()
        assert len(timestamps) == 1
        assert storage.restore_backup(timestamps[0])
        assert storage.load_snapshot().block_number == 3

    def test_storage_info(self, tmp_path, snapshot):
        storage = SnapshotStorage(tmp_path / "net", backup_count=2)
        storage.save_snapshot(snapshot)
        info = storage.get_storage_info()

        assert info['exists'] is True
        assert info['size_bytes'] > 0
        assert info['backup_count'] == 0
        assert Path(info['file_path']).name == "network.json"

    def test_saved_document_is_plain_json(self, tmp_path, snapshot):
        storage = SnapshotStorage(tmp_path / "net")
        storage.save_snapshot(snapshot)

        data = json.loads((tmp_path / "net" / "network.json").read_text())
        assert data["metadata"]["version"] == snapshot.metadata.version
        assert data["deployments"][ADDRESS]["storage"] == {"owner": ADDRESS}


def test_custody_keys_survive_persistence(tmp_path):
    state = LedgerState(owner=ADDRESS, custody={5: CustodyRecord(original_holder=ADDRESS)})
    storage = JSONStorage(tmp_path / "state.json")
    storage.write(state.model_dump(mode='json'))

    assert LedgerState.model_validate(storage.read()) == state
