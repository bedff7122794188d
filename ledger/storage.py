"""
NFT Freeze - Snapshot Storage Backend

This module persists the network snapshot as a single JSON document (plain or
gzip) guarded by a sidecar lock file. Writes go through a temp file and an
atomic rename; the previous document is kept in a rotating backups folder.
"""

import fcntl
import gzip
import hashlib
import json
import logging
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Union

from .schema import NetworkSnapshot

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S_%f'
LOCK_POLL_INTERVAL = 0.05


class StorageError(Exception):
    """Base exception for snapshot persistence failures."""
    pass


class LockTimeoutError(StorageError):
    """Raised when the snapshot lock cannot be taken in time."""
    pass


class IntegrityError(StorageError):
    """Raised when a stored document is not valid JSON."""
    pass


class FileLock:
    """
    Cross-process lock on a document, held through a sidecar '.lock' file.

    The lock file is created exclusively and flock'ed; it exists only while
    the lock is held. Within a process the lock is re-entrant per thread.
    """

    def __init__(self, file_path: Union[str, Path], timeout: float = 30.0):
        self.file_path = Path(file_path)
        self.lock_file_path = self.file_path.with_name(self.file_path.name + '.lock')
        self.timeout = timeout
        self.lock_fd: Optional[int] = None
        self._owner = RLock()
        self._depth = 0

    def _try_create(self) -> Optional[int]:
        try:
            fd = os.open(str(self.lock_file_path), os.O_CREAT | os.O_EXCL | os.O_RDWR)
        except FileExistsError:
            return None
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return None
        return fd

    def acquire(self) -> bool:
        deadline = time.monotonic() + self.timeout
        if not self._owner.acquire(timeout=self.timeout):
            raise LockTimeoutError(f"Lock on {self.file_path} not acquired within {self.timeout}s")

        if self._depth:
            self._depth += 1
            return True

        try:
            while True:
                fd = self._try_create()
                if fd is not None:
                    self.lock_fd = fd
                    self._depth = 1
                    return True
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"Lock on {self.file_path} not acquired within {self.timeout}s"
                    )
                time.sleep(LOCK_POLL_INTERVAL)
        except OSError as e:
            self._owner.release()
            raise StorageError(f"Cannot lock {self.file_path}: {e}")
        except LockTimeoutError:
            self._owner.release()
            raise

    def release(self) -> None:
        if not self._depth:
            return

        self._depth -= 1
        if not self._depth and self.lock_fd is not None:
            fd, self.lock_fd = self.lock_fd, None
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
                self.lock_file_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to clean up lock {self.lock_file_path}: {e}")
        self._owner.release()

    def is_locked(self) -> bool:
        return self.lock_fd is not None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class BackupRotation:
    """Timestamped copies of a document, keeping the newest `keep` files."""

    def __init__(self, document: Path, keep: int):
        self.document = document
        self.keep = keep
        self.directory = document.parent / 'backups'
        # network.json.gz -> ("network", ".json.gz")
        base, _, extension = document.name.partition('.')
        self._prefix = f"{base}_"
        self._suffix = f".{extension}" if extension else ""

    def path_for(self, timestamp: str) -> Path:
        return self.directory / f"{self._prefix}{timestamp}{self._suffix}"

    def timestamp_of(self, backup: Path) -> str:
        return backup.name[len(self._prefix):len(backup.name) - len(self._suffix)]

    def list(self) -> List[Path]:
        """Backups, newest first."""
        if not self.directory.exists():
            return []
        matches = self.directory.glob(f"{self._prefix}*{self._suffix}")
        return sorted(matches, key=lambda p: p.name, reverse=True)

    def snapshot(self) -> Optional[Path]:
        """Copy the current document aside and prune old copies."""
        if not self.document.exists():
            return None

        target = self.path_for(datetime.utcnow().strftime(BACKUP_TIMESTAMP_FORMAT))
        self.directory.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.document, target)

        for stale in self.list()[self.keep:]:
            try:
                stale.unlink()
            except OSError as e:
                logger.warning(f"Failed to prune backup {stale}: {e}")
        return target


class JSONStorage:
    """A locked JSON document on disk, optionally gzip compressed."""

    def __init__(
        self,
        file_path: Union[str, Path],
        compressed: bool = False,
        backup_count: int = 5,
        lock_timeout: float = 30.0
    ):
        self.file_path = Path(file_path)
        self.compressed = compressed
        self.backup_count = backup_count
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self.backups = BackupRotation(self.file_path, backup_count)
        self._lock = FileLock(self.file_path, timeout=lock_timeout)
        self._open = gzip.open if compressed else open

    @property
    def backup_dir(self) -> Path:
        return self.backups.directory

    @staticmethod
    def checksum(payload: bytes) -> str:
        return hashlib.sha256(payload).hexdigest()

    def _load_bytes(self) -> bytes:
        with self._open(self.file_path, 'rb') as f:
            return f.read()

    def _store_bytes(self, payload: bytes) -> None:
        staging = self.file_path.with_name(self.file_path.name + '.tmp')
        try:
            with self._open(staging, 'wb') as f:
                f.write(payload)
            os.replace(staging, self.file_path)
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self.file_path}: {e}")

    def read(self) -> Dict[str, Any]:
        """
        Load the document.

        Returns:
            The stored mapping, or {} when the file is absent or empty

        Raises:
            IntegrityError: If the file does not hold valid JSON
        """
        with self._lock:
            if not self.file_path.exists():
                return {}
            try:
                payload = self._load_bytes()
            except OSError as e:
                raise StorageError(f"Failed to read {self.file_path}: {e}")

        if not payload:
            return {}
        try:
            return json.loads(payload)
        except ValueError as e:
            raise IntegrityError(f"Invalid JSON data in {self.file_path}: {e}")

    def write(self, data: Dict[str, Any], create_backup: bool = True) -> str:
        """Replace the document and return the SHA-256 of the JSON written."""
        payload = json.dumps(data, indent=2, default=str).encode('utf-8')
        with self._lock:
            if create_backup and self.backup_count > 0:
                self.backups.snapshot()
            self._store_bytes(payload)
        return self.checksum(payload)

    def update(self, updater_func: Callable[[Dict[str, Any]], Dict[str, Any]],
               create_backup: bool = True) -> str:
        """Read, transform and write the document under one lock."""
        with self._lock:
            return self.write(updater_func(self.read()), create_backup=create_backup)

    def exists(self) -> bool:
        return self.file_path.exists()

    def size(self) -> int:
        return self.file_path.stat().st_size if self.file_path.exists() else 0

    def verify(self, expected_checksum: Optional[str] = None) -> bool:
        """Check the file parses as JSON and, if given, matches a checksum."""
        try:
            payload = self._load_bytes()
            json.loads(payload)
        except (OSError, ValueError):
            return False
        return expected_checksum is None or self.checksum(payload) == expected_checksum

    def list_backups(self) -> List[Path]:
        return self.backups.list()

    def restore_backup(self, backup_timestamp: str) -> bool:
        """Bring back a backup; the current document is itself backed up first."""
        source = self.backups.path_for(backup_timestamp)
        if not source.exists():
            return False

        with self._lock:
            self.backups.snapshot()
            shutil.copy2(source, self.file_path)

        logger.info(f"Restored {self.file_path} from backup {backup_timestamp}")
        return True


class SnapshotStorage:
    """The persisted network: one snapshot document per data directory."""

    def __init__(
        self,
        storage_dir: Union[str, Path] = ".nftfreeze/localnet",
        compressed: bool = False,
        backup_count: int = 5
    ):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.json_storage = JSONStorage(
            self.storage_dir / ("network.json.gz" if compressed else "network.json"),
            compressed=compressed,
            backup_count=backup_count
        )

    def exists(self) -> bool:
        return self.json_storage.exists()

    def load_raw(self) -> Dict[str, Any]:
        """The stored document as-is, possibly of an older schema."""
        return self.json_storage.read()

    def load_snapshot(self) -> NetworkSnapshot:
        """
        Load and validate the snapshot; an empty store yields a fresh one.

        Raises:
            StorageError: If the document does not match the snapshot schema
        """
        data = self.json_storage.read()
        if not data:
            return NetworkSnapshot()
        try:
            return NetworkSnapshot.model_validate(data)
        except ValueError as e:
            raise StorageError(f"Failed to load snapshot: {e}")

    def save_snapshot(self, snapshot: NetworkSnapshot) -> str:
        snapshot.metadata.update_timestamp()
        return self.json_storage.write(snapshot.model_dump(mode='json'))

    def save_raw(self, data: Dict[str, Any]) -> str:
        return self.json_storage.write(data)

    def update_snapshot(self, updater_func: Callable[[NetworkSnapshot], NetworkSnapshot]) -> str:
        """Apply a change to the stored snapshot under the storage lock."""
        def apply(data: Dict[str, Any]) -> Dict[str, Any]:
            updated = updater_func(NetworkSnapshot.model_validate(data) if data else NetworkSnapshot())
            updated.metadata.update_timestamp()
            return updated.model_dump(mode='json')

        return self.json_storage.update(apply)

    def list_backups(self) -> List[str]:
        """Backup timestamps, newest first."""
        rotation = self.json_storage.backups
        return [rotation.timestamp_of(path) for path in rotation.list()]

    def restore_backup(self, timestamp: str) -> bool:
        return self.json_storage.restore_backup(timestamp)

    def get_storage_info(self) -> Dict[str, Any]:
        storage = self.json_storage
        return {
            'file_path': str(storage.file_path),
            'compressed': storage.compressed,
            'size_bytes': storage.size(),
            'exists': storage.exists(),
            'backup_count': len(storage.list_backups())
        }
