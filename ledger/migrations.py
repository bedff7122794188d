"""
NFT Freeze - Snapshot Migration System

Snapshot documents carry a schema version in their metadata. Each Migration
moves a document one version up (or back down); the manager chains them and
only writes the result once every step succeeded.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .schema import NetworkSnapshot
from .storage import SnapshotStorage

BASE_SCHEMA_VERSION = "1.0.0"

Document = Dict[str, Any]
Transform = Callable[[Document], Document]


class MigrationDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class MigrationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class MigrationError(Exception):
    """A migration step could not be applied."""
    pass


class SchemaVersionError(MigrationError):
    """Unknown, malformed or outdated schema version."""
    pass


def parse_version(version: str) -> Tuple[int, ...]:
    """'1.10.0' -> (1, 10, 0), so versions order numerically."""
    try:
        return tuple(int(part) for part in version.split('.'))
    except (AttributeError, ValueError):
        raise SchemaVersionError(f"Invalid schema version: {version!r}")


def iter_custody_entries(document: Document) -> Iterator[Tuple[Dict[str, Any], str]]:
    """Yield (custody map, token key) for every entry held by a proxy deployment."""
    for deployment in document.get('deployments', {}).values():
        if not deployment.get('proxy'):
            continue
        custody = deployment.get('storage', {}).get('custody', {})
        for token_key in list(custody):
            yield custody, token_key


class Migration(ABC):
    """
    One schema step between previous_version and version.

    Subclasses set the class attributes and implement up() and down(); both
    receive a working copy of the document and return the transformed one.
    """

    version: str = ""
    previous_version: str = ""
    description: str = ""
    affected_fields: List[str] = []

    def __init__(self):
        self.timestamp = datetime.utcnow()
        self.status = MigrationStatus.PENDING
        self.error_message: Optional[str] = None

    @abstractmethod
    def up(self, snapshot_data: Document) -> Document:
        pass

    @abstractmethod
    def down(self, snapshot_data: Document) -> Document:
        pass

    def validate_data(self, snapshot_data: Document) -> bool:
        """Precondition checked before the step runs in either direction."""
        return isinstance(snapshot_data.get('deployments', {}), dict)

    def get_affected_fields(self) -> List[str]:
        return list(self.affected_fields)

    def stamp(self, snapshot_data: Document, direction: MigrationDirection) -> Document:
        """Record the version the document is at after this step."""
        metadata = snapshot_data.setdefault('metadata', {})
        metadata['version'] = self.version if direction == MigrationDirection.UP else self.previous_version
        return snapshot_data

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'previous_version': self.previous_version,
            'description': self.description,
            'timestamp': self.timestamp.isoformat(),
            'status': self.status.value,
            'error_message': self.error_message,
            'affected_fields': self.get_affected_fields(),
        }

    def __repr__(self):
        return f"<{type(self).__name__} {self.previous_version} -> {self.version} {self.status.value}>"


class ExpandCustodyRecordsMigration(Migration):
    """1.0.0 stored custody as token -> holder address; 1.1.0 stores a record."""

    version = "1.1.0"
    previous_version = BASE_SCHEMA_VERSION
    description = "Expand custody holder entries into custody records"
    affected_fields = ['deployments.*.storage.custody.*']

    def up(self, snapshot_data: Document) -> Document:
        for custody, token_key in iter_custody_entries(snapshot_data):
            holder = custody[token_key]
            if isinstance(holder, str):
                custody[token_key] = {'original_holder': holder, 'frozen': True}
        return self.stamp(snapshot_data, MigrationDirection.UP)

    def down(self, snapshot_data: Document) -> Document:
        # 1.0.0 has no way to express a released record, so those are dropped
        for custody, token_key in iter_custody_entries(snapshot_data):
            record = custody[token_key]
            if not isinstance(record, dict):
                continue
            if record.get('frozen', True):
                custody[token_key] = record['original_holder']
            else:
                del custody[token_key]
        return self.stamp(snapshot_data, MigrationDirection.DOWN)


class AddFrozenAtBlockMigration(Migration):
    """1.2.0 records the block in which a token entered custody."""

    version = "1.2.0"
    previous_version = "1.1.0"
    description = "Add frozen_at_block field to custody records"
    affected_fields = ['deployments.*.storage.custody.*.frozen_at_block']

    def validate_data(self, snapshot_data: Document) -> bool:
        return super().validate_data(snapshot_data) and all(
            isinstance(custody[token_key], dict)
            for custody, token_key in iter_custody_entries(snapshot_data)
        )

    def up(self, snapshot_data: Document) -> Document:
        # The real block is unknown for records written before 1.2.0
        for custody, token_key in iter_custody_entries(snapshot_data):
            custody[token_key].setdefault('frozen_at_block', 0)
        return self.stamp(snapshot_data, MigrationDirection.UP)

    def down(self, snapshot_data: Document) -> Document:
        for custody, token_key in iter_custody_entries(snapshot_data):
            custody[token_key].pop('frozen_at_block', None)
        return self.stamp(snapshot_data, MigrationDirection.DOWN)


class FunctionMigration(Migration):
    """Migration assembled from a pair of plain functions."""

    def __init__(self, version: str, previous_version: str, description: str,
                 up_func: Transform, down_func: Transform,
                 affected_fields: Optional[List[str]] = None):
        super().__init__()
        self.version = version
        self.previous_version = previous_version
        self.description = description
        self.affected_fields = affected_fields or []
        self._up = up_func
        self._down = down_func

    def up(self, snapshot_data: Document) -> Document:
        return self._up(snapshot_data)

    def down(self, snapshot_data: Document) -> Document:
        return self._down(snapshot_data)


BUILTIN_MIGRATIONS = (ExpandCustodyRecordsMigration, AddFrozenAtBlockMigration)


class MigrationRegistry:
    """The known migrations, ordered into a single version chain."""

    def __init__(self):
        self._migrations: Dict[str, Migration] = {}
        for migration_cls in BUILTIN_MIGRATIONS:
            self.register(migration_cls())

    def register(self, migration: Migration) -> None:
        if migration.version in self._migrations:
            raise MigrationError(f"Migration {migration.version} already registered")
        parse_version(migration.version)
        self._migrations[migration.version] = migration

    @property
    def versions(self) -> List[str]:
        """Every schema version, oldest first, starting at the base version."""
        return [BASE_SCHEMA_VERSION, *sorted(self._migrations, key=parse_version)]

    def get_migration(self, version: str) -> Optional[Migration]:
        return self._migrations.get(version)

    def get_migrations_between(self, from_version: str, to_version: str) -> List[Migration]:
        """
        Steps leading from one version to another, in execution order.

        Raises:
            SchemaVersionError: If either version is not in the chain
        """
        chain = self.versions
        if from_version not in chain or to_version not in chain:
            raise SchemaVersionError(f"Unknown version in path {from_version} -> {to_version}")

        start, end = chain.index(from_version), chain.index(to_version)
        if start <= end:
            steps = chain[start + 1:end + 1]
        else:
            steps = chain[end + 1:start + 1][::-1]
        return [self._migrations[v] for v in steps]

    def get_latest_version(self) -> str:
        return self.versions[-1]

    def list_migrations(self) -> List[Migration]:
        return [self._migrations[v] for v in self.versions[1:]]


@dataclass
class MigrationPlan:
    """What a migrate() call would do."""
    current_version: str
    target_version: str
    steps: List[Migration] = field(default_factory=list)

    @property
    def direction(self) -> MigrationDirection:
        if parse_version(self.current_version) <= parse_version(self.target_version):
            return MigrationDirection.UP
        return MigrationDirection.DOWN


class MigrationManager:
    """Brings the snapshot in a SnapshotStorage to a requested schema version."""

    def __init__(
        self,
        storage: SnapshotStorage,
        migration_registry: Optional[MigrationRegistry] = None
    ):
        self.storage = storage
        self.migration_registry = migration_registry or MigrationRegistry()
        self.logger = logging.getLogger(__name__)
        self._migration_history: List[Dict[str, Any]] = []

    def get_current_version(self) -> str:
        """
        Schema version of the stored document.

        An empty store counts as current; a document without a version
        predates versioning and counts as the base version.
        """
        document = self.storage.load_raw()
        if not document:
            return self.migration_registry.get_latest_version()
        return document.get('metadata', {}).get('version', BASE_SCHEMA_VERSION)

    def needs_migration(self, target_version: Optional[str] = None) -> bool:
        target = target_version or self.migration_registry.get_latest_version()
        return self.get_current_version() != target

    def plan(self, target_version: Optional[str] = None) -> MigrationPlan:
        current = self.get_current_version()
        target = target_version or self.migration_registry.get_latest_version()
        if current == target:
            return MigrationPlan(current, target)
        return MigrationPlan(current, target, self.migration_registry.get_migrations_between(current, target))

    def migrate(self, target_version: Optional[str] = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Migrate the stored snapshot.

        Args:
            target_version: Schema version to reach (latest if None)
            dry_run: Run every step on a copy but write nothing

        Returns:
            Result with status, versions, direction and the steps applied

        Raises:
            MigrationError: If a step fails; the stored document is left untouched
        """
        plan = self.plan(target_version)
        if not plan.steps:
            return {
                'status': 'no_migration_needed',
                'current_version': plan.current_version,
                'target_version': plan.target_version
            }

        direction = plan.direction
        self.logger.info(
            f"Migrating snapshot {plan.current_version} -> {plan.target_version} ({direction.value})"
        )

        document = copy.deepcopy(self.storage.load_raw())
        for step in plan.steps:
            document = self._run_step(step, document, direction)

        if plan.target_version == self.migration_registry.get_latest_version():
            NetworkSnapshot.model_validate(document)

        if not dry_run:
            self.storage.save_raw(document)
            self._migration_history.extend(
                {
                    'version': step.version,
                    'description': step.description,
                    'direction': direction.value,
                    'timestamp': datetime.utcnow().isoformat(),
                    'status': step.status.value
                }
                for step in plan.steps
            )
            self.logger.info(f"Snapshot now at schema {plan.target_version}")

        return {
            'status': 'success',
            'current_version': plan.current_version,
            'target_version': plan.target_version,
            'direction': direction.value,
            'migrations_applied': [
                {
                    'migration': step.version,
                    'direction': direction.value,
                    'affected_fields': step.get_affected_fields()
                }
                for step in plan.steps
            ],
            'dry_run': dry_run
        }

    def _run_step(self, step: Migration, document: Document, direction: MigrationDirection) -> Document:
        step.status = MigrationStatus.RUNNING
        try:
            if not step.validate_data(document):
                raise MigrationError("Data validation failed")
            transform = step.up if direction == MigrationDirection.UP else step.down
            document = transform(document)
        except (KeyError, TypeError, ValueError, MigrationError) as e:
            step.status = MigrationStatus.FAILED
            step.error_message = str(e)
            self.logger.error(f"Migration {step.version} ({direction.value}) failed: {e}")
            raise MigrationError(f"Migration {step.version} failed: {e}") from e

        step.status = MigrationStatus.COMPLETED
        self.logger.debug(f"Applied migration {step.version} ({direction.value})")
        return document

    def get_migration_history(self) -> List[Dict[str, Any]]:
        return list(self._migration_history)

    def create_custom_migration(
        self,
        version: str,
        previous_version: str,
        description: str,
        up_func: Transform,
        down_func: Transform,
        affected_fields: Optional[List[str]] = None
    ) -> Migration:
        """Build a migration from functions; register it on a registry to use it."""
        return FunctionMigration(version, previous_version, description,
                                 up_func, down_func, affected_fields)
