"""
Unit tests for migration system.
"""

import copy
from datetime import datetime

import pytest

from chain.network import LocalNetwork
from ledger.migrations import (
    AddFrozenAtBlockMigration, ExpandCustodyRecordsMigration, MigrationDirection,
    MigrationError, MigrationManager, MigrationRegistry, MigrationStatus,
    SchemaVersionError, parse_version
)
from ledger.schema import LATEST_SCHEMA_VERSION
from ledger.storage import SnapshotStorage
from nft import MockNFT  # noqa: F401 (registers MockNFT)
from contracts import NFTFreezeContract  # noqa: F401 (registers freeze logic)

PROXY = "0x" + "a1" * 20
TOKEN = "0x" + "b2" * 20
HOLDER = "0x" + "c3" * 20
ADMIN = "0x" + "d4" * 20


def legacy_snapshot():
    """A schema 1.0.0 snapshot: custody entries are bare holder addresses."""
    return {
        'metadata': {
            'version': '1.0.0',
            'created_at': '2024-01-01T00:00:00',
            'updated_at': '2024-01-01T00:00:00',
            'network': 'localnet'
        },
        'block_number': 5,
        'accounts': [ADMIN, HOLDER],
        'nonces': {ADMIN: 1, HOLDER: 1},
        'deployments': {
            TOKEN: {
                'address': TOKEN,
                'contract_name': 'MockNFT',
                'deployer': HOLDER,
                'deployed_at_block': 1,
                'proxy': None,
                'storage': {
                    'name': 'MockNFT', 'symbol': 'MNFT', 'owner': HOLDER,
                    'owners': {'1': PROXY, '2': HOLDER},
                    'balances': {PROXY: 1, HOLDER: 1},
                    'token_approvals': {},
                    'operator_approvals': {HOLDER: [PROXY]}
                }
            },
            PROXY: {
                'address': PROXY,
                'contract_name': 'TransparentUpgradeableProxy',
                'deployer': ADMIN,
                'deployed_at_block': 2,
                'proxy': {
                    'admin': ADMIN,
                    'implementation': 'NFTFreezeContract',
                    'implementation_history': ['NFTFreezeContract']
                },
                'storage': {
                    'initialized': 1,
                    'nft_address': TOKEN,
                    'owner': ADMIN,
                    'custody': {'1': HOLDER}
                }
            }
        }
    }


def custody_of(data):
    return data['deployments'][PROXY]['storage']['custody']


@pytest.fixture
def storage(tmp_path):
    storage = SnapshotStorage(tmp_path / "net", backup_count=0)
    storage.save_raw(legacy_snapshot())
    return storage


class TestMigrationBase:
    """Test base migration functionality."""

    def test_migration_creation(self):
        migration = ExpandCustodyRecordsMigration()

        assert migration.version == "1.1.0"
        assert migration.previous_version == "1.0.0"
        assert migration.status == MigrationStatus.PENDING
        assert migration.error_message is None
        assert isinstance(migration.timestamp, datetime)

    def test_migration_to_dict(self):
        migration_dict = AddFrozenAtBlockMigration().to_dict()

        assert migration_dict['version'] == "1.2.0"
        assert migration_dict['status'] == 'pending'
        assert migration_dict['affected_fields'] == ['deployments.*.storage.custody.*.frozen_at_block']

    def test_parse_version(self):
        assert parse_version("1.10.0") > parse_version("1.9.0")
        with pytest.raises(SchemaVersionError):
            parse_version("one.two")


class TestBuiltinMigrations:
    """Test built-in migration implementations."""

    def test_expand_custody_records(self):
        migration = ExpandCustodyRecordsMigration()

        upgraded = migration.up(legacy_snapshot())
        assert upgraded['metadata']['version'] == '1.1.0'
        assert custody_of(upgraded) == {'1': {'original_holder': HOLDER, 'frozen': True}}
        # Non-proxy storage is untouched
        assert upgraded['deployments'][TOKEN]['storage']['owners'] == {'1': PROXY, '2': HOLDER}

        downgraded = migration.down(copy.deepcopy(upgraded))
        assert downgraded['metadata']['version'] == '1.0.0'
        assert custody_of(downgraded) == {'1': HOLDER}

    def test_expand_down_drops_unfrozen_records(self):
        data = ExpandCustodyRecordsMigration().up(legacy_snapshot())
        custody_of(data)['2'] = {'original_holder': HOLDER, 'frozen': False}

        downgraded = ExpandCustodyRecordsMigration().down(data)
        assert custody_of(downgraded) == {'1': HOLDER}

    def test_add_frozen_at_block(self):
        data = ExpandCustodyRecordsMigration().up(legacy_snapshot())
        migration = AddFrozenAtBlockMigration()

        assert migration.validate_data(data)
        upgraded = migration.up(data)
        assert custody_of(upgraded)['1']['frozen_at_block'] == 0

        downgraded = migration.down(copy.deepcopy(upgraded))
        assert 'frozen_at_block' not in custody_of(downgraded)['1']
        assert downgraded['metadata']['version'] == '1.1.0'

    def test_add_frozen_at_block_rejects_legacy_entries(self):
        assert not AddFrozenAtBlockMigration().validate_data(legacy_snapshot())


class TestMigrationRegistry:
    """Test migration registry."""

    def test_versions_and_latest(self):
        registry = MigrationRegistry()

        assert registry.versions == ["1.0.0", "1.1.0", "1.2.0"]
        assert registry.get_latest_version() == LATEST_SCHEMA_VERSION
        assert [m.version for m in registry.list_migrations()] == ["1.1.0", "1.2.0"]

    def test_migrations_between(self):
        registry = MigrationRegistry()

        assert [m.version for m in registry.get_migrations_between("1.0.0", "1.2.0")] == ["1.1.0", "1.2.0"]
        assert [m.version for m in registry.get_migrations_between("1.2.0", "1.0.0")] == ["1.2.0", "1.1.0"]
        assert registry.get_migrations_between("1.1.0", "1.1.0") == []

    def test_unknown_version(self):
        with pytest.raises(SchemaVersionError):
            MigrationRegistry().get_migrations_between("0.9.0", "1.2.0")

    def test_duplicate_registration(self):
        registry = MigrationRegistry()
        with pytest.raises(MigrationError):
            registry.register(ExpandCustodyRecordsMigration())


class TestMigrationManager:
    """Test migration manager."""

    def test_current_version(self, storage):
        manager = MigrationManager(storage)

        assert manager.get_current_version() == "1.0.0"
        assert manager.needs_migration()

    def test_empty_storage_is_current(self, tmp_path):
        manager = MigrationManager(SnapshotStorage(tmp_path / "empty"))
        assert manager.get_current_version() == LATEST_SCHEMA_VERSION
        assert not manager.needs_migration()

    def test_migrate_to_latest(self, storage):
        manager = MigrationManager(storage)
        result = manager.migrate()

        assert result['status'] == 'success'
        assert result['direction'] == MigrationDirection.UP.value
        assert [m['migration'] for m in result['migrations_applied']] == ["1.1.0", "1.2.0"]

        data = storage.load_raw()
        assert data['metadata']['version'] == LATEST_SCHEMA_VERSION
        assert custody_of(data)['1'] == {'original_holder': HOLDER, 'frozen': True, 'frozen_at_block': 0}
        assert [h['version'] for h in manager.get_migration_history()] == ["1.1.0", "1.2.0"]
        assert not manager.needs_migration()

    def test_migrate_again_is_noop(self, storage):
        manager = MigrationManager(storage)
        manager.migrate()

        assert manager.migrate()['status'] == 'no_migration_needed'

    def test_dry_run_leaves_storage_untouched(self, storage):
        result = MigrationManager(storage).migrate(dry_run=True)

        assert result['status'] == 'success'
        assert result['dry_run'] is True
        assert storage.load_raw() == legacy_snapshot()

    def test_partial_migration_and_rollback(self, storage):
        manager = MigrationManager(storage)
        manager.migrate(target_version="1.1.0")
        assert manager.get_current_version() == "1.1.0"

        result = manager.migrate(target_version="1.0.0")
        assert result['direction'] == 'down'
        assert custody_of(storage.load_raw()) == {'1': HOLDER}

    def test_failed_step_leaves_storage_untouched(self, storage):
        def broken_up(data):
            raise KeyError("missing field")

        registry = MigrationRegistry()
        manager = MigrationManager(storage, registry)
        registry.register(manager.create_custom_migration(
            "1.3.0", "1.2.0", "Broken migration", broken_up, lambda d: d
        ))

        with pytest.raises(MigrationError):
            manager.migrate()

        assert storage.load_raw() == legacy_snapshot()
        assert registry.get_migration("1.3.0").status == MigrationStatus.FAILED

    def test_custom_migration(self, storage):
        def up(data):
            data['metadata']['version'] = "1.3.0"
            data['metadata']['note'] = "custom"
            return data

        registry = MigrationRegistry()
        manager = MigrationManager(storage, registry)
        custom = manager.create_custom_migration(
            "1.3.0", "1.2.0", "Add note", up, lambda d: d, affected_fields=['metadata.note']
        )
        registry.register(custom)

        manager.migrate()
        assert storage.load_raw()['metadata']['note'] == "custom"
        assert custom.get_affected_fields() == ['metadata.note']


def test_network_open_migrates_legacy_snapshot(storage):
    network = LocalNetwork.open(storage.storage_dir)

    proxy = network.get_contract(PROXY)
    record = proxy.custody_record(1)
    assert record.original_holder == HOLDER
    assert record.frozen
    assert record.frozen_at_block == 0
    assert network.get_contract(TOKEN).owner_of(1) == PROXY
    assert MigrationManager(storage).get_current_version() == LATEST_SCHEMA_VERSION


def test_network_open_without_auto_migrate_fails(storage):
    with pytest.raises(SchemaVersionError):
        LocalNetwork.open(storage.storage_dir, auto_migrate=False)
