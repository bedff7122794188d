#!/usr/bin/env python3
"""
Network Administration Commands for NFT Freeze CLI

Commands for inspecting the persisted local network, listing its accounts,
migrating its snapshot schema and listing snapshot backups.
"""

from typing import Optional

import click

from chain.proxy import TransparentUpgradeableProxy
from ledger.migrations import MigrationManager

from ..context import CLIContext, handle_cli_error, pass_context


@click.group()
@pass_context
def network(ctx: CLIContext):
    """
    Local network administration commands.

    Inspect the persisted network, its accounts, schema and backups.
    """
    ctx.logger.debug("Network command group invoked")


@network.command('info')
@pass_context
@handle_cli_error
def info(ctx: CLIContext):
    """Show block height, accounts and deployed contracts."""
    net = ctx.network
    data = net.get_info()
    data['data_dir'] = str(ctx.network_dir)
    storage = data.pop('storage', {})
    data['schema_version'] = MigrationManager(net.storage).get_current_version()
    data['size_bytes'] = storage.get('size_bytes', 0)
    ctx.output(data)

    if ctx.output_format == 'table' and net.contracts:
        click.echo()
        rows = []
        for address, contract in net.contracts.items():
            implementation = (
                contract.implementation.contract_name
                if isinstance(contract, TransparentUpgradeableProxy) else '-'
            )
            rows.append({
                'address': address,
                'contract': contract.contract_name,
                'implementation': implementation,
            })
        ctx.output(rows)


@network.command('accounts')
@pass_context
@handle_cli_error
def accounts(ctx: CLIContext):
    """List the network's accounts."""
    net = ctx.network
    ctx.output([
        {'index': index, 'address': address, 'nonce': net.get_nonce(address)}
        for index, address in enumerate(net.accounts)
    ])


@network.command('migrate')
@click.option('--target-version', help='Schema version to migrate to (default: latest)')
@click.option('--dry-run', is_flag=True, help='Validate the migration without writing it')
@pass_context
@handle_cli_error
def migrate(ctx: CLIContext, target_version: Optional[str], dry_run: bool):
    """Migrate the network snapshot to another schema version."""
    storage = ctx.snapshot_storage()
    if not storage.exists():
        raise click.ClickException(f"No network snapshot in {ctx.network_dir}")

    result = MigrationManager(storage).migrate(target_version=target_version, dry_run=dry_run)
    ctx.output({
        'status': result['status'],
        'from_version': result['current_version'],
        'to_version': result['target_version'],
        'migrations_applied': [m['migration'] for m in result.get('migrations_applied', [])],
        'dry_run': dry_run,
    })


@network.command('backups')
@pass_context
@handle_cli_error
def backups(ctx: CLIContext):
    """List snapshot backups, newest first."""
    timestamps = ctx.snapshot_storage().list_backups()
    ctx.output([{'timestamp': ts} for ts in timestamps])
