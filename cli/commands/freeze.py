#!/usr/bin/env python3
"""
Custody Commands for NFT Freeze CLI

Freeze tokens into custody, release them to a recipient, hand over the
administrator role and inspect the custody ledger.
"""

from typing import Optional, Tuple

import click

from contracts import NFTFreezeContract

from ..context import CLIContext, handle_cli_error, pass_context


def _get_freeze_contract(ctx: CLIContext, address: Optional[str]):
    address = ctx.resolve_address(address, 'upgrade.proxy_address', '--contract')
    contract = ctx.network.get_contract(address)
    if not isinstance(getattr(contract, 'logic', contract), NFTFreezeContract):
        raise click.BadParameter(
            f"{address} is a {contract.contract_name}, not a freeze contract",
            param_hint="'--contract'"
        )
    return contract


def _event_name(receipt, *names: str) -> Optional[str]:
    for event in receipt.events:
        if event.name in names:
            return event.name
    return None


@click.group()
@pass_context
def freeze(ctx: CLIContext):
    """
    Custody ledger commands.

    Freeze tokens, release them and administer the freeze contract.
    """
    ctx.logger.debug("Freeze command group invoked")


@freeze.command('bulk')
@click.argument('token_ids', nargs=-1, type=int)
@click.option('--contract', help='Freeze contract (default: upgrade.proxy_address)')
@click.option('--from', 'sender', help='Token holder (index or address, default: account 0)')
@pass_context
@handle_cli_error
def bulk(ctx: CLIContext, token_ids: Tuple[int, ...], contract: Optional[str], sender: Optional[str]):
    """
    Freeze TOKEN_IDS owned by the sender.

    The freeze contract must be approved as operator on the token contract.
    Tokens the sender does not own are skipped.
    """
    freezer = _get_freeze_contract(ctx, contract)
    sender = ctx.resolve_account(sender)

    receipt = ctx.network.transact(freezer.bulk_nft_freeze, sender, list(token_ids))
    completed, skipped = receipt.return_value

    ctx.output({
        'caller': sender,
        'completed': completed,
        'skipped': skipped,
        'event': _event_name(receipt, 'BulkNFTFreezeCompleted', 'BulkNFTFreezeIncomplete'),
        'block': receipt.block_number,
    })


@freeze.command('release')
@click.argument('token_ids', nargs=-1, type=int)
@click.option('--contract', help='Freeze contract (default: upgrade.proxy_address)')
@click.option('--recipient', required=True, help='Receiving account (index or address)')
@click.option('--from', 'sender', help='Administrator (index or address, default: account 0)')
@pass_context
@handle_cli_error
def release(ctx: CLIContext, token_ids: Tuple[int, ...], contract: Optional[str],
            recipient: str, sender: Optional[str]):
    """Release frozen TOKEN_IDS to a recipient."""
    freezer = _get_freeze_contract(ctx, contract)
    sender = ctx.resolve_account(sender)
    recipient = ctx.resolve_account(recipient)

    receipt = ctx.network.transact(freezer.transfer_nfts_to_recipient, sender, recipient, list(token_ids))

    ctx.output({
        'recipient': recipient,
        'released': receipt.return_value,
        'block': receipt.block_number,
    })


@freeze.command('transfer-ownership')
@click.option('--contract', help='Freeze contract (default: upgrade.proxy_address)')
@click.option('--new-owner', required=True, help='New administrator (index or address)')
@click.option('--from', 'sender', help='Current administrator (index or address, default: account 0)')
@pass_context
@handle_cli_error
def transfer_ownership(ctx: CLIContext, contract: Optional[str], new_owner: str, sender: Optional[str]):
    """Hand the administrator role to another account."""
    freezer = _get_freeze_contract(ctx, contract)
    sender = ctx.resolve_account(sender)
    new_owner = ctx.resolve_account(new_owner)

    receipt = ctx.network.transact(freezer.transfer_ownership, sender, new_owner)

    ctx.output({
        'previous_owner': sender,
        'owner': freezer.owner(),
        'block': receipt.block_number,
    })


@freeze.command('status')
@click.option('--contract', help='Freeze contract (default: upgrade.proxy_address)')
@click.option('--token-id', type=int, help='Show the custody record of one token')
@pass_context
@handle_cli_error
def status(ctx: CLIContext, contract: Optional[str], token_id: Optional[int]):
    """Show the freeze contract state or a single custody record."""
    freezer = _get_freeze_contract(ctx, contract)

    if token_id is not None:
        record = freezer.custody_record(token_id)
        ctx.output({
            'token_id': token_id,
            'frozen': record is not None and record.frozen,
            'original_holder': record.original_holder if record else None,
            'frozen_at_block': record.frozen_at_block if record else None,
        })
        return

    custody = freezer.state.custody
    ctx.output({
        'address': freezer.address,
        'implementation': getattr(freezer, 'implementation', type(freezer)).contract_name,
        'version': freezer.version(),
        'owner': freezer.owner(),
        'nft_address': freezer.nft_address(),
        'frozen_tokens': sorted(t for t, r in custody.items() if r.frozen),
    })
