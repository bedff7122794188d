#!/usr/bin/env python3
"""
Token Commands for NFT Freeze CLI

Mint tokens, manage operator approvals and look up token owners on a MockNFT
contract.
"""

from typing import Optional

import click

from nft import MockNFT

from ..context import CLIContext, handle_cli_error, pass_context


def _get_token(ctx: CLIContext, address: Optional[str]) -> MockNFT:
    address = ctx.resolve_address(address, 'deploy.nft_address', '--contract')
    contract = ctx.network.get_contract(address)
    if not isinstance(contract, MockNFT):
        raise click.BadParameter(
            f"{address} is a {contract.contract_name}, not a token contract",
            param_hint="'--contract'"
        )
    return contract


@click.group()
@pass_context
def nft(ctx: CLIContext):
    """
    Token contract commands.

    Mint tokens, approve operators and query ownership.
    """
    ctx.logger.debug("NFT command group invoked")


@nft.command('mint')
@click.argument('token_id', type=int)
@click.option('--contract', help='Token contract (default: deploy.nft_address)')
@click.option('--to', 'recipient', help='Receiving account (index or address, default: sender)')
@click.option('--from', 'sender', help='Minting account, must own the token contract')
@pass_context
@handle_cli_error
def mint(ctx: CLIContext, token_id: int, contract: Optional[str],
         recipient: Optional[str], sender: Optional[str]):
    """Mint TOKEN_ID to an account."""
    token = _get_token(ctx, contract)
    sender = ctx.resolve_account(sender)
    recipient = ctx.resolve_account(recipient) if recipient else sender

    receipt = ctx.network.transact(token.safe_mint, sender, recipient, token_id)

    ctx.output({
        'token_id': token_id,
        'owner': token.owner_of(token_id),
        'block': receipt.block_number,
    })


@nft.command('approve-all')
@click.option('--contract', help='Token contract (default: deploy.nft_address)')
@click.option('--operator', required=True, help='Operator address, e.g. the freeze contract')
@click.option('--revoke', is_flag=True, help='Revoke instead of grant')
@click.option('--from', 'sender', help='Token holder (index or address, default: account 0)')
@pass_context
@handle_cli_error
def approve_all(ctx: CLIContext, contract: Optional[str], operator: str,
                revoke: bool, sender: Optional[str]):
    """Approve or revoke an operator for all of the sender's tokens."""
    token = _get_token(ctx, contract)
    sender = ctx.resolve_account(sender)
    operator = ctx.resolve_account(operator)

    receipt = ctx.network.transact(token.set_approval_for_all, sender, operator, not revoke)

    ctx.output({
        'owner': sender,
        'operator': operator,
        'approved': token.is_approved_for_all(sender, operator),
        'block': receipt.block_number,
    })


@nft.command('owner-of')
@click.argument('token_id', type=int)
@click.option('--contract', help='Token contract (default: deploy.nft_address)')
@pass_context
@handle_cli_error
def owner_of(ctx: CLIContext, token_id: int, contract: Optional[str]):
    """Show the owner of TOKEN_ID."""
    token = _get_token(ctx, contract)
    ctx.output({'token_id': token_id, 'owner': token.owner_of(token_id)})
