#!/usr/bin/env python3
"""
Deployment Commands for NFT Freeze CLI

Deploy the mock token contract, deploy the freeze contract behind an
upgradeable proxy, and upgrade an existing proxy to the v2 logic.
"""

from typing import Optional

import click

from chain.proxy import deploy_proxy, upgrade_proxy
from contracts import NFTFreezeContract, UpgradeNFTFreezeContract
from nft import MockNFT

from ..context import CLIContext, handle_cli_error, pass_context

FROM_HELP = 'Sending account (index or address, default: account 0)'


@click.group()
@pass_context
def deploy(ctx: CLIContext):
    """
    Contract deployment commands.

    Deploy the token and freeze contracts and upgrade the freeze logic.
    """
    ctx.logger.debug("Deploy command group invoked")


@deploy.command('mock-nft')
@click.option('--initial-owner', help='Token contract owner (default: deploy.initial_owner or sender)')
@click.option('--from', 'sender', help=FROM_HELP)
@pass_context
@handle_cli_error
def mock_nft(ctx: CLIContext, initial_owner: Optional[str], sender: Optional[str]):
    """Deploy a MockNFT token contract."""
    sender = ctx.resolve_account(sender)
    initial_owner = initial_owner or ctx.get_config('deploy.initial_owner') or sender
    initial_owner = ctx.resolve_account(initial_owner)

    token = ctx.network.deploy(sender, MockNFT, initial_owner)
    ctx.logger.info(f"MockNFT deployed to {token.address}")

    ctx.output({
        'address': token.address,
        'contract': token.contract_name,
        'owner': token.owner(),
        'block': ctx.network.block_number,
    })


@deploy.command('freeze')
@click.option('--nft-address', help='Token contract to manage (default: deploy.nft_address)')
@click.option('--initial-owner', help='Administrator (default: deploy.initial_owner or sender)')
@click.option('--from', 'sender', help=FROM_HELP)
@pass_context
@handle_cli_error
def freeze_contract(ctx: CLIContext, nft_address: Optional[str],
                    initial_owner: Optional[str], sender: Optional[str]):
    """Deploy NFTFreezeContract behind an upgradeable proxy and initialize it."""
    sender = ctx.resolve_account(sender)
    nft_address = ctx.resolve_address(nft_address, 'deploy.nft_address', '--nft-address')
    initial_owner = initial_owner or ctx.get_config('deploy.initial_owner') or sender
    initial_owner = ctx.resolve_account(initial_owner)

    proxy = deploy_proxy(
        ctx.network, sender, NFTFreezeContract,
        args=(nft_address, initial_owner),
        initializer='initialize'
    )
    ctx.logger.info(f"NFTFreezeContract deployed to {proxy.address}")

    ctx.output({
        'address': proxy.address,
        'implementation': proxy.implementation.contract_name,
        'admin': proxy.admin,
        'owner': proxy.owner(),
        'nft_address': proxy.nft_address(),
        'block': ctx.network.block_number,
    })


@deploy.command('upgrade')
@click.option('--proxy-address', help='Proxy to upgrade (default: upgrade.proxy_address)')
@click.option('--from', 'sender', help=FROM_HELP)
@pass_context
@handle_cli_error
def upgrade(ctx: CLIContext, proxy_address: Optional[str], sender: Optional[str]):
    """Upgrade a freeze contract proxy to UpgradeNFTFreezeContract."""
    sender = ctx.resolve_account(sender)
    proxy_address = ctx.resolve_address(proxy_address, 'upgrade.proxy_address', '--proxy-address')

    proxy = upgrade_proxy(ctx.network, sender, proxy_address, UpgradeNFTFreezeContract)
    ctx.logger.info(f"NFTFreezeContract at {proxy.address} upgraded")

    ctx.output({
        'address': proxy.address,
        'implementation': proxy.implementation.contract_name,
        'version': proxy.version(),
        'history': list(proxy.implementation_history),
        'block': ctx.network.block_number,
    })
