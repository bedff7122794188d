#!/usr/bin/env python3
"""
NFT Freeze - Command Line Interface

A CLI for running the NFT freeze custody ledger on a persisted local network:
deploying the token and freeze contracts, upgrading the freeze logic, freezing
and releasing tokens, and administering the network snapshot.
"""

from typing import Optional

import click

from cli import __version__
from cli.commands.deploy import deploy
from cli.commands.freeze import freeze
from cli.commands.network import network
from cli.commands.nft import nft
from cli.config import OUTPUT_FORMATS, PROFILES
from cli.context import CLIContext, pass_context


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config-file', '-c',
              type=click.Path(dir_okay=False),
              help='Path to configuration file')
@click.option('--profile',
              type=click.Choice(sorted(PROFILES)),
              help='Configuration profile')
@click.option('--data-dir', '-d',
              type=click.Path(file_okay=False),
              help='Network data directory (overrides network.data_dir)')
@click.option('--output-format', '-o',
              type=click.Choice(OUTPUT_FORMATS),
              help='Output format')
@click.option('--verbose', '-v',
              count=True,
              help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, prog_name='nftfreeze')
@pass_context
def cli(ctx: CLIContext, config_file: Optional[str], profile: Optional[str],
        data_dir: Optional[str], output_format: Optional[str], verbose: int):
    """
    NFT Freeze Command Line Interface

    Freeze NFTs into the custody of an upgradeable contract and release them
    to a recipient, on a local network persisted to disk.

    Examples:
        nftfreeze deploy mock-nft
        nftfreeze deploy freeze --nft-address 0x...
        nftfreeze freeze bulk --contract 0x... 1 2 3
        nftfreeze deploy upgrade --proxy-address 0x...
    """
    ctx.config_file = config_file
    ctx.profile = profile
    ctx.data_dir = data_dir

    ctx.load_config()
    ctx.verbose = verbose or ctx.get_config('cli.verbose', 0)
    ctx.output_format = output_format or ctx.get_config('cli.output_format', 'table')

    ctx.setup_logging()
    ctx.logger.debug("CLI initialized with context")


cli.add_command(network)
cli.add_command(deploy)
cli.add_command(nft)
cli.add_command(freeze)


def main():
    """Console script entry point."""
    cli(prog_name='nftfreeze')


if __name__ == '__main__':
    main()
