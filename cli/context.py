#!/usr/bin/env python3
"""
Shared CLI Context for NFT Freeze

The context object passed to every command, the error handling decorator and
the option resolution helpers used by the command modules.
"""

import functools
import logging
import sys
import traceback
from typing import Any, Optional

import click

from chain.address import normalize_address
from chain.exceptions import Revert
from chain.network import LocalNetwork
from ledger.storage import SnapshotStorage

from .config import ConfigurationManager
from .output import OutputFormatter

LOGGER_NAME = 'nftfreeze-cli'
_HANDLER_NAME = 'nftfreeze-cli-stderr'


class CLIContext:
    """Global CLI context for sharing state across commands."""

    def __init__(self):
        self.config_file: Optional[str] = None
        self.profile: Optional[str] = None
        self.data_dir: Optional[str] = None
        self.output_format: str = "table"
        self.verbose: int = 0
        self.config: Optional[ConfigurationManager] = None
        self.logger: logging.Logger = logging.getLogger(LOGGER_NAME)
        self._network: Optional[LocalNetwork] = None

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }
        level = log_levels.get(min(self.verbose, 2), logging.DEBUG)

        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        # Replace the handler of a previous invocation in the same process
        root = logging.getLogger()
        for existing in list(root.handlers):
            if existing.get_name() == _HANDLER_NAME:
                root.removeHandler(existing)
        root.addHandler(handler)
        root.setLevel(level)

    def load_config(self):
        """Load and validate configuration."""
        self.config = ConfigurationManager(self.config_file, self.profile)
        errors = self.config.validate()
        if errors:
            raise click.UsageError("Invalid configuration:\n  " + "\n  ".join(errors))

        self.logger.debug(f"Configuration sources: {', '.join(self.config.get_sources())}")

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value with fallback to default."""
        if self.config is None:
            self.load_config()
        return self.config.get(key, default)

    @property
    def network_dir(self) -> str:
        return self.data_dir or self.get_config('network.data_dir')

    def snapshot_storage(self) -> SnapshotStorage:
        """Storage of the configured network, without loading or migrating it."""
        return SnapshotStorage(
            self.network_dir,
            compressed=self.get_config('network.compressed', False),
            backup_count=self.get_config('network.backup_count', 5)
        )

    @property
    def network(self) -> LocalNetwork:
        """The persisted local network, opened on first use."""
        if self._network is None:
            self._network = LocalNetwork.open(
                self.network_dir,
                name=self.get_config('network.name', 'localnet'),
                account_count=self.get_config('network.account_count', 10),
                seed=str(self.get_config('network.seed', 'nftfreeze')),
                compressed=self.get_config('network.compressed', False),
                backup_count=self.get_config('network.backup_count', 5)
            )
        return self._network

    def resolve_account(self, value: Optional[str]) -> str:
        """
        Resolve an account option given as an index or an address.

        Defaults to the first account of the network.
        """
        accounts = self.network.accounts
        if value is None:
            return accounts[0]

        if value.isdigit():
            index = int(value)
            if index >= len(accounts):
                raise click.BadParameter(
                    f"Account index {index} out of range (0-{len(accounts) - 1})"
                )
            return accounts[index]

        try:
            return normalize_address(value)
        except ValueError as e:
            raise click.BadParameter(str(e))

    def resolve_address(self, value: Optional[str], config_key: str, option: str) -> str:
        """Resolve an address option, falling back to configuration."""
        value = value or self.get_config(config_key)
        if value is None:
            raise click.UsageError(f"Missing option '{option}' (or set {config_key} in configuration)")
        try:
            return normalize_address(value)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint=f"'{option}'")

    def output(self, data: Any, format_override: Optional[str] = None):
        """Output data in specified format."""
        formatter = OutputFormatter(format_override or self.output_format)
        click.echo(formatter.format(data))


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(130)
        except Exception as e:
            ctx = click.get_current_context(silent=True)
            cli_ctx = ctx.find_object(CLIContext) if ctx else None
            verbose = cli_ctx.verbose if cli_ctx else 0

            if isinstance(e, Revert):
                logging.getLogger(LOGGER_NAME).warning(f"Transaction reverted: {e}")

            click.echo(f"Error: {e}", err=True)
            if verbose >= 2:
                click.echo(traceback.format_exc(), err=True)
            else:
                click.echo("Use -vv for detailed error information.", err=True)

            sys.exit(1)

    return wrapper
