#!/usr/bin/env python3
"""
Configuration Management Module for NFT Freeze CLI

Settings are layered: built-in defaults, an optional profile, the first
configuration file found (or an explicit one), then NFTFREEZE_* environment
variables. The merged result is checked against pydantic settings models.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError, field_validator

from chain.address import is_address

# NFTFREEZE_NETWORK__DATA_DIR -> network.data_dir
ENV_PREFIX = 'NFTFREEZE_'
ENV_NESTING = '__'

OUTPUT_FORMATS = ['table', 'json', 'yaml']

DEFAULT_CONFIG = {
    'network': {
        'name': 'localnet',
        'data_dir': '.nftfreeze/localnet',
        'account_count': 10,
        'seed': 'nftfreeze',
        'compressed': False,
        'backup_count': 5
    },
    'cli': {
        'output_format': 'table',
        'verbose': 0
    },
    # Fallbacks for --nft-address / --initial-owner
    'deploy': {
        'nft_address': None,
        'initial_owner': None
    },
    # Fallback for --proxy-address and the freeze commands' --contract
    'upgrade': {
        'proxy_address': None
    }
}

PROFILES = {
    'development': {
        'network': {'data_dir': '.nftfreeze/development'},
        'cli': {'verbose': 1}
    },
    'ci': {
        'network': {'name': 'ci', 'backup_count': 0},
        'cli': {'output_format': 'json', 'verbose': 0}
    }
}

ConfigLayer = Tuple[str, Dict[str, Any]]


class NetworkSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(min_length=1)
    data_dir: str = Field(min_length=1)
    account_count: StrictInt = Field(gt=0)
    seed: str
    compressed: StrictBool
    backup_count: StrictInt = Field(ge=0)


class CLISettings(BaseModel):
    output_format: Literal['table', 'json', 'yaml']
    verbose: StrictInt = Field(ge=0)


def check_optional_address(v: Optional[str]) -> Optional[str]:
    if v is not None and not is_address(v):
        raise ValueError(f"not an address: {v!r}")
    return v


class DeploySettings(BaseModel):
    nft_address: Optional[str] = None
    initial_owner: Optional[str] = None

    _check_addresses = field_validator('nft_address', 'initial_owner')(check_optional_address)


class UpgradeSettings(BaseModel):
    proxy_address: Optional[str] = None

    _check_address = field_validator('proxy_address')(check_optional_address)


class Settings(BaseModel):
    """Complete CLI configuration."""

    network: NetworkSettings
    cli: CLISettings
    deploy: DeploySettings = Field(default_factory=DeploySettings)
    upgrade: UpgradeSettings = Field(default_factory=UpgradeSettings)


def config_search_paths() -> List[Path]:
    """Configuration file locations, highest precedence first."""
    project = Path.cwd()
    user = Path.home() / '.nftfreeze'
    return [
        project / '.nftfreeze.yml',
        project / '.nftfreeze.json',
        user / 'config.yml',
        user / 'config.json',
    ]


def merge_layers(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay override onto a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = merge_layers(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigurationManager:
    """Layered configuration with environment variable overrides."""

    def __init__(self, config_file: Optional[str] = None, profile: Optional[str] = None):
        """
        Args:
            config_file: Explicit configuration file; disables the search paths
            profile: Profile name from PROFILES
        """
        self.logger = logging.getLogger('nftfreeze-cli.config')
        self.config_file = config_file
        self.profile = profile
        self._config: Optional[Dict[str, Any]] = None
        self._sources: List[str] = []

    def _collect_layers(self) -> List[ConfigLayer]:
        layers: List[ConfigLayer] = [("defaults", copy.deepcopy(DEFAULT_CONFIG))]

        if self.profile in PROFILES:
            layers.append((f"profile:{self.profile}", copy.deepcopy(PROFILES[self.profile])))
        elif self.profile:
            self.logger.warning(f"Unknown configuration profile: {self.profile}")

        candidates = [Path(self.config_file)] if self.config_file else config_search_paths()
        for path in candidates:
            if not path.exists():
                if self.config_file:
                    self.logger.warning(f"Config file not found: {path}")
                continue
            data = self._read_file(path)
            if data:
                layers.append((f"file:{path}", data))
            break

        env_layer = self._load_environment_variables()
        if env_layer:
            layers.append(("environment", env_layer))

        return layers

    def load(self) -> Dict[str, Any]:
        """Merge all layers; the result is cached until reset()."""
        if self._config is None:
            layers = self._collect_layers()
            config: Dict[str, Any] = {}
            for _, data in layers:
                config = merge_layers(config, data)
            self._config = self._expand_user_paths(config)
            self._sources = [name for name, _ in layers]
            self.logger.debug(f"Configuration loaded from {', '.join(self._sources)}")
        return self._config

    def _read_file(self, path: Path) -> Optional[Dict[str, Any]]:
        loaders = {'.yml': yaml.safe_load, '.yaml': yaml.safe_load, '.json': json.load}
        loader = loaders.get(path.suffix)
        if loader is None:
            self.logger.warning(f"Unknown config file format: {path}")
            return None

        try:
            with open(path, 'r') as f:
                data = loader(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load config from {path}: {e}")
            return None

        if data is not None and not isinstance(data, dict):
            self.logger.error(f"Config file {path} must contain a mapping")
            return None
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        layer: Dict[str, Any] = {}
        for name, raw in os.environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            *sections, key = name[len(ENV_PREFIX):].lower().split(ENV_NESTING)
            target = layer
            for section in sections:
                target = target.setdefault(section, {})
            target[key] = self._parse_env_value(raw)
        return layer

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool, None]:
        """Convert an environment string to bool, None, int or float where it reads as one."""
        keywords = {'true': True, 'yes': True, 'false': False, 'no': False, 'null': None, 'none': None}
        if value.lower() in keywords:
            return keywords[value.lower()]
        for convert in (int, float):
            try:
                return convert(value)
            except ValueError:
                continue
        return value

    def _expand_user_paths(self, config: Dict[str, Any]) -> Dict[str, Any]:
        data_dir = config.get('network', {}).get('data_dir')
        if isinstance(data_dir, str):
            config['network']['data_dir'] = os.path.expanduser(os.path.expandvars(data_dir))
        return config

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Look up a dot-separated key such as 'network.data_dir'.

        Missing keys and keys set to null both yield the default.
        """
        value: Any = self.load()
        for key in key_path.split('.'):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return default if value is None else value

    def set(self, key_path: str, value: Any):
        *sections, key = key_path.split('.')
        target = self.load()
        for section in sections:
            if not isinstance(target.get(section), dict):
                target[section] = {}
            target = target[section]
        target[key] = value

    def save(self, path: Optional[str] = None, format: str = 'yaml') -> Path:
        """
        Write the merged configuration.

        Args:
            path: Destination (default: .nftfreeze.yml or .nftfreeze.json in the working directory)
            format: 'yaml' or 'json'

        Returns:
            Path written
        """
        config = self.load()
        target = Path(path) if path else Path.cwd() / f".nftfreeze.{'yml' if format == 'yaml' else 'json'}"
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, 'w') as f:
            if format == 'yaml':
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

        self.logger.info(f"Configuration saved to {target}")
        return target

    def validate(self) -> List[str]:
        """
        Check the merged configuration.

        Returns:
            One message per problem, prefixed with the dotted key; empty if valid
        """
        try:
            Settings.model_validate(self.load())
        except ValidationError as e:
            return [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
        return []

    def get_sources(self) -> List[str]:
        """Names of the layers that contributed, lowest precedence first."""
        self.load()
        return list(self._sources)

    def export_environment(self) -> Dict[str, str]:
        """Render the configuration as NFTFREEZE_* variables; unset keys are omitted."""
        exported: Dict[str, str] = {}

        def walk(node: Dict[str, Any], path: List[str]):
            for key, value in node.items():
                if isinstance(value, dict):
                    walk(value, path + [key])
                elif value is not None:
                    name = ENV_PREFIX + ENV_NESTING.join(path + [key]).upper()
                    exported[name] = str(value).lower() if isinstance(value, bool) else str(value)

        walk(self.load(), [])
        return exported

    def reset(self):
        """Drop the cached configuration so the next access reloads every layer."""
        self._config = None
        self._sources = []
