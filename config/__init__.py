"""Configuration management for the private voting system."""

from .config import (
    SystemConfig, ZKConfig, LedgerConfig, ServerConfig,
    load_config, save_config, config_to_dict, VALID_MODES
)

__all__ = ['SystemConfig', 'ZKConfig', 'LedgerConfig', 'ServerConfig',
           'load_config', 'save_config', 'config_to_dict', 'VALID_MODES']
