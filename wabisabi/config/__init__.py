"""Configuration loading and validation."""

from wabisabi.config.loader import load_config
from wabisabi.config.schema import CompactionConfig, Config, RamConfig

__all__ = [
    "CompactionConfig",
    "Config",
    "RamConfig",
    "load_config",
]
