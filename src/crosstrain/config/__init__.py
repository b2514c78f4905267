"""
Configuration module - Pydantic schemas, built-in mappings and loader.
"""

from .loader import get_resolved_paths, load_config, validate_config
from .schema import CrosstrainConfig, LoadersConfig, LoggingConfig

__all__ = [
    "CrosstrainConfig",
    "LoadersConfig",
    "LoggingConfig",
    "get_resolved_paths",
    "load_config",
    "validate_config",
]
