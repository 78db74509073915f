"""
Operations package for the Migration Map Pipeline

This package centralizes the operational tooling:
- Configuration management
- Pipeline orchestration (click CLI)
- Logging setup

The Config class is exposed at the package level for convenient imports:
    from map_ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
