"""Configuration for fvmkit."""

from .global_config import (
    GlobalConfig,
    Fork,
    DEFAULT_FLUTTER_URL,
    DEFAULT_STORAGE_BASE_URL,
)

__all__ = [
    "GlobalConfig",
    "Fork",
    "DEFAULT_FLUTTER_URL",
    "DEFAULT_STORAGE_BASE_URL",
]
