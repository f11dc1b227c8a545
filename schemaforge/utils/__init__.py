"""Utility modules for SchemaForge."""

from .config import Settings, get_settings
from .urls import (
    is_valid_http_url,
    extract_base_domain,
    extract_path,
    path_depth,
)

__all__ = [
    "Settings",
    "get_settings",
    # URL helpers
    "is_valid_http_url",
    "extract_base_domain",
    "extract_path",
    "path_depth",
]
