"""
flowcore Utilities

Common helpers used across the runtime.
"""

from .json_parser import (
    clean_json_string,
    extract_json_from_text,
    try_parse_json,
)

__all__ = [
    "clean_json_string",
    "extract_json_from_text",
    "try_parse_json",
]
