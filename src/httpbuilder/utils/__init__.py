"""Utility modules for httpbuilder.

This package contains utility functions used across the library, including
log sanitization for URLs and headers.
"""

from httpbuilder.utils.sanitization import REDACTED_PLACEHOLDER, sanitize_headers, sanitize_url

__all__ = [
    "REDACTED_PLACEHOLDER",
    "sanitize_headers",
    "sanitize_url",
]
