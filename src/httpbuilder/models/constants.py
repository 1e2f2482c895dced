"""Constants for httpbuilder.

This module defines library-wide defaults used across the codebase.
"""

# Transport defaults
DEFAULT_TIMEOUT_SECONDS = 100.0

# Streaming copy defaults
DEFAULT_BUFFER_SIZE = 81920
DEFAULT_READS_PER_UPDATE = 100
"""Number of buffer reads between two progress callbacks during a streaming copy."""

# Content types
DEFAULT_MIME_TYPE = "application/octet-stream"
"""Content type used for multipart parts whose filename extension is unknown."""

JSON_MEDIA_TYPE = "application/json"
DEFAULT_ENCODING = "utf-8"

# Query string
QUERY_SEPARATOR = "&"
