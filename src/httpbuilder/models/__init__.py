"""httpbuilder Models.

This module provides the enums, constants and Pydantic models shared by the
request pipeline.
"""

# Constants
from httpbuilder.models.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_MIME_TYPE,
    DEFAULT_READS_PER_UPDATE,
    DEFAULT_TIMEOUT_SECONDS,
)

# Enums
from httpbuilder.models.enums import CompletionOption, HttpMethod, OutcomeKind

# Entities
from httpbuilder.models.content import FileContent
from httpbuilder.models.outcome import Outcome

__all__ = [
    "CompletionOption",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_MIME_TYPE",
    "DEFAULT_READS_PER_UPDATE",
    "DEFAULT_TIMEOUT_SECONDS",
    "FileContent",
    "HttpMethod",
    "Outcome",
    "OutcomeKind",
]
