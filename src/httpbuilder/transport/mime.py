"""MIME type lookup by filename extension.

Multipart parts are tagged with a content type derived from the last
dot-delimited segment of their filename. Unknown extensions fall back to
``application/octet-stream``.
"""

import mimetypes

from httpbuilder.models.constants import DEFAULT_MIME_TYPE

# Types missing from the mimetypes tables of some platforms
_EXTRA_TYPES = {
    ".webp": "image/webp",
    ".md": "text/markdown",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
}


def extension_to_mime_type(extension: str | None) -> str:
    """Return the MIME type registered for a filename extension.

    Args:
        extension: Extension with or without the leading dot (e.g. "png", ".PNG")

    Returns:
        The MIME type, or DEFAULT_MIME_TYPE when the extension is unknown

    Example:
        >>> extension_to_mime_type("png")
        'image/png'
        >>> extension_to_mime_type("unknown-ext")
        'application/octet-stream'
    """
    if not extension:
        return DEFAULT_MIME_TYPE

    suffix = extension.lower()
    if not suffix.startswith("."):
        suffix = f".{suffix}"

    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]

    content_type, _ = mimetypes.guess_type(f"file{suffix}", strict=False)
    return content_type or DEFAULT_MIME_TYPE


def filename_to_mime_type(filename: str) -> str:
    """Return the MIME type for the last dot-delimited segment of a filename."""
    return extension_to_mime_type(filename.split(".")[-1])
