"""Multipart content parts.

FileContent describes one file part of a multipart/form-data body: the raw
bytes, the form field name and the filename. The part's MIME type is derived
from the filename extension when the body is built.
"""

from pydantic import BaseModel, ConfigDict, Field


class FileContent(BaseModel):
    """A file to upload as one part of a multipart/form-data body.

    Attributes:
        content: Raw file bytes
        name: Form field name
        filename: Filename sent in the part's Content-Disposition

    Example:
        >>> part = FileContent(content=b"hello", name="file", filename="hello.txt")
        >>> part.extension
        'txt'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    content: bytes
    name: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)

    @property
    def extension(self) -> str:
        """Last dot-delimited segment of the filename."""
        return self.filename.split(".")[-1]
