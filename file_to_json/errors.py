"""Exceptions raised while converting a single input item."""

from __future__ import annotations


class ConversionError(Exception):
    """Base exception for all per-item conversion failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingBinaryData(ConversionError):
    """The configured attachment is absent on an item."""

    def __init__(self, property_name: str) -> None:
        super().__init__(f'No binary data found in property "{property_name}"')
        self.property_name = property_name


class UnsupportedFormat(ConversionError):
    """No format rule matched the attachment."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"Unsupported file type: {mime_type}")
        self.mime_type = mime_type


class ExtractionFailed(ConversionError):
    """An extraction engine rejected the payload."""


class DecodeError(ExtractionFailed):
    """The payload could not be decoded as base64, UTF-8 text or JSON."""
