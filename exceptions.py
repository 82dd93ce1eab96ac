"""Custom exception classes for region capture errors."""

from __future__ import annotations


class RegionCaptureException(Exception):
    """Base exception for region capture errors."""
    pass


class UnsupportedFormatError(RegionCaptureException):
    """Raised when a file is neither a PDF nor a decodable raster image."""
    pass


class CorruptDocumentError(RegionCaptureException):
    """Raised when a document cannot be opened or decoded."""
    pass


class DocumentDecryptionError(CorruptDocumentError):
    """Raised when an encrypted PDF cannot be authenticated."""
    pass


class PageIndexOutOfRangeError(RegionCaptureException):
    """Raised when a page index falls outside 1..page_count."""
    pass


class RenderFailureError(RegionCaptureException):
    """Raised when a page cannot be rasterized."""
    pass


class EmptySelectionError(RegionCaptureException):
    """Raised when composing with no committed regions."""
    pass


class CoordinateSpaceError(RegionCaptureException):
    """Raised when regions and the sampled bitmap belong to different spaces."""
    pass


class GatewayFailureError(RegionCaptureException):
    """Raised when the recognition service fails or returns garbage."""
    pass


class CardExportError(RegionCaptureException):
    """Raised when capture cards cannot be written or read."""
    pass
