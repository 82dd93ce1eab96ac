"""Document loading, decryption and page rasterization."""

from __future__ import annotations

import io
import logging
import math
from typing import Any, Dict, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageOps, UnidentifiedImageError

from constants import (
    GENERIC_MIME_TYPES,
    IMAGE_MIME_TYPES,
    PDF_MIME_TYPE,
    RENDER_SCALE,
    SURFACE_BACKGROUND,
)
from exceptions import (
    CorruptDocumentError,
    DocumentDecryptionError,
    PageIndexOutOfRangeError,
    RenderFailureError,
    UnsupportedFormatError,
)
from models import RenderedPage

logger = logging.getLogger(__name__)

KIND_PDF = "pdf"
KIND_IMAGE = "image"


class DocumentHandle:
    """Opaque reference to a loaded document, owned by the session that opened it."""

    def __init__(
        self,
        name: str,
        mime_type: str,
        kind: str,
        page_count: int,
        pdf_document: Optional[fitz.Document] = None,
        image: Optional[Image.Image] = None,
        is_encrypted: bool = False
    ):
        self.name = name
        self.mime_type = mime_type
        self.kind = kind
        self.page_count = page_count
        self.current_page = 1
        self.is_encrypted = is_encrypted
        self._pdf_document = pdf_document
        self._image = image

    @property
    def is_closed(self) -> bool:
        return self._pdf_document is None and self._image is None

    def close(self) -> None:
        """Release the underlying document."""
        if self._pdf_document is not None:
            self._pdf_document.close()
            self._pdf_document = None
        self._image = None
        logger.info(f"Document closed: {self.name}")

    def __repr__(self) -> str:
        return (
            f"DocumentHandle(name={self.name!r}, kind={self.kind!r}, "
            f"page_count={self.page_count}, current_page={self.current_page})"
        )


class DocumentReader:
    """Open PDFs and raster images from bytes and rasterize their pages."""

    def resolve_format(self, data: bytes, mime_type: Optional[str]) -> Tuple[str, str]:
        """
        Decide how to decode the given bytes.

        Args:
            data: Raw file bytes
            mime_type: Declared MIME type (may be empty or generic)

        Returns:
            Tuple of (kind, effective MIME type)

        Raises:
            UnsupportedFormatError: If the declared type is neither PDF nor a
                supported image type
        """
        declared = (mime_type or "").strip().lower()

        if declared == PDF_MIME_TYPE:
            return KIND_PDF, declared

        if declared in IMAGE_MIME_TYPES:
            return KIND_IMAGE, declared

        if declared in GENERIC_MIME_TYPES:
            if data[:5] == b"%PDF-":
                logger.debug("Sniffed PDF header in untyped file")
                return KIND_PDF, PDF_MIME_TYPE
            # Let Pillow decide; failure surfaces as UnsupportedFormatError
            return KIND_IMAGE, declared

        error_msg = f"Unsupported file format: {mime_type}"
        logger.error(error_msg)
        raise UnsupportedFormatError(error_msg)

    def open_pdf(self, data: bytes) -> fitz.Document:
        """
        Open a PDF from memory.

        Raises:
            CorruptDocumentError: If the PDF cannot be parsed or has no pages
        """
        try:
            pdf_document = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            error_msg = f"Failed to open PDF. Error: {str(e)}"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg) from e

        if pdf_document.page_count < 1:
            pdf_document.close()
            error_msg = "PDF has no pages"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg)

        return pdf_document

    def decrypt_pdf(self, pdf_document: fitz.Document, password: Optional[str] = None) -> bool:
        """
        Decrypt PDF if encrypted.

        Args:
            pdf_document: Opened PyMuPDF document
            password: Optional password for encrypted PDF

        Returns:
            True if decryption successful or PDF is not encrypted

        Raises:
            DocumentDecryptionError: If decryption fails
        """
        if not pdf_document.needs_pass:
            logger.debug("PDF is not encrypted")
            return True

        try:
            # Owner-password-only PDFs open with an empty user password
            result = pdf_document.authenticate(password or "")
        except Exception as e:
            error_msg = f"Failed to decrypt PDF: {str(e)}"
            logger.error(error_msg)
            raise DocumentDecryptionError(error_msg) from e

        if result:
            logger.info("PDF decrypted successfully")
            return True

        if password:
            error_msg = "PDF decryption failed: Invalid password"
        else:
            error_msg = "PDF is encrypted and requires a password"
        logger.error(error_msg)
        raise DocumentDecryptionError(error_msg)

    def open_image(self, data: bytes, declared_type: str) -> Image.Image:
        """
        Decode a raster image, applying EXIF orientation.

        Raises:
            UnsupportedFormatError: If untyped bytes are not a known image
            CorruptDocumentError: If a declared image cannot be decoded
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except UnidentifiedImageError as e:
            if declared_type in GENERIC_MIME_TYPES:
                error_msg = "File is neither a PDF nor a supported image"
                logger.error(error_msg)
                raise UnsupportedFormatError(error_msg) from e
            error_msg = f"Failed to decode image ({declared_type}): {str(e)}"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg) from e
        except Exception as e:
            error_msg = f"Failed to decode image ({declared_type}): {str(e)}"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg) from e

        image_format = image.format
        image = ImageOps.exif_transpose(image)
        if self._has_alpha(image):
            # Transparent pixels show the page background, not their stored color
            rgba = image.convert("RGBA")
            background = Image.new("RGBA", rgba.size, SURFACE_BACKGROUND + (255,))
            image = Image.alpha_composite(background, rgba).convert("RGB")
        elif image.mode != "RGB":
            image = image.convert("RGB")
        # format is lost on conversion; keep it for MIME reporting
        image.format = image_format

        if image.width < 1 or image.height < 1:
            error_msg = f"Image has no pixels: {image.width}x{image.height}"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg)

        return image

    @staticmethod
    def _has_alpha(image: Image.Image) -> bool:
        if image.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
            return True
        return image.mode == "P" and "transparency" in image.info

    def load_document(
        self,
        data: bytes,
        mime_type: Optional[str],
        name: str = "document",
        password: Optional[str] = None
    ) -> DocumentHandle:
        """
        Load a document from raw bytes.

        Args:
            data: Raw file bytes
            mime_type: Declared MIME type
            name: Display name of the document
            password: Optional password for encrypted PDFs

        Returns:
            DocumentHandle positioned on page 1

        Raises:
            UnsupportedFormatError: If the format is not supported
            CorruptDocumentError: If the document cannot be read
        """
        if not data:
            error_msg = f"Document is empty: {name}"
            logger.error(error_msg)
            raise CorruptDocumentError(error_msg)

        kind, effective_type = self.resolve_format(data, mime_type)

        if kind == KIND_PDF:
            pdf_document = self.open_pdf(data)
            is_encrypted = bool(pdf_document.needs_pass)
            try:
                self.decrypt_pdf(pdf_document, password=password)
            except DocumentDecryptionError:
                pdf_document.close()
                raise

            handle = DocumentHandle(
                name=name,
                mime_type=effective_type,
                kind=KIND_PDF,
                page_count=pdf_document.page_count,
                pdf_document=pdf_document,
                is_encrypted=is_encrypted
            )
        else:
            image = self.open_image(data, effective_type)
            handle = DocumentHandle(
                name=name,
                mime_type=(
                    effective_type if effective_type not in GENERIC_MIME_TYPES
                    else Image.MIME.get(image.format or "", "image/png")
                ),
                kind=KIND_IMAGE,
                page_count=1,
                image=image
            )

        logger.info(f"Document loaded: {name} ({handle.kind}, {handle.page_count} page(s))")
        return handle

    def get_page_dimensions(self, handle: DocumentHandle, page_index: int) -> Tuple[float, float]:
        """
        Get native page dimensions.

        Args:
            handle: Loaded document
            page_index: Page number (1-indexed)

        Returns:
            Tuple of (width, height) in PDF points, or pixels for images
        """
        self._check_page_index(handle, page_index)

        if handle.kind == KIND_IMAGE:
            return float(handle._image.width), float(handle._image.height)

        rect = handle._pdf_document[page_index - 1].rect
        return rect.width, rect.height

    def render_page(
        self,
        handle: DocumentHandle,
        page_index: int,
        scale: float = RENDER_SCALE
    ) -> RenderedPage:
        """
        Rasterize a page to an RGB bitmap.

        Images are returned at native resolution; the scale only applies to
        paginated documents.

        Args:
            handle: Loaded document
            page_index: Page number (1-indexed)
            scale: Rasterization scale factor

        Returns:
            RenderedPage

        Raises:
            PageIndexOutOfRangeError: If page_index is outside 1..page_count
            RenderFailureError: If rasterization fails
        """
        if not math.isfinite(scale) or scale <= 0:
            raise ValueError(f"scale must be a positive number, got {scale}")

        self._check_page_index(handle, page_index)

        if handle.kind == KIND_IMAGE:
            image = handle._image
            return RenderedPage(
                image=image.copy(),
                page_index=1,
                scale=1.0,
                source_width=float(image.width),
                source_height=float(image.height)
            )

        try:
            page = handle._pdf_document[page_index - 1]
            matrix = fitz.Matrix(scale, scale)
            pix = page.get_pixmap(matrix=matrix, alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        except Exception as e:
            error_msg = f"Failed to render page {page_index} of {handle.name}: {str(e)}"
            logger.error(error_msg)
            raise RenderFailureError(error_msg) from e

        logger.debug(
            f"Rendered page {page_index} at {scale}x: {image.width}x{image.height}"
        )
        return RenderedPage(
            image=image,
            page_index=page_index,
            scale=scale,
            source_width=page.rect.width,
            source_height=page.rect.height
        )

    def get_metadata(self, handle: DocumentHandle) -> Dict[str, Any]:
        """
        Get document metadata.

        Returns:
            Dictionary containing document metadata
        """
        if handle.is_closed:
            raise CorruptDocumentError(f"Document is closed: {handle.name}")

        metadata = {}
        if handle.kind == KIND_PDF:
            metadata = dict(handle._pdf_document.metadata or {})

        return {
            'document_name': handle.name,
            'mime_type': handle.mime_type,
            'total_pages': handle.page_count,
            'is_encrypted': handle.is_encrypted,
            'metadata': metadata
        }

    def _check_page_index(self, handle: DocumentHandle, page_index: int) -> None:
        if handle.is_closed:
            raise RenderFailureError(f"Document is closed: {handle.name}")

        if page_index < 1 or page_index > handle.page_count:
            error_msg = (
                f"Page {page_index} is out of range (1-{handle.page_count}) "
                f"for {handle.name}"
            )
            logger.error(error_msg)
            raise PageIndexOutOfRangeError(error_msg)
