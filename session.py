"""Capture session: the one place document, page, surface and selection live."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from compositor import Compositor
from constants import RENDER_SCALE
from display_surface import DisplaySurface
from document_reader import DocumentHandle, DocumentReader
from exceptions import EmptySelectionError, GatewayFailureError, PageIndexOutOfRangeError
from models import BoundingBox, CaptureCard, CompositeBitmap, RecognitionResult, RenderedPage
from recognition_gateway import RecognitionGateway
from selection import SelectionController, SelectionMode

logger = logging.getLogger(__name__)

# (surface token, selection revision) at the moment a composite was cut
SelectionStamp = Tuple[str, int]


@dataclass
class AnalysisOutcome:
    """Recognition result together with the composite it was produced from."""
    result: RecognitionResult
    composite: CompositeBitmap
    stamp: SelectionStamp
    document_name: str
    page_index: int

    def to_card(self) -> CaptureCard:
        return CaptureCard.from_result(
            self.result,
            context=f"{self.document_name}, page {self.page_index}"
        )


class CaptureSession:
    """
    Session context for a single open document.

    Only open_document/go_to_page replace the document, page and surface;
    only the selection controller changes the selected regions. Rendering is
    single-flight: triggers that arrive while a render is running are ignored.
    """

    def __init__(
        self,
        container_width: float,
        reader: Optional[DocumentReader] = None,
        compositor: Optional[Compositor] = None,
        gateway: Optional[RecognitionGateway] = None,
        render_scale: float = RENDER_SCALE
    ):
        self.container_width = container_width
        self.reader = reader or DocumentReader()
        self.compositor = compositor or Compositor()
        self.gateway = gateway
        self.render_scale = render_scale

        self.document: Optional[DocumentHandle] = None
        self.rendered_page: Optional[RenderedPage] = None
        self.surface: Optional[DisplaySurface] = None
        self.selection = SelectionController()
        self.last_outcome: Optional[AnalysisOutcome] = None
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def current_page(self) -> int:
        return self.document.current_page if self.document is not None else 0

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document is not None else 0

    def _show_page(self, rendered_page: RenderedPage) -> None:
        self._show_surface(rendered_page, DisplaySurface(rendered_page, self.container_width))

    def _show_surface(self, rendered_page: RenderedPage, surface: DisplaySurface) -> None:
        self.rendered_page = rendered_page
        self.surface = surface
        # Resets the selection before the new page is drawn
        self.selection.attach_surface(self.surface)

    async def open_document(
        self,
        data: bytes,
        mime_type: Optional[str],
        name: str = "document",
        password: Optional[str] = None
    ) -> bool:
        """
        Load a document and show its first page.

        On failure the previously open document stays on screen.

        Returns:
            False if ignored because a render was already running

        Raises:
            UnsupportedFormatError, CorruptDocumentError, RenderFailureError
        """
        if self._busy:
            logger.warning(f"Ignoring open of {name}: a render is in progress")
            return False

        self._busy = True
        try:
            handle = await asyncio.to_thread(
                self.reader.load_document, data, mime_type, name, password
            )
            try:
                rendered = await asyncio.to_thread(
                    self.reader.render_page, handle, 1, self.render_scale
                )
                surface = DisplaySurface(rendered, self.container_width)
            except Exception:
                handle.close()
                raise

            previous = self.document
            self.document = handle
            self._show_surface(rendered, surface)
            if previous is not None:
                previous.close()
        finally:
            self._busy = False

        logger.info(f"Opened {name}: page 1/{handle.page_count}")
        return True

    async def go_to_page(self, page_index: int) -> bool:
        """
        Render and show another page (1-indexed).

        Returns:
            False if ignored because a render was already running

        Raises:
            PageIndexOutOfRangeError: If no document is open or the index is invalid
            RenderFailureError: If rendering fails; the current page stays shown
        """
        if self._busy:
            logger.warning(f"Ignoring change to page {page_index}: a render is in progress")
            return False

        if self.document is None:
            raise PageIndexOutOfRangeError("No document is open")

        self._busy = True
        try:
            rendered = await asyncio.to_thread(
                self.reader.render_page, self.document, page_index, self.render_scale
            )
            self.document.current_page = page_index
            self._show_page(rendered)
        finally:
            self._busy = False

        logger.info(f"Showing page {page_index}/{self.document.page_count}")
        return True

    async def change_page(self, delta: int) -> bool:
        return await self.go_to_page(self.current_page + delta)

    def resize_container(self, container_width: float) -> None:
        """Refit the surface; regions from the old geometry are dropped."""
        self.container_width = container_width
        if self.rendered_page is not None:
            self._show_page(self.rendered_page)

    def set_mode(self, mode: SelectionMode) -> None:
        self.selection.set_mode(mode)

    def current_stamp(self) -> Optional[SelectionStamp]:
        state = self.selection.state
        if state.space is None:
            return None
        return (state.space.token, state.revision)

    def compose(self, regions: Optional[Sequence[BoundingBox]] = None) -> CompositeBitmap:
        """
        Build the composite for the current selection.

        Args:
            regions: Explicit subset of the committed regions to use instead
                of the whole committed sequence

        Raises:
            EmptySelectionError: If nothing is selected
        """
        if regions is None:
            regions = self.selection.committed

        if self.surface is None or not regions:
            error_msg = "No regions selected"
            logger.error(error_msg)
            raise EmptySelectionError(error_msg)

        return self.compositor.compose(self.surface.base_bitmap, regions)

    async def analyze(
        self,
        regions: Optional[Sequence[BoundingBox]] = None
    ) -> Optional[AnalysisOutcome]:
        """
        Compose the current selection and send it for recognition.

        The selection is kept whatever the outcome so the user can retry.

        Returns:
            AnalysisOutcome, or None if the page or selection changed while
            the request was in flight

        Raises:
            EmptySelectionError: Before any service call, if nothing is selected
            GatewayFailureError: If no gateway is configured or the service fails
        """
        stamp = self.current_stamp()
        composite = self.compose(regions)
        document_name = self.document.name if self.document is not None else ""
        page_index = self.current_page

        if self.gateway is None:
            raise GatewayFailureError("No recognition gateway configured")

        try:
            result = await self.gateway.analyze(composite)
        except GatewayFailureError as e:
            logger.error(f"Analysis failed: {e}")
            raise
        except Exception as e:
            error_msg = f"Analysis failed: {str(e)}"
            logger.error(error_msg)
            raise GatewayFailureError(error_msg) from e

        if self.current_stamp() != stamp:
            logger.info("Discarding analysis result for a selection that has since changed")
            return None

        self.last_outcome = AnalysisOutcome(
            result=result,
            composite=composite,
            stamp=stamp,
            document_name=document_name,
            page_index=page_index
        )
        return self.last_outcome

    def close(self) -> None:
        if self.document is not None:
            self.document.close()
            self.document = None
        self.rendered_page = None
        self.surface = None
        self.selection.attach_surface(None)
