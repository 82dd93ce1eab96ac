"""
Tests for the capture session: page changes, single-flight rendering and analysis.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from conftest import make_transparent_png_bytes
from exceptions import (
    CorruptDocumentError,
    EmptySelectionError,
    GatewayFailureError,
    PageIndexOutOfRangeError,
)
from models import RecognitionResult
from selection import SelectionMode
from session import CaptureSession

RESULT = RecognitionResult(raw_text="raw", vocalized_text="voc", translated_text="tr")


def _select(session, *regions):
    session.set_mode(SelectionMode.SELECT_REGION)
    for x, y, w, h in regions:
        session.selection.drag((x, y), (x + w, y + h))


@pytest.fixture
def gateway():
    mock = AsyncMock()
    mock.analyze.return_value = RESULT
    return mock


@pytest_asyncio.fixture
async def session(pdf_bytes, gateway):
    s = CaptureSession(container_width=264, gateway=gateway)
    await s.open_document(pdf_bytes, "application/pdf", name="sample.pdf")
    yield s
    s.close()


@pytest.mark.asyncio
class TestNavigation:
    async def test_open_shows_first_page(self, session):
        assert session.current_page == 1
        assert session.page_count == 3
        assert (session.surface.width, session.surface.height) == (200, 300)
        assert session.selection.committed == ()

    async def test_page_change_clears_selection(self, session):
        _select(session, (10, 10, 50, 40))
        session.selection.pointer_down(100, 100)

        assert await session.change_page(1)

        assert session.current_page == 2
        assert session.selection.committed == ()
        assert session.selection.transient is None
        assert session.selection.mode is SelectionMode.SELECT_REGION

    async def test_out_of_range_keeps_page_and_selection(self, session):
        _select(session, (10, 10, 50, 40))
        surface = session.surface
        with pytest.raises(PageIndexOutOfRangeError):
            await session.go_to_page(4)
        assert session.current_page == 1
        assert session.surface is surface
        assert len(session.selection.committed) == 1

    async def test_failed_open_keeps_previous_document(self, session):
        document = session.document
        with pytest.raises(CorruptDocumentError):
            await session.open_document(b"not a png", "image/png", name="broken.png")
        assert session.document is document
        assert not document.is_closed
        assert session.current_page == 1

    async def test_opening_new_file_replaces_document(self, session, png_bytes):
        _select(session, (10, 10, 50, 40))
        previous = session.document
        await session.open_document(png_bytes, "image/png", name="scan.png")
        assert previous.is_closed
        assert session.page_count == 1
        assert session.selection.committed == ()

    async def test_image_has_single_page(self, png_bytes):
        s = CaptureSession(container_width=464)
        await s.open_document(png_bytes, "image/png")
        with pytest.raises(PageIndexOutOfRangeError):
            await s.change_page(1)

    async def test_no_document(self):
        with pytest.raises(PageIndexOutOfRangeError):
            await CaptureSession(container_width=264).go_to_page(1)

    async def test_concurrent_page_changes_are_single_flight(self, session):
        results = await asyncio.gather(session.go_to_page(2), session.go_to_page(3))
        assert results == [True, False]
        assert session.current_page == 2
        assert not session.is_busy

    async def test_resize_container_refits_and_clears(self, session):
        _select(session, (10, 10, 50, 40))
        session.resize_container(464)
        assert session.surface.width == 400
        assert session.selection.committed == ()

    async def test_mode_switch_clears(self, session):
        _select(session, (10, 10, 50, 40))
        session.set_mode(SelectionMode.NAVIGATE)
        assert session.selection.committed == ()


@pytest.mark.asyncio
class TestAnalyze:
    async def test_empty_selection_never_calls_gateway(self, session, gateway):
        with pytest.raises(EmptySelectionError):
            await session.analyze()
        gateway.analyze.assert_not_called()

    async def test_success_keeps_selection(self, session, gateway):
        _select(session, (10, 200, 60, 20), (10, 10, 100, 40))
        outcome = await session.analyze()

        assert outcome.result is RESULT
        assert (outcome.composite.width, outcome.composite.height) == (100, 70)
        assert outcome.composite.regions[0].y == 10
        assert len(session.selection.committed) == 2
        gateway.analyze.assert_awaited_once_with(outcome.composite)
        assert session.last_outcome is outcome

    async def test_gateway_failure_keeps_selection(self, session, gateway):
        gateway.analyze.side_effect = GatewayFailureError("service down")
        _select(session, (10, 10, 50, 40))
        with pytest.raises(GatewayFailureError):
            await session.analyze()
        assert len(session.selection.committed) == 1

    async def test_unexpected_gateway_error_is_wrapped(self, session, gateway):
        gateway.analyze.side_effect = ConnectionError("reset")
        _select(session, (10, 10, 50, 40))
        with pytest.raises(GatewayFailureError):
            await session.analyze()

    async def test_stale_result_is_discarded(self, session, gateway):
        async def change_selection_midway(composite):
            session.selection.undo_last()
            return RESULT

        gateway.analyze.side_effect = change_selection_midway
        _select(session, (10, 10, 50, 40), (10, 100, 50, 40))
        assert await session.analyze() is None
        assert session.last_outcome is None

    async def test_result_discarded_after_page_change(self, session, gateway):
        async def turn_page_midway(composite):
            await session.go_to_page(2)
            return RESULT

        gateway.analyze.side_effect = turn_page_midway
        _select(session, (10, 10, 50, 40))
        assert await session.analyze() is None

    async def test_no_gateway(self, pdf_bytes):
        s = CaptureSession(container_width=264)
        await s.open_document(pdf_bytes, "application/pdf")
        _select(s, (10, 10, 50, 40))
        with pytest.raises(GatewayFailureError):
            await s.analyze()

    async def test_explicit_regions(self, session, gateway):
        _select(session, (10, 10, 50, 40), (10, 100, 80, 40))
        first = session.selection.committed[:1]
        outcome = await session.analyze(first)
        assert outcome.composite.width == 50
        assert len(session.selection.committed) == 2

    async def test_outcome_to_card(self, session):
        _select(session, (10, 10, 50, 40))
        card = (await session.analyze()).to_card()
        assert card.original_text == "raw"
        assert card.context == "sample.pdf, page 1"


@pytest.mark.asyncio
class TestOpenDocumentRobustness:
    async def test_transparent_image_composes_on_white(self):
        s = CaptureSession(container_width=464)
        await s.open_document(make_transparent_png_bytes(), "image/png")
        _select(s, (100, 100, 100, 100))
        composite = s.compose()
        assert composite.image.getpixel((50, 50)) == (255, 255, 255)

    async def test_page_change_during_first_open_is_ignored(self, pdf_bytes):
        s = CaptureSession(container_width=264)
        results = await asyncio.gather(
            s.open_document(pdf_bytes, "application/pdf"),
            s.go_to_page(2),
        )
        assert results == [True, False]
        assert s.current_page == 1
        s.close()

    async def test_surface_failure_keeps_previous_document(self, session, png_bytes):
        document = session.document
        surface = session.surface
        with patch("session.DisplaySurface", side_effect=RuntimeError("surface")):
            with pytest.raises(RuntimeError):
                await session.open_document(png_bytes, "image/png", name="scan.png")
        assert session.document is document
        assert session.surface is surface
        assert not document.is_closed
