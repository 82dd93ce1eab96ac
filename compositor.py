"""Stitch selection regions into one image in reading order."""

from __future__ import annotations

import io
import logging
from typing import Optional, Sequence

from PIL import Image

from constants import COMPOSITE_BACKGROUND, OVERLAP_THRESHOLD_DEFAULT, REGION_PADDING
from exceptions import EmptySelectionError
from models import BoundingBox, CompositeBitmap, SurfaceBitmap
from region_geometry import RegionOverlapDetector, check_space

logger = logging.getLogger(__name__)


def reading_order(regions: Sequence[BoundingBox]) -> list:
    """Sort regions top to bottom; equal tops keep insertion order."""
    return sorted(regions, key=lambda region: region.y)


class Compositor:
    """Build a composite bitmap from committed regions of a display surface."""

    def __init__(
        self,
        padding: int = REGION_PADDING,
        background=COMPOSITE_BACKGROUND,
        overlap_detector: Optional[RegionOverlapDetector] = None
    ):
        if padding < 0:
            raise ValueError(f"padding must be non-negative, got {padding}")

        self.padding = padding
        self.background = background
        self.overlap_detector = overlap_detector or RegionOverlapDetector(OVERLAP_THRESHOLD_DEFAULT)

    def compose(
        self,
        surface_bitmap: SurfaceBitmap,
        regions: Sequence[BoundingBox]
    ) -> CompositeBitmap:
        """
        Stack regions vertically, left-aligned, separated by padding rows.

        Regions must be in the coordinate space of the bitmap they are cut
        from; sampling a differently scaled bitmap would crop the wrong pixels.

        Args:
            surface_bitmap: Base display bitmap the regions were drawn on
            regions: Committed regions in any order

        Returns:
            CompositeBitmap with PNG bytes

        Raises:
            EmptySelectionError: If no regions are given
            CoordinateSpaceError: If a region belongs to another surface
        """
        # Copy first so later edits to the caller's sequence cannot leak in
        snapshot = tuple(regions)
        if not snapshot:
            error_msg = "Cannot compose an empty selection"
            logger.error(error_msg)
            raise EmptySelectionError(error_msg)

        check_space(snapshot, surface_bitmap.space)

        for i, j, coverage in self.overlap_detector.detect_overlaps(snapshot):
            logger.warning(
                f"Regions {i + 1} and {j + 1} overlap ({coverage:.0%}); "
                f"shared pixels appear twice in the composite"
            )

        ordered = reading_order(snapshot)

        width = max(region.pixel_width for region in ordered)
        height = (
            sum(region.pixel_height for region in ordered)
            + (len(ordered) - 1) * self.padding
        )

        composite = Image.new("RGB", (width, height), self.background)
        source = surface_bitmap.image

        running_y = 0
        for region in ordered:
            # crop() pads out-of-bounds areas with black; clip to the source first
            left, top, right, bottom = region.pixel_bounds
            crop_box = (
                max(0, left),
                max(0, top),
                min(source.width, right),
                min(source.height, bottom),
            )
            if crop_box[2] > crop_box[0] and crop_box[3] > crop_box[1]:
                tile = source.crop(crop_box)
                composite.paste(tile, (crop_box[0] - left, running_y + crop_box[1] - top))
            running_y += region.pixel_height + self.padding

        buffer = io.BytesIO()
        composite.save(buffer, format="PNG")

        logger.info(
            f"Composed {len(ordered)} region(s) into {width}x{height} image"
        )
        return CompositeBitmap(
            image=composite,
            regions=tuple(ordered),
            png_bytes=buffer.getvalue()
        )
