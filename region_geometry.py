"""Clipping and overlap detection for selection regions using Shapely."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import Polygon, box

from constants import OVERLAP_THRESHOLD_DEFAULT
from exceptions import CoordinateSpaceError
from models import BoundingBox, CoordinateSpace

logger = logging.getLogger(__name__)


def _bbox_to_polygon(region: BoundingBox) -> Polygon:
    """
    Convert a region to a Shapely Polygon.

    Raises:
        ValueError: If the region has no area
    """
    x0, y0, x1, y1 = region.bounds
    if x1 <= x0 or y1 <= y0:
        raise ValueError(f"Invalid region: {region.bounds} (x1 <= x0 or y1 <= y0)")

    return box(x0, y0, x1, y1)


def clip_to_surface(
    region: BoundingBox,
    surface_width: float,
    surface_height: float
) -> Optional[BoundingBox]:
    """
    Clip a region against the surface rectangle.

    Args:
        region: Region in surface coordinates
        surface_width: Surface width
        surface_height: Surface height

    Returns:
        The clipped region, or None if nothing of it lies on the surface
    """
    if surface_width <= 0 or surface_height <= 0 or region.width <= 0 or region.height <= 0:
        return None

    surface = box(0, 0, surface_width, surface_height)
    clipped = _bbox_to_polygon(region).intersection(surface)

    if clipped.is_empty or clipped.area <= 0:
        return None

    x0, y0, x1, y1 = clipped.bounds
    if (x0, y0, x1, y1) != region.bounds:
        logger.debug(f"Region {region.bounds} clipped to {(x0, y0, x1, y1)}")

    return BoundingBox(x=x0, y=y0, width=x1 - x0, height=y1 - y0, space=region.space)


class RegionOverlapDetector:
    """Detect and filter overlapping selection regions."""

    def __init__(self, overlap_threshold: float = OVERLAP_THRESHOLD_DEFAULT):
        """
        Initialize RegionOverlapDetector.

        Args:
            overlap_threshold: Minimum coverage ratio to consider regions as overlapping (0.0-1.0)
        """
        if not 0.0 <= overlap_threshold <= 1.0:
            raise ValueError("overlap_threshold must be between 0.0 and 1.0")

        self.overlap_threshold = overlap_threshold

    def calculate_coverage_ratio(self, region1: BoundingBox, region2: BoundingBox) -> float:
        """
        Calculate coverage ratio between two regions.

        Coverage ratio = intersection_area / min(area1, area2)

        Returns:
            Coverage ratio (0.0-1.0)
        """
        poly1 = _bbox_to_polygon(region1)
        poly2 = _bbox_to_polygon(region2)

        if not poly1.intersects(poly2):
            return 0.0

        min_area = min(poly1.area, poly2.area)
        if min_area < 1e-10:
            return 0.0

        return poly1.intersection(poly2).area / min_area

    def detect_overlaps(self, regions: Sequence[BoundingBox]) -> List[Tuple[int, int, float]]:
        """
        Detect overlapping regions.

        Args:
            regions: Regions in one coordinate space

        Returns:
            List of tuples (index1, index2, coverage_ratio) for overlapping pairs
        """
        overlaps = []
        n = len(regions)

        for i in range(n):
            for j in range(i + 1, n):
                try:
                    coverage_ratio = self.calculate_coverage_ratio(regions[i], regions[j])
                except ValueError as e:
                    logger.warning(f"Invalid region during overlap calculation: {e}, skipping")
                    continue

                if coverage_ratio >= self.overlap_threshold:
                    overlaps.append((i, j, coverage_ratio))
                    logger.debug(
                        f"Overlap detected: regions {i + 1} and {j + 1} "
                        f"(coverage: {coverage_ratio:.2f})"
                    )

        return overlaps

    def filter_overlapping(
        self,
        regions: Sequence[BoundingBox],
        strategy: str = "keep_largest"
    ) -> List[BoundingBox]:
        """
        Return a new list without overlapping regions; the input is not modified.

        Args:
            regions: Regions in insertion order
            strategy: "keep_largest" or "keep_first"

        Returns:
            Filtered list preserving the original relative order

        Raises:
            ValueError: If strategy is not supported
        """
        if strategy not in ("keep_largest", "keep_first"):
            raise ValueError(f"Unsupported filtering strategy: {strategy}")

        overlaps = self.detect_overlaps(regions)
        if not overlaps:
            return list(regions)

        indices_to_remove = set()
        for i, j, _ in overlaps:
            if strategy == "keep_largest" and regions[j].area > regions[i].area:
                indices_to_remove.add(i)
            else:
                # Equal areas, or keep_first: the later region goes
                indices_to_remove.add(j)

        filtered = [r for idx, r in enumerate(regions) if idx not in indices_to_remove]

        logger.info(
            f"Filtered {len(indices_to_remove)} overlapping regions "
            f"(strategy: {strategy}). Remaining: {len(filtered)}"
        )
        return filtered


def check_space(regions: Iterable[BoundingBox], space: CoordinateSpace) -> None:
    """
    Ensure every region was drawn in the given coordinate space.

    Raises:
        CoordinateSpaceError: On the first region from another space
    """
    for region in regions:
        if region.space != space:
            error_msg = (
                f"Region {region.bounds} belongs to a different coordinate space "
                f"than the target surface ({space.width}x{space.height})"
            )
            logger.error(error_msg)
            raise CoordinateSpaceError(error_msg)
