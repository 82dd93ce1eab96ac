"""Display surface geometry and overlay drawing using Pillow."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from constants import (
    BOX_COLOR,
    COMMITTED_FILL_ALPHA,
    CONTAINER_MARGIN,
    DASH_PATTERN,
    LABEL_SIZE,
    LABEL_TEXT_COLOR,
    OUTLINE_WIDTH,
    TRANSIENT_FILL_ALPHA,
)
from models import BoundingBox, CoordinateSpace, RenderedPage, SurfaceBitmap, SurfaceGeometry
from region_geometry import check_space

logger = logging.getLogger(__name__)


def compute_geometry(
    rendered_page: RenderedPage,
    container_width: float,
    margin: float = CONTAINER_MARGIN
) -> SurfaceGeometry:
    """
    Fit a rendered page to its container width, preserving aspect ratio.

    Args:
        rendered_page: Page to display
        container_width: Width of the hosting container
        margin: Horizontal space reserved inside the container

    Returns:
        SurfaceGeometry; zero-area when the container leaves no room
    """
    available = container_width - margin
    if available <= 0 or rendered_page.width <= 0:
        return SurfaceGeometry(surface_width=0, surface_height=0, scale=0.0)

    scale = available / rendered_page.width
    surface_width = int(available)
    surface_height = int(round(rendered_page.height * scale))

    if surface_width <= 0 or surface_height <= 0:
        return SurfaceGeometry(surface_width=0, surface_height=0, scale=0.0)

    return SurfaceGeometry(
        surface_width=surface_width,
        surface_height=surface_height,
        scale=scale
    )


def _draw_dashed_rectangle(
    draw: ImageDraw.ImageDraw,
    bounds: Tuple[float, float, float, float],
    color: Tuple[int, int, int, int],
    width: int,
    dash: Tuple[int, int]
) -> None:
    """Pillow has no dash support; stroke each edge segment by segment."""
    x0, y0, x1, y1 = bounds
    on, off = dash
    step = on + off

    edges = (
        ((x0, y0), (x1, y0)),
        ((x1, y0), (x1, y1)),
        ((x1, y1), (x0, y1)),
        ((x0, y1), (x0, y0)),
    )
    for (sx, sy), (ex, ey) in edges:
        length = abs(ex - sx) + abs(ey - sy)
        if length == 0:
            continue
        dx = (ex - sx) / length
        dy = (ey - sy) / length
        pos = 0.0
        while pos < length:
            end = min(pos + on, length)
            draw.line(
                [(sx + dx * pos, sy + dy * pos), (sx + dx * end, sy + dy * end)],
                fill=color,
                width=width
            )
            pos += step


class DisplaySurface:
    """On-screen bitmap of a rendered page with region overlays."""

    def __init__(
        self,
        rendered_page: RenderedPage,
        container_width: float,
        offset: Tuple[float, float] = (0.0, 0.0)
    ):
        """
        Initialize DisplaySurface.

        Args:
            rendered_page: Page to display
            container_width: Width of the hosting container
            offset: On-screen position of the surface's top-left corner
        """
        self.rendered_page = rendered_page
        self.offset = offset
        self.geometry = compute_geometry(rendered_page, container_width)
        self.space = CoordinateSpace.new(
            self.geometry.surface_width, self.geometry.surface_height
        )

        size = (self.geometry.surface_width, self.geometry.surface_height)
        if self.geometry.is_empty:
            base = Image.new("RGB", size)
        else:
            base = rendered_page.image.convert("RGB").resize(size, Image.LANCZOS)

        self._base = SurfaceBitmap(image=base, space=self.space)
        self.frame: Image.Image = base.copy()
        self._font = ImageFont.load_default()

        logger.debug(
            f"Surface for page {rendered_page.page_index}: "
            f"{size[0]}x{size[1]} (scale {self.geometry.scale:.4f})"
        )

    @property
    def width(self) -> int:
        return self.geometry.surface_width

    @property
    def height(self) -> int:
        return self.geometry.surface_height

    @property
    def base_bitmap(self) -> SurfaceBitmap:
        """The scaled page without overlays, in this surface's coordinate space."""
        return self._base

    def to_surface_point(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """Convert screen coordinates to surface-local coordinates."""
        left, top = self.offset
        return screen_x - left, screen_y - top

    def _draw_label(self, draw: ImageDraw.ImageDraw, region: BoundingBox, ordinal: int) -> None:
        label_w, label_h = LABEL_SIZE
        top = region.y - label_h
        if top < 0:
            # No room above the region; tuck the label inside it
            top = region.y
        draw.rectangle(
            [region.x, top, region.x + label_w, top + label_h],
            fill=BOX_COLOR + (255,)
        )
        draw.text((region.x + 8, top + 4), str(ordinal), fill=LABEL_TEXT_COLOR + (255,), font=self._font)

    def draw(
        self,
        committed: Sequence[BoundingBox],
        transient: Optional[BoundingBox] = None
    ) -> Image.Image:
        """
        Redraw the surface: base page, committed regions, then the in-progress one.

        Safe to call repeatedly; every call starts from the untouched base page.

        Args:
            committed: Committed regions in insertion order
            transient: Region being dragged, if any

        Returns:
            The drawn frame (RGB)

        Raises:
            CoordinateSpaceError: If a region belongs to another surface
        """
        check_space(committed, self.space)
        if transient is not None:
            check_space([transient], self.space)

        if self.geometry.is_empty:
            self.frame = self._base.image.copy()
            return self.frame

        overlay = Image.new("RGBA", self._base.image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        outline = BOX_COLOR + (255,)

        # Labels follow insertion order, not reading order
        for ordinal, region in enumerate(committed, start=1):
            draw.rectangle(list(region.bounds), fill=BOX_COLOR + (COMMITTED_FILL_ALPHA,))
            draw.rectangle(list(region.bounds), outline=outline, width=OUTLINE_WIDTH)
            self._draw_label(draw, region, ordinal)

        if transient is not None:
            draw.rectangle(list(transient.bounds), fill=BOX_COLOR + (TRANSIENT_FILL_ALPHA,))
            _draw_dashed_rectangle(draw, transient.bounds, outline, OUTLINE_WIDTH, DASH_PATTERN)

        frame = Image.alpha_composite(self._base.image.convert("RGBA"), overlay)
        self.frame = frame.convert("RGB")
        return self.frame

    def save_frame(self, output_path) -> None:
        """Save the last drawn frame as an image file."""
        self.frame.save(output_path)
        logger.info(f"Surface preview saved: {output_path}")
