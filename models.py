"""Data models for document rendering, region selection and composition."""

from __future__ import annotations

import base64
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image


@dataclass(frozen=True)
class CoordinateSpace:
    """Identity of a pixel coordinate system (one per drawn display surface)."""
    token: str
    width: int
    height: int

    @classmethod
    def new(cls, width: int, height: int) -> CoordinateSpace:
        return cls(token=uuid.uuid4().hex, width=width, height=height)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned region in display surface coordinates (top-left origin)."""
    x: float
    y: float
    width: float
    height: float
    space: Optional[CoordinateSpace] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate BoundingBox data after initialization."""
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"BoundingBox contains non-finite values: {values}")

        # Drag direction is resolved before a box is built
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"BoundingBox extents must be non-negative, got {self.width}x{self.height}"
            )

    @classmethod
    def from_corners(
        cls,
        anchor: Tuple[float, float],
        current: Tuple[float, float],
        space: Optional[CoordinateSpace] = None
    ) -> BoundingBox:
        """
        Build a canonical box from two opposite corners in any drag direction.

        Args:
            anchor: Point where the drag started
            current: Current pointer position
            space: Coordinate space both points belong to

        Returns:
            BoundingBox with top-left origin and positive extents
        """
        ax, ay = anchor
        cx, cy = current
        return cls(
            x=min(ax, cx),
            y=min(ay, cy),
            width=abs(cx - ax),
            height=abs(cy - ay),
            space=space
        )

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Returns (x0, y0, x1, y1)."""
        return (self.x, self.y, self.right, self.bottom)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def pixel_bounds(self) -> Tuple[int, int, int, int]:
        """Returns integer (left, top, right, bottom) for PIL crop."""
        left = int(round(self.x))
        top = int(round(self.y))
        return (left, top, left + self.pixel_width, top + self.pixel_height)

    @property
    def pixel_width(self) -> int:
        return int(round(self.width))

    @property
    def pixel_height(self) -> int:
        return int(round(self.height))


@dataclass
class RenderedPage:
    """A rasterized page and the scale it was rendered at."""
    image: Image.Image
    page_index: int  # 1-based
    scale: float
    source_width: float
    source_height: float

    def __post_init__(self) -> None:
        if self.page_index < 1:
            raise ValueError(f"page_index must be >= 1, got {self.page_index}")

        if self.source_width <= 0 or self.source_height <= 0:
            raise ValueError(
                f"Invalid source dimensions: {self.source_width}x{self.source_height}"
            )

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class SurfaceGeometry:
    """Display surface size derived from a rendered page and its container."""
    surface_width: int
    surface_height: int
    scale: float

    @property
    def is_empty(self) -> bool:
        return self.surface_width <= 0 or self.surface_height <= 0


@dataclass
class SurfaceBitmap:
    """Pixels of a display surface, tagged with their coordinate space."""
    image: Image.Image
    space: CoordinateSpace

    def __post_init__(self) -> None:
        if self.image.size != (self.space.width, self.space.height):
            raise ValueError(
                f"Bitmap size {self.image.size} does not match coordinate space "
                f"{self.space.width}x{self.space.height}"
            )

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass
class CompositeBitmap:
    """Stitched image of all regions in reading order, ready for recognition."""
    image: Image.Image
    regions: Tuple[BoundingBox, ...]  # reading order
    png_bytes: bytes

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def base64(self) -> str:
        return base64.b64encode(self.png_bytes).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.base64}"


@dataclass
class WordPair:
    """One word of the source text and its meaning in context."""
    word: str
    meaning: str

    def to_dict(self) -> Dict[str, str]:
        return {"word": self.word, "meaning": self.meaning}


@dataclass
class RecognitionResult:
    """Structured text returned by the recognition service."""
    raw_text: str
    vocalized_text: str
    translated_text: str
    words: List[WordPair] = field(default_factory=list)
    confidence: Optional[float] = None


@dataclass
class CaptureCard:
    """A recognition result in the form downstream storage persists it."""
    id: str
    original_text: str
    translated_text: str
    vocalized_text: Optional[str] = None
    words: List[WordPair] = field(default_factory=list)
    context: Optional[str] = None
    created_at: int = 0  # epoch milliseconds

    @classmethod
    def from_result(
        cls,
        result: RecognitionResult,
        context: Optional[str] = None
    ) -> CaptureCard:
        now_ms = int(time.time() * 1000)
        return cls(
            id=uuid.uuid4().hex,
            original_text=result.raw_text,
            translated_text=result.translated_text,
            vocalized_text=result.vocalized_text,
            words=list(result.words),
            context=context,
            created_at=now_ms
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CaptureCard:
        return cls(
            id=str(data["id"]),
            original_text=data["original_text"],
            translated_text=data["translated_text"],
            vocalized_text=data.get("vocalized_text"),
            words=[WordPair(word=w["word"], meaning=w["meaning"]) for w in data.get("words", [])],
            context=data.get("context"),
            created_at=int(data.get("created_at", 0))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_text": self.original_text,
            "vocalized_text": self.vocalized_text,
            "translated_text": self.translated_text,
            "words": [w.to_dict() for w in self.words],
            "context": self.context,
            "created_at": self.created_at
        }
