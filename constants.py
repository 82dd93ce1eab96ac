"""Fixed tuning constants for rendering, selection and composition."""

from __future__ import annotations

# Rasterization scale for paginated documents; favors recognition quality
RENDER_SCALE = 2.0

# Horizontal space reserved around the display surface inside its container
CONTAINER_MARGIN = 64

# Drags smaller than this on either axis are treated as clicks
MIN_REGION_SIZE = 10

# Vertical gap between stacked regions in the composite
REGION_PADDING = 10

# Coverage ratio above which two committed regions are reported as overlapping
OVERLAP_THRESHOLD_DEFAULT = 0.5

COMPOSITE_BACKGROUND = (255, 255, 255)
SURFACE_BACKGROUND = (255, 255, 255)

# Overlay styling (indigo)
BOX_COLOR = (79, 70, 229)
COMMITTED_FILL_ALPHA = 51  # ~0.2
TRANSIENT_FILL_ALPHA = 26  # ~0.1
OUTLINE_WIDTH = 2
DASH_PATTERN = (4, 4)
LABEL_SIZE = (24, 20)
LABEL_TEXT_COLOR = (255, 255, 255)

PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "image/bmp",
    "image/webp",
    "image/tiff",
})
GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream"})

GEMINI_MODEL_DEFAULT = "gemini-2.5-flash"
GEMINI_TEMPERATURE_DEFAULT = 0.3
