"""Command-line argument parsing and validation."""

from __future__ import annotations

import argparse
import logging
import math
import mimetypes
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from constants import IMAGE_MIME_TYPES, PDF_MIME_TYPE

logger = logging.getLogger(__name__)

Region = Tuple[float, float, float, float]


class CLIHandler:
    """Handle command-line argument parsing and validation."""

    @staticmethod
    def parse_region(region_str: str) -> Region:
        """
        Parse a region string in display surface coordinates.

        Supports "x,y,width,height", e.g. "40,120,300,60". Negative width or
        height describe a drag towards the top or left.

        Args:
            region_str: Comma-separated region string

        Returns:
            Tuple of (x, y, width, height)

        Raises:
            ValueError: If region format is invalid
        """
        parts = [part.strip() for part in region_str.split(',')]
        if len(parts) != 4:
            raise ValueError(f"Region must have 4 values x,y,width,height: {region_str}")

        try:
            values = tuple(float(part) for part in parts)
        except ValueError as e:
            raise ValueError(f"Invalid region format: {region_str}") from e

        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Region values must be finite: {region_str}")

        return values

    @staticmethod
    def guess_mime_type(path: Path) -> str:
        """Guess a MIME type from the file name; empty if unknown."""
        mime_type, _ = mimetypes.guess_type(path.name)
        return mime_type or ""

    @staticmethod
    def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
        """
        Parse command-line arguments.

        Returns:
            Parsed arguments namespace
        """
        parser = argparse.ArgumentParser(
            description="Capture regions of a PDF or image page and stitch them "
                        "into one image for recognition",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument(
            'document_path',
            type=str,
            help='Path to input PDF or image file'
        )

        parser.add_argument(
            '--page',
            type=int,
            default=1,
            metavar='N',
            help='Page to capture from (1-indexed, default: 1)'
        )

        parser.add_argument(
            '--container-width',
            type=float,
            default=1024,
            metavar='PIXELS',
            help='Width of the viewing container the page is fitted to (default: 1024)'
        )

        parser.add_argument(
            '--region',
            dest='regions',
            action='append',
            default=[],
            metavar='X,Y,W,H',
            help='Region to select, in display surface pixels. Repeat for several regions; '
                 'they are stitched top to bottom.'
        )

        parser.add_argument(
            '--filter-overlapping',
            action='store_true',
            help='Drop overlapping regions before composing'
        )

        parser.add_argument(
            '--overlap-strategy',
            type=str,
            default='keep_largest',
            choices=['keep_largest', 'keep_first'],
            help='Strategy for filtering overlapping regions when --filter-overlapping is used. '
                 'Options: keep_largest (default), keep_first'
        )

        parser.add_argument(
            '--password',
            type=str,
            default=None,
            metavar='PASSWORD',
            help='Password for encrypted PDF'
        )

        parser.add_argument(
            '--output',
            type=str,
            default=None,
            metavar='FILE',
            help='Where to save the composite PNG (default: {name}_composite.png)'
        )

        parser.add_argument(
            '--save-preview',
            type=str,
            default=None,
            metavar='FILE',
            help='Save the page with region overlays drawn on it'
        )

        parser.add_argument(
            '--analyze',
            action='store_true',
            help='Send the composite to the Gemini recognition service '
                 '(requires GEMINI_API_KEY or GOOGLE_API_KEY)'
        )

        parser.add_argument(
            '--save-json',
            type=str,
            nargs='?',
            const='',
            default=None,
            metavar='FILENAME',
            help='Save the analysis as a capture card. '
                 'If flag is provided without filename, uses default: {name}_cards.json.'
        )

        parser.add_argument(
            '--log-level',
            type=str,
            default='INFO',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
            help='Logging level (default: INFO)'
        )

        return parser.parse_args(argv)

    @staticmethod
    def validate_arguments(args: argparse.Namespace) -> List[Region]:
        """
        Validate parsed arguments.

        Args:
            args: Parsed arguments namespace

        Returns:
            Parsed regions

        Raises:
            ValueError: If arguments are invalid
        """
        document_path = Path(args.document_path)
        if not document_path.exists():
            raise ValueError(f"File not found: {document_path}")

        if not document_path.is_file():
            raise ValueError(f"Path is not a file: {document_path}")

        mime_type = CLIHandler.guess_mime_type(document_path)
        if mime_type and mime_type != PDF_MIME_TYPE and mime_type not in IMAGE_MIME_TYPES:
            raise ValueError(f"File is not a PDF or image: {document_path}")

        if args.page < 1:
            raise ValueError(f"Page numbers must be >= 1: {args.page}")

        if args.container_width <= 0:
            raise ValueError(f"Container width must be positive: {args.container_width}")

        regions = []
        for region_str in args.regions:
            try:
                regions.append(CLIHandler.parse_region(region_str))
            except ValueError as e:
                raise ValueError(f"Invalid region: {e}") from e

        if not regions:
            raise ValueError("At least one --region is required")

        if args.save_json is not None and not args.analyze:
            raise ValueError("--save-json requires --analyze")

        return regions
