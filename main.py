"""Main entry point for the region capture tool."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from card_exporter import CardExporter
from cli_handler import CLIHandler, Region
from exceptions import RegionCaptureException
from recognition_gateway import GeminiRecognitionGateway
from region_geometry import RegionOverlapDetector
from selection import Effect, SelectionMode
from session import CaptureSession

logger = logging.getLogger(__name__)


async def run_capture(args: argparse.Namespace, regions: List[Region]) -> Path:
    """
    Open the document, replay the region drags and write the outputs.

    Returns:
        Path of the saved composite image
    """
    document_path = Path(args.document_path)
    gateway = GeminiRecognitionGateway() if args.analyze else None
    session = CaptureSession(container_width=args.container_width, gateway=gateway)

    try:
        await session.open_document(
            document_path.read_bytes(),
            CLIHandler.guess_mime_type(document_path),
            name=document_path.name,
            password=args.password
        )
        if args.page != 1:
            await session.go_to_page(args.page)

        surface = session.surface
        logger.info(f"Display surface: {surface.width}x{surface.height}")

        session.set_mode(SelectionMode.SELECT_REGION)
        for x, y, width, height in regions:
            effects = session.selection.drag((x, y), (x + width, y + height))
            if Effect.DISCARDED in effects:
                logger.warning(f"Region {x},{y},{width},{height} is too small or off the page, skipped")

        selected = None
        if args.filter_overlapping:
            logger.info(f"Filtering overlapping regions using strategy: {args.overlap_strategy}")
            selected = RegionOverlapDetector().filter_overlapping(
                session.selection.committed,
                strategy=args.overlap_strategy
            )

        if args.save_preview:
            surface.save_frame(args.save_preview)

        if args.analyze:
            outcome = await session.analyze(selected)
            if outcome is None:
                raise RegionCaptureException("Selection changed during analysis")
            composite = outcome.composite
            print(outcome.result.vocalized_text)
            print(outcome.result.translated_text)
            for pair in outcome.result.words:
                print(f"  {pair.word}: {pair.meaning}")

            if args.save_json is not None:
                exporter = CardExporter(document_path)
                output_filename = None if args.save_json == '' else args.save_json
                exporter.export([outcome.to_card()], output_filename=output_filename)
        else:
            composite = session.compose(selected)

        output_path = Path(args.output) if args.output else (
            document_path.parent / f"{document_path.stem}_composite.png"
        )
        output_path.write_bytes(composite.png_bytes)
        logger.info(f"Composite saved: {output_path} ({composite.width}x{composite.height})")
        return output_path

    finally:
        session.close()


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for the region capture tool."""
    try:
        args = CLIHandler.parse_arguments(argv)

        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        regions = CLIHandler.validate_arguments(args)
        logger.info(f"Processing: {args.document_path} (page {args.page}, {len(regions)} region(s))")

        asyncio.run(run_capture(args, regions))
        logger.info("Region capture completed successfully")

    except RegionCaptureException as e:
        logger.error(f"Region Capture Error: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Validation Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
