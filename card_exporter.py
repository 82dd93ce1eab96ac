"""Export capture cards to JSON format."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from exceptions import CardExportError
from models import CaptureCard

logger = logging.getLogger(__name__)


class CardExporter:
    """Write capture cards to, and read them back from, a JSON file."""

    def __init__(self, document_path: Path):
        """
        Initialize CardExporter.

        Args:
            document_path: Path of the document the cards were captured from
        """
        self.document_path = Path(document_path)
        self.document_name = self.document_path.name

    def get_output_path(self, filename: Optional[str] = None) -> Path:
        """
        Get output path for the JSON file.

        Args:
            filename: Optional custom filename. If None, uses {stem}_cards.json.

        Returns:
            Path to output JSON file in the document's directory
        """
        if filename is None:
            filename = f"{self.document_path.stem}_cards.json"

        if not filename.endswith('.json'):
            filename = f"{filename}.json"

        return self.document_path.parent / filename

    def _format_data(self, cards: List[CaptureCard]) -> Dict[str, Any]:
        # Newest first
        ordered = sorted(cards, key=lambda card: card.created_at, reverse=True)
        return {
            "document_name": self.document_name,
            "card_count": len(ordered),
            "cards": [card.to_dict() for card in ordered]
        }

    def load(self, path: Path) -> List[CaptureCard]:
        """
        Read cards previously written by export().

        Returns:
            List of cards, or an empty list if the file does not exist

        Raises:
            CardExportError: If the file cannot be parsed
        """
        path = Path(path)
        if not path.exists():
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [CaptureCard.from_dict(item) for item in data.get("cards", [])]
        except Exception as e:
            error_msg = f"Failed to read cards from {path}: {str(e)}"
            logger.error(error_msg)
            raise CardExportError(error_msg) from e

    def export(
        self,
        cards: List[CaptureCard],
        output_filename: Optional[str] = None,
        append: bool = True
    ) -> Path:
        """
        Export cards to a JSON file.

        Args:
            cards: Cards to write
            output_filename: Optional custom output filename
            append: Keep cards already stored in the file

        Returns:
            Path to the exported JSON file

        Raises:
            CardExportError: If export fails
        """
        output_path = self.get_output_path(output_filename)
        existing = self.load(output_path) if append else []

        known_ids = {card.id for card in cards}
        merged = list(cards) + [card for card in existing if card.id not in known_ids]

        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(self._format_data(merged), f, indent=2, ensure_ascii=False)
        except Exception as e:
            error_msg = f"Failed to export cards: {str(e)}"
            logger.error(error_msg)
            raise CardExportError(error_msg) from e

        logger.info(f"Exported {len(merged)} card(s) to {output_path}")
        return output_path
