"""Recognition service boundary: composite image in, structured text out."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

import google.generativeai as genai

from constants import GEMINI_MODEL_DEFAULT, GEMINI_TEMPERATURE_DEFAULT
from exceptions import GatewayFailureError
from models import CompositeBitmap, RecognitionResult, WordPair

logger = logging.getLogger(__name__)

ImagePayload = Union[CompositeBitmap, bytes, str]

PROMPT_TEMPLATE = """
You are an expert {source} linguist and translator.

1. OCR: Extract the {source} text from the provided image. Fix recognition
   imperfections from context. The image may stack several regions; read
   them top to bottom as one passage.
2. Vocalization: Add full diacritics to the text so it is grammatically
   correct and readable.
3. Translation: Translate the whole passage into natural, fluent {target}.
4. Word by word: Break the passage into individual words or terms and give
   the {target} meaning of each one in this context.

Return the result strictly as JSON.
"""

RESPONSE_SCHEMA = genai.protos.Schema(
    type=genai.protos.Type.OBJECT,
    properties={
        "originalText": genai.protos.Schema(
            type=genai.protos.Type.STRING,
            description="The raw text extracted from the image.",
        ),
        "vocalizedText": genai.protos.Schema(
            type=genai.protos.Type.STRING,
            description="The text fully vocalized with diacritics.",
        ),
        "translatedText": genai.protos.Schema(
            type=genai.protos.Type.STRING,
            description="A fluent translation of the whole passage.",
        ),
        "words": genai.protos.Schema(
            type=genai.protos.Type.ARRAY,
            description="A word-by-word breakdown of the text.",
            items=genai.protos.Schema(
                type=genai.protos.Type.OBJECT,
                properties={
                    "word": genai.protos.Schema(
                        type=genai.protos.Type.STRING,
                        description="A single vocalized source word.",
                    ),
                    "meaning": genai.protos.Schema(
                        type=genai.protos.Type.STRING,
                        description="Its meaning in this context.",
                    ),
                },
                required=["word", "meaning"],
            ),
        ),
    },
    required=["originalText", "vocalizedText", "translatedText", "words"],
)


def decode_image_payload(payload: ImagePayload) -> bytes:
    """
    Normalize a composite, raw PNG bytes, base64 text or a data URL to bytes.

    Raises:
        GatewayFailureError: If a text payload is not valid base64
    """
    if isinstance(payload, CompositeBitmap):
        return payload.png_bytes

    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)

    # Strip "data:image/png;base64," if present
    encoded = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise GatewayFailureError(f"Image payload is not valid base64: {e}") from e


def parse_recognition_payload(text: Optional[str]) -> RecognitionResult:
    """
    Turn the service's JSON reply into a RecognitionResult.

    Raises:
        GatewayFailureError: If the reply is empty, not JSON, or incomplete
    """
    if not text:
        raise GatewayFailureError("No response from recognition service")

    try:
        data: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        raise GatewayFailureError(f"Recognition response is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise GatewayFailureError(f"Recognition response is not an object: {type(data).__name__}")

    missing = [key for key in ("originalText", "translatedText") if key not in data]
    if missing:
        raise GatewayFailureError(f"Recognition response missing fields: {', '.join(missing)}")

    words = []
    for item in data.get("words") or []:
        try:
            words.append(WordPair(word=item["word"], meaning=item["meaning"]))
        except (KeyError, TypeError):
            logger.warning(f"Skipping malformed word entry: {item!r}")

    raw_text = data["originalText"]
    return RecognitionResult(
        raw_text=raw_text,
        vocalized_text=data.get("vocalizedText") or raw_text,
        translated_text=data["translatedText"],
        words=words,
        confidence=data.get("confidence")
    )


class RecognitionGateway(ABC):
    """Opaque recognition and translation service."""

    @abstractmethod
    async def analyze(self, payload: ImagePayload) -> RecognitionResult:
        """
        Recognize and translate the text in an image.

        Raises:
            GatewayFailureError: On any service failure
        """


class GeminiRecognitionGateway(RecognitionGateway):
    """Recognition through a Gemini multimodal model with a JSON response schema."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = GEMINI_MODEL_DEFAULT,
        temperature: float = GEMINI_TEMPERATURE_DEFAULT,
        source_language: str = "Arabic",
        target_language: str = "French"
    ):
        api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise GatewayFailureError(
                "No Gemini API key configured (set GEMINI_API_KEY or GOOGLE_API_KEY)"
            )

        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.prompt = PROMPT_TEMPLATE.format(source=source_language, target=target_language)
        self.model = genai.GenerativeModel(
            model_name,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
                temperature=temperature,
            ),
        )

    async def analyze(self, payload: ImagePayload) -> RecognitionResult:
        image_bytes = decode_image_payload(payload)
        logger.info(f"Sending {len(image_bytes)} byte image to {self.model_name}")

        try:
            response = await self.model.generate_content_async(
                [{"mime_type": "image/png", "data": image_bytes}, self.prompt]
            )
            text = response.text
        except Exception as e:
            error_msg = f"Recognition request failed: {str(e)}"
            logger.error(error_msg)
            raise GatewayFailureError(error_msg) from e

        return parse_recognition_payload(text)
