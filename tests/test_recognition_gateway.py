"""
Unit tests for the recognition service boundary.
"""
import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exceptions import GatewayFailureError
from recognition_gateway import (
    GeminiRecognitionGateway,
    decode_image_payload,
    parse_recognition_payload,
)

FULL_REPLY = {
    "originalText": "كتاب",
    "vocalizedText": "كِتَابٌ",
    "translatedText": "un livre",
    "words": [{"word": "كِتَابٌ", "meaning": "livre"}],
}


class TestParseRecognitionPayload:
    def test_full_reply(self):
        result = parse_recognition_payload(json.dumps(FULL_REPLY))
        assert result.raw_text == "كتاب"
        assert result.vocalized_text == "كِتَابٌ"
        assert result.translated_text == "un livre"
        assert result.words[0].word == "كِتَابٌ"
        assert result.words[0].meaning == "livre"

    def test_vocalized_falls_back_to_raw(self):
        reply = dict(FULL_REPLY, vocalizedText="")
        assert parse_recognition_payload(json.dumps(reply)).vocalized_text == "كتاب"

    def test_missing_words_is_empty(self):
        reply = {"originalText": "a", "translatedText": "b"}
        assert parse_recognition_payload(json.dumps(reply)).words == []

    def test_malformed_word_is_skipped(self):
        reply = dict(FULL_REPLY, words=[{"word": "x"}, {"word": "y", "meaning": "z"}])
        words = parse_recognition_payload(json.dumps(reply)).words
        assert [w.word for w in words] == ["y"]

    @pytest.mark.parametrize("text", [None, "", "not json", "[1, 2]", '{"originalText": "a"}'])
    def test_unusable_reply(self, text):
        with pytest.raises(GatewayFailureError):
            parse_recognition_payload(text)


class TestDecodeImagePayload:
    def test_raw_bytes(self):
        assert decode_image_payload(b"\x89PNG") == b"\x89PNG"

    def test_data_url(self):
        url = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert decode_image_payload(url) == b"\x89PNG"

    def test_plain_base64(self):
        assert decode_image_payload(base64.b64encode(b"abc").decode()) == b"abc"

    def test_invalid_base64(self):
        with pytest.raises(GatewayFailureError):
            decode_image_payload("data:image/png;base64,***")


class TestGeminiRecognitionGateway:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(GatewayFailureError):
            GeminiRecognitionGateway()

    @pytest.fixture
    def gateway(self):
        with patch("recognition_gateway.genai.configure"), \
                patch("recognition_gateway.genai.GenerativeModel") as model_cls:
            model_cls.return_value = MagicMock()
            yield GeminiRecognitionGateway(api_key="test-key")

    @pytest.mark.asyncio
    async def test_analyze_sends_png(self, gateway):
        gateway.model.generate_content_async = AsyncMock(
            return_value=SimpleNamespace(text=json.dumps(FULL_REPLY))
        )
        result = await gateway.analyze(b"\x89PNG-bytes")

        assert result.translated_text == "un livre"
        parts = gateway.model.generate_content_async.call_args.args[0]
        assert parts[0] == {"mime_type": "image/png", "data": b"\x89PNG-bytes"}
        assert "Arabic" in parts[1]

    @pytest.mark.asyncio
    async def test_service_error_is_gateway_failure(self, gateway):
        gateway.model.generate_content_async = AsyncMock(side_effect=RuntimeError("quota"))
        with pytest.raises(GatewayFailureError, match="quota"):
            await gateway.analyze(b"\x89PNG")

    def test_languages_in_prompt(self):
        with patch("recognition_gateway.genai.configure"), \
                patch("recognition_gateway.genai.GenerativeModel"):
            gateway = GeminiRecognitionGateway(
                api_key="k", source_language="Persian", target_language="English"
            )
        assert "Persian" in gateway.prompt
        assert "English" in gateway.prompt
