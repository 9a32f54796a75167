"""Tests for GeminiTermGenerator."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cue_system.data_management.schemas import LabelContext
from cue_system.standardization.term_generator import GeminiTermGenerator, TermGenerator


@pytest.fixture
def mock_gemini_client():
    client = MagicMock()
    client.generate_json = AsyncMock(
        return_value={"term": "营救", "confidence": 0.7, "reason": "rescue scene"}
    )
    return client


class TestGeminiTermGenerator:
    def test_satisfies_protocol(self, mock_gemini_client) -> None:
        assert isinstance(GeminiTermGenerator(gemini_client=mock_gemini_client), TermGenerator)

    @pytest.mark.asyncio
    async def test_generate(self, mock_gemini_client) -> None:
        generator = GeminiTermGenerator(gemini_client=mock_gemini_client)
        term = await generator.generate(
            "解救人质", "scenario", LabelContext(film_type="警匪片"), ["追逐", "潜入"]
        )

        assert term.term == "营救"
        assert term.confidence == 0.7
        assert term.reason == "rescue scene"

        prompt = mock_gemini_client.generate_json.call_args.args[0]
        assert "解救人质" in prompt
        assert "警匪片" in prompt
        assert "- 追逐" in prompt
        assert mock_gemini_client.generate_json.call_args.kwargs["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_empty_term_is_none(self, mock_gemini_client) -> None:
        mock_gemini_client.generate_json = AsyncMock(return_value={"term": "  "})
        generator = GeminiTermGenerator(gemini_client=mock_gemini_client)
        assert await generator.generate("x", "style", LabelContext(), []) is None

    @pytest.mark.asyncio
    async def test_no_json_is_none(self, mock_gemini_client) -> None:
        mock_gemini_client.generate_json = AsyncMock(return_value=None)
        generator = GeminiTermGenerator(gemini_client=mock_gemini_client)
        assert await generator.generate("x", "style", LabelContext(), []) is None

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_is_discarded(self, mock_gemini_client) -> None:
        mock_gemini_client.generate_json = AsyncMock(return_value={"term": "营救", "confidence": 7})
        generator = GeminiTermGenerator(gemini_client=mock_gemini_client)
        assert await generator.generate("x", "scenario", LabelContext(), []) is None

    @pytest.mark.asyncio
    async def test_default_confidence(self, mock_gemini_client) -> None:
        mock_gemini_client.generate_json = AsyncMock(return_value={"term": "营救"})
        generator = GeminiTermGenerator(gemini_client=mock_gemini_client)
        term = await generator.generate("x", "scenario", LabelContext(), [])
        assert term.confidence == 0.6
