"""Unit tests for the langdetect-backed language detector"""

import pytest

from mailin.infrastructure.language.langdetect_detector import LangdetectLanguageDetector


ENGLISH_TEXT = (
    "The quarterly report is attached to this message. Please review the figures "
    "before our meeting on Thursday and let me know if anything looks wrong."
)


class TestLangdetectLanguageDetector:
    """Test ranked language guesses"""

    @pytest.mark.asyncio
    async def test_english_ranked_first(self):
        candidates = await LangdetectLanguageDetector().detect(ENGLISH_TEXT)

        assert candidates
        assert candidates[0].language == "en"
        assert 0 < candidates[0].confidence <= 1

    @pytest.mark.asyncio
    async def test_candidate_count_bounded(self):
        candidates = await LangdetectLanguageDetector().detect(ENGLISH_TEXT, max_candidates=1)
        assert len(candidates) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \r\n  "])
    async def test_blank_text_yields_nothing(self, text):
        assert await LangdetectLanguageDetector().detect(text) == []

    @pytest.mark.asyncio
    async def test_featureless_text_yields_nothing(self):
        """Test text without letters gives no candidates instead of raising"""
        assert await LangdetectLanguageDetector().detect("12345 678") == []
