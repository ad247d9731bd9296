"""Language detector backed by langdetect.

langdetect returns ISO 639-1 codes ("en", "fr", ...) ranked by probability.
"""

import asyncio
import logging
from typing import List

from langdetect import DetectorFactory, detect_langs
from langdetect.detector_factory import init_factory
from langdetect.lang_detect_exception import LangDetectException

from ...domain.mail.envelope import LanguageCandidate
from ...domain.mail.ports.language_detector_port import LanguageDetectorPort

logger = logging.getLogger(__name__)

# langdetect is randomized; a fixed seed makes guesses reproducible
DetectorFactory.seed = 0


class LangdetectLanguageDetector(LanguageDetectorPort):
    """Statistical language guessing with langdetect."""

    def __init__(self):
        # Load the language profiles once, before worker threads race for them
        init_factory()

    async def detect(self, text: str, max_candidates: int = 2) -> List[LanguageCandidate]:
        if not text or not text.strip():
            return []
        return await asyncio.to_thread(self._detect, text, max_candidates)

    def _detect(self, text: str, max_candidates: int) -> List[LanguageCandidate]:
        try:
            guesses = detect_langs(text)
        except LangDetectException as e:
            # Raised when the text has no usable features (digits, symbols only)
            logger.debug(f"No language features in text: {e}")
            return []

        return [
            LanguageCandidate(language=guess.lang, confidence=guess.prob)
            for guess in guesses[:max_candidates]
        ]
